"""Exact sequence variants: naming, denoising and aggregation.

Copyright © 2024 Pixelgen Technologies AB.
"""

from ampliplex.esv.clean import AggregationContext, clean_observations
from ampliplex.esv.registry import CountTable, ESVRegistry, compare_esv_names

__all__ = [
    "AggregationContext",
    "CountTable",
    "ESVRegistry",
    "clean_observations",
    "compare_esv_names",
]
