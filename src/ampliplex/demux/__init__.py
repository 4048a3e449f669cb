"""Demultiplexing of inline barcoded amplicon reads.

Copyright © 2024 Pixelgen Technologies AB.
"""

from ampliplex.demux.inline import InlineClassifier, InlineMatch
from ampliplex.demux.insert import EndTrimMode, InsertExtractor
from ampliplex.demux.model import InlineModel, PrimerDescriptor

__all__ = [
    "EndTrimMode",
    "InlineClassifier",
    "InlineMatch",
    "InlineModel",
    "InsertExtractor",
    "PrimerDescriptor",
]
