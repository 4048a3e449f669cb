"""Statistics and report of the ESV aggregation.

Copyright © 2024 Pixelgen Technologies AB.
"""

from __future__ import annotations

import logging
from typing import Any

import pydantic

from ampliplex.report import SampleReport

logger = logging.getLogger(__name__)


class CleanStatistics:
    """Statistics of denoising and aggregating observation tables.

    :ivar input_files: the number of observation tables read
    :ivar empty_files: the number of tables without rows that pass the filters
    :ivar input_sequences: the number of rows that pass the filters
    :ivar input_reads: the number of reads in the rows that pass the filters
    :ivar partitions: the number of (sample, primer) partitions denoised
    :ivar amplicons: the number of sequences the denoiser kept
    :ivar chimeras: the number of sequences the denoiser rejected
    :ivar new_esvs: the number of ESVs named in this run
    :ivar seeded_esvs: the number of ESV names read from a previous run
    :ivar esvs: the total number of ESVs
    :ivar output_reads: the number of reads in the count table
    """

    def __init__(self):
        """Initialize the CleanStatistics object."""
        self.input_files = 0
        self.empty_files = 0
        self.input_sequences = 0
        self.input_reads = 0
        self.partitions = 0
        self.amplicons = 0
        self.chimeras = 0
        self.new_esvs = 0
        self.seeded_esvs = 0
        self.esvs = 0
        self.output_reads = 0

    @property
    def kept_percent(self) -> float:
        """Return the percentage of input reads kept, with a pseudocount."""
        return 100 * (self.output_reads + 1) / (self.input_reads + 1)

    def collect(self) -> dict[str, Any]:
        """Return a dictionary with statistics."""
        return {
            "input_files": self.input_files,
            "empty_files": self.empty_files,
            "input_sequences": self.input_sequences,
            "input_reads": self.input_reads,
            "partitions": self.partitions,
            "amplicon_sequences": self.amplicons,
            "chimeric_sequences": self.chimeras,
            "new_esvs": self.new_esvs,
            "seeded_esvs": self.seeded_esvs,
            "esvs": self.esvs,
            "output_reads": self.output_reads,
            "kept_percent": self.kept_percent,
        }

    def log_summary(self) -> None:
        """Write the human readable summary to the log."""
        logger.info(
            "Found a total of %s ESVs across %s input files",
            self.esvs,
            self.input_files,
        )
        logger.info(
            "Total kept count: %.2fM of %.2fM input (%.1f%%)",
            self.output_reads / 1e6,
            self.input_reads / 1e6,
            self.kept_percent,
        )

    def __repr__(self) -> str:
        """Return a string representation of the object."""
        return f"<CleanStatistics [esvs={self.esvs} input={self.input_reads} output={self.output_reads}]>"


class CleanSampleReport(SampleReport):
    """Model for the report of the ESV aggregation."""

    input_files: int = pydantic.Field(
        ..., description="The number of observation tables read."
    )
    empty_files: int = pydantic.Field(
        ...,
        description="The number of observation tables without rows that pass the filters.",
    )
    input_sequences: int = pydantic.Field(
        ..., description="The number of observations that pass the filters."
    )
    input_reads: int = pydantic.Field(
        ..., description="The number of reads in the observations that pass the filters."
    )
    partitions: int = pydantic.Field(
        ..., description="The number of (sample, primer) partitions that were denoised."
    )
    amplicon_sequences: int = pydantic.Field(
        ..., description="The number of sequences kept by the denoiser."
    )
    chimeric_sequences: int = pydantic.Field(
        ..., description="The number of sequences rejected by the denoiser."
    )
    new_esvs: int = pydantic.Field(
        ..., description="The number of ESVs named in this run."
    )
    seeded_esvs: int = pydantic.Field(
        ..., description="The number of ESV names read from a previous run."
    )
    esvs: int = pydantic.Field(..., description="The total number of ESVs.")
    output_reads: int = pydantic.Field(
        ..., description="The number of reads in the count table."
    )
    kept_percent: float = pydantic.Field(
        ...,
        description="The percentage of input reads in the count table, computed as 100 * (output + 1) / (input + 1).",
    )
