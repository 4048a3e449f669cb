"""Statistics and reports of the demultiplexing commands.

Reads that are not classified or have no insert are not errors. They are
counted here and show up in the summary and in the report of a command.

Copyright © 2024 Pixelgen Technologies AB.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Any

import pydantic

from ampliplex.report import SampleReport

logger = logging.getLogger(__name__)


class ParseStatistics:
    """Statistics of parsing single (merged) reads.

    :ivar reads: the number of reads processed
    :ivar used: the number of reads with a primer and an insert
    :ivar end_failed: the number of reads with a primer but no end anchor
    :ivar empty: the number of empty sequences that were ignored
    :ivar primer_counter: the number of used reads per primer
    """

    def __init__(self):
        """Initialize the ParseStatistics object."""
        self.reads = 0
        self.used = 0
        self.end_failed = 0
        self.empty = 0
        self.primer_counter: Counter[str] = Counter()

    @property
    def skipped(self) -> int:
        """Return the number of reads that were not used."""
        return self.reads - self.used

    def __iadd__(self, other):
        """Merge statistics from another object into this one."""
        if isinstance(other, ParseStatistics):
            self.reads += other.reads
            self.used += other.used
            self.end_failed += other.end_failed
            self.empty += other.empty
            self.primer_counter += other.primer_counter
            return self

        return NotImplemented

    def collect(self) -> dict[str, Any]:
        """Return a dictionary with statistics."""
        return {
            "input_reads": self.reads,
            "output_reads": self.used,
            "skipped_reads": self.skipped,
            "end_failed_reads": self.end_failed,
            "empty_reads": self.empty,
            "primer_reads": dict(self.primer_counter),
        }

    def log_summary(self) -> None:
        """Write the human readable summary to the log."""
        logger.info("Ignoring %s of %s reads", self.skipped, self.reads)
        logger.info(
            "%s of the %s demultiplexed but did not match the expected end",
            self.end_failed,
            self.skipped,
        )

    def __repr__(self) -> str:
        """Return a string representation of the object."""
        return f"<ParseStatistics [input={self.reads} used={self.used} end_failed={self.end_failed}]>"


class PairedDemuxStatistics:
    """Statistics of demultiplexing read pairs.

    :ivar read_pairs: the number of read pairs processed
    :ivar kept: the number of pairs written to an output file
    :ivar unclassified: the number of pairs without a matching primer
    :ivar unexpected: the number of pairs of a primer that was not expected
    :ivar missing_end: the number of pairs dropped for a missing mate anchor
    :ivar untrimmed_mates: the number of kept pairs with an untrimmed mate
    :ivar primer_counter: the number of kept pairs per primer number
    """

    def __init__(self):
        """Initialize the PairedDemuxStatistics object."""
        self.read_pairs = 0
        self.kept = 0
        self.unclassified = 0
        self.unexpected = 0
        self.missing_end = 0
        self.untrimmed_mates = 0
        self.primer_counter: Counter[int] = Counter()

    def __iadd__(self, other):
        """Merge statistics from another object into this one."""
        if isinstance(other, PairedDemuxStatistics):
            self.read_pairs += other.read_pairs
            self.kept += other.kept
            self.unclassified += other.unclassified
            self.unexpected += other.unexpected
            self.missing_end += other.missing_end
            self.untrimmed_mates += other.untrimmed_mates
            self.primer_counter += other.primer_counter
            return self

        return NotImplemented

    def collect(self) -> dict[str, Any]:
        """Return a dictionary with statistics."""
        return {
            "input_read_pairs": self.read_pairs,
            "output_read_pairs": self.kept,
            "unclassified_read_pairs": self.unclassified,
            "unexpected_primer_read_pairs": self.unexpected,
            "missing_end_read_pairs": self.missing_end,
            "untrimmed_mate_read_pairs": self.untrimmed_mates,
            "primer_read_pairs": {
                str(k): v for k, v in sorted(self.primer_counter.items())
            },
        }

    def log_summary(self) -> None:
        """Write the human readable summary to the log."""
        logger.info("Read %s reads, kept %s", self.read_pairs, self.kept)
        logger.info(
            "Not demultiplexed %s, unexpected primer %s",
            self.unclassified,
            self.unexpected,
        )
        logger.info("Multiplexed but missing end for %s", self.missing_end)

    def __repr__(self) -> str:
        """Return a string representation of the object."""
        return f"<PairedDemuxStatistics [input={self.read_pairs} kept={self.kept}]>"


class LongReadStatistics:
    """Statistics of demultiplexing long reads.

    :ivar reads: the number of reads processed
    :ivar reverse_strand: the number of reads that were reverse complemented
    :ivar missing_anchor: the number of reads without both flanking patterns
    :ivar misordered_anchor: the number of reads where the right pattern
        does not follow the left one
    :ivar wrong_length: the number of reads with an insert of the wrong length
    :ivar passed: the number of reads written to the output
    :ivar barcode1_found: the number of passed reads with a right barcode
    :ivar barcode2_found: the number of passed reads with a left barcode
    :ivar both_found: the number of passed reads with both barcodes
    """

    def __init__(self):
        """Initialize the LongReadStatistics object."""
        self.reads = 0
        self.reverse_strand = 0
        self.missing_anchor = 0
        self.misordered_anchor = 0
        self.wrong_length = 0
        self.passed = 0
        self.barcode1_found = 0
        self.barcode2_found = 0
        self.both_found = 0

    @property
    def failed(self) -> int:
        """Return the number of reads without a valid insert."""
        return self.missing_anchor + self.misordered_anchor + self.wrong_length

    def __iadd__(self, other):
        """Merge statistics from another object into this one."""
        if isinstance(other, LongReadStatistics):
            self.reads += other.reads
            self.reverse_strand += other.reverse_strand
            self.missing_anchor += other.missing_anchor
            self.misordered_anchor += other.misordered_anchor
            self.wrong_length += other.wrong_length
            self.passed += other.passed
            self.barcode1_found += other.barcode1_found
            self.barcode2_found += other.barcode2_found
            self.both_found += other.both_found
            return self

        return NotImplemented

    def collect(self) -> dict[str, Any]:
        """Return a dictionary with statistics."""
        return {
            "input_reads": self.reads,
            "output_reads": self.passed,
            "failed_reads": self.failed,
            "reverse_strand_reads": self.reverse_strand,
            "missing_anchor_reads": self.missing_anchor,
            "misordered_anchor_reads": self.misordered_anchor,
            "wrong_length_reads": self.wrong_length,
            "barcode1_reads": self.barcode1_found,
            "barcode2_reads": self.barcode2_found,
            "both_barcodes_reads": self.both_found,
        }

    def log_summary(self) -> None:
        """Write the human readable summary to the log."""
        logger.info(
            "Processed %s reads, %s with an insert of the expected length",
            self.reads,
            self.passed,
        )
        logger.info(
            "Missing anchor %s, misordered anchors %s, wrong length %s",
            self.missing_anchor,
            self.misordered_anchor,
            self.wrong_length,
        )
        logger.info(
            "Barcodes found: right %s, left %s, both %s",
            self.barcode1_found,
            self.barcode2_found,
            self.both_found,
        )

    def __repr__(self) -> str:
        """Return a string representation of the object."""
        return f"<LongReadStatistics [input={self.reads} passed={self.passed} failed={self.failed}]>"


class ParseSampleReport(SampleReport):
    """Model for the report of parsing inline barcoded reads."""

    input_reads: int = pydantic.Field(
        ..., description="The number of input reads processed."
    )
    output_reads: int = pydantic.Field(
        ...,
        description="The number of reads with a known primer and an end anchor.",
    )
    skipped_reads: int = pydantic.Field(
        ..., description="The number of reads that were not used."
    )
    end_failed_reads: int = pydantic.Field(
        ...,
        description="The number of reads with a known primer but no end anchor.",
    )
    empty_reads: int = pydantic.Field(
        ..., description="The number of empty sequences that were ignored."
    )
    primer_reads: dict[str, int] = pydantic.Field(
        ..., description="The number of used reads per primer."
    )


class DemuxSampleReport(SampleReport):
    """Model for the report of demultiplexing read pairs."""

    input_read_pairs: int = pydantic.Field(
        ..., description="The number of input read pairs processed."
    )
    output_read_pairs: int = pydantic.Field(
        ..., description="The number of read pairs written to an output file."
    )
    unclassified_read_pairs: int = pydantic.Field(
        ..., description="The number of read pairs without a known primer."
    )
    unexpected_primer_read_pairs: int = pydantic.Field(
        ...,
        description="The number of read pairs of a primer that was not expected.",
    )
    missing_end_read_pairs: int = pydantic.Field(
        ...,
        description="The number of read pairs dropped because the mate has no end anchor.",
    )
    untrimmed_mate_read_pairs: int = pydantic.Field(
        ...,
        description="The number of kept read pairs where the mate was not trimmed.",
    )
    primer_read_pairs: dict[str, int] = pydantic.Field(
        ..., description="The number of kept read pairs per primer number."
    )


class LongReadSampleReport(SampleReport):
    """Model for the report of demultiplexing long reads."""

    input_reads: int = pydantic.Field(
        ..., description="The number of input reads processed."
    )
    output_reads: int = pydantic.Field(
        ..., description="The number of reads with an insert of the expected length."
    )
    failed_reads: int = pydantic.Field(
        ..., description="The number of reads without a valid insert."
    )
    reverse_strand_reads: int = pydantic.Field(
        ..., description="The number of reads that were reverse complemented."
    )
    missing_anchor_reads: int = pydantic.Field(
        ..., description="The number of reads missing a flanking pattern."
    )
    misordered_anchor_reads: int = pydantic.Field(
        ...,
        description="The number of reads where the right pattern does not follow the left one.",
    )
    wrong_length_reads: int = pydantic.Field(
        ..., description="The number of reads with an insert outside the length range."
    )
    barcode1_reads: int = pydantic.Field(
        ..., description="The number of output reads with a barcode after the right pattern."
    )
    barcode2_reads: int = pydantic.Field(
        ..., description="The number of output reads with a barcode before the left pattern."
    )
    both_barcodes_reads: int = pydantic.Field(
        ..., description="The number of output reads with both barcodes."
    )
