"""Demultiplex long reads with a barcode on either side of the insert.

Long reads may come from either strand and may carry arbitrary extra
sequence outside the barcodes. The insert is located by two fixed
flanking patterns, the barcodes are looked up next to them with some
positional slop.

Copyright © 2024 Pixelgen Technologies AB.
"""

from __future__ import annotations

import logging
from typing import Iterable, Iterator, NamedTuple, Optional

from ampliplex.barcodes import BarcodeIndex
from ampliplex.config import LongReadSettings
from ampliplex.demux.report import LongReadStatistics
from ampliplex.patterns import compile_pattern, reverse_complement
from ampliplex.seqio import read_fasta, write_table
from ampliplex.types import PathType

logger = logging.getLogger(__name__)

LONGREAD_COLUMNS = [
    "read",
    "ee",
    "strand",
    "barcode1",
    "barcode2",
    "readLen",
    "insertAt",
    "len",
    "seq",
]


class LongReadInsert(NamedTuple):
    """A long read with a valid insert.

    barcode1 is found after the right pattern and barcode2 before the
    left pattern. An unresolved barcode is an empty string.
    """

    read: str
    ee: str
    strand: str
    barcode1: str
    barcode2: str
    read_length: int
    insert_at: int
    insert: str

    def values(self) -> list[object]:
        """Return the fields in output column order."""
        return [
            self.read,
            self.ee,
            self.strand,
            self.barcode1,
            self.barcode2,
            self.read_length,
            self.insert_at,
            len(self.insert),
            self.insert,
        ]


def split_expected_errors(header: str) -> tuple[str, str]:
    """Split the `;ee=` annotation off a read name.

    >>> split_expected_errors("read7;ee=0.52")
    ('read7', '0.52')
    >>> split_expected_errors("read8")
    ('read8', '')
    """
    name, sep, ee = header.rpartition(";ee=")
    if not sep:
        return header, ""
    return name, ee


class LongReadDemultiplexer:
    """Extract inserts and barcodes from long reads."""

    def __init__(
        self, index: BarcodeIndex, settings: Optional[LongReadSettings] = None
    ):
        """Create a demultiplexer.

        :param index: the barcodes to look for
        :param settings: flanking patterns and insert length range
        """
        self.index = index
        self.settings = settings or LongReadSettings(
            barcode_length=index.barcode_length
        )
        self.left_pattern = compile_pattern(self.settings.left_pattern)
        self.right_pattern = compile_pattern(self.settings.right_pattern)
        self.min_length = self.settings.expected_length - self.settings.length_range
        self.max_length = self.settings.expected_length + self.settings.length_range
        self.stats = LongReadStatistics()

    def _orient(self, seq: str) -> tuple[str, str]:
        if self.left_pattern.search(seq) >= 0 and self.right_pattern.search(seq) >= 0:
            return seq, "+"
        self.stats.reverse_strand += 1
        return reverse_complement(seq), "-"

    def process(self, header: str, seq: str) -> Optional[LongReadInsert]:
        """Find the insert and the barcodes of a read.

        :param header: the read name, possibly with an `;ee=` annotation
        :param seq: the read sequence
        :returns: the insert or None if the read was rejected
        """
        stats = self.stats
        stats.reads += 1
        name, ee = split_expected_errors(header)
        seq, strand = self._orient(seq)

        left_start = self.left_pattern.search(seq)
        if left_start < 0:
            stats.missing_anchor += 1
            return None
        left_at = left_start + len(self.left_pattern)

        right_start = self.right_pattern.search(seq, start=left_at)
        if right_start < 0:
            stats.missing_anchor += 1
            return None
        if right_start <= left_at:
            stats.misordered_anchor += 1
            return None

        insert = seq[left_at:right_start]
        if not self.min_length <= len(insert) <= self.max_length:
            stats.wrong_length += 1
            logger.debug("Insert of %s has length %s", name, len(insert))
            return None

        barcode_length = self.index.barcode_length
        slop = self.settings.slop
        left = seq[:left_start]
        right = seq[right_start + len(self.right_pattern) :]
        left_window = left[max(0, len(left) - barcode_length - slop) :]
        right_window = right[: barcode_length + slop]
        barcode2 = self.index.query(left_window, slop)
        barcode1 = self.index.query(right_window, slop)

        stats.passed += 1
        stats.barcode1_found += barcode1 != ""
        stats.barcode2_found += barcode2 != ""
        stats.both_found += barcode1 != "" and barcode2 != ""
        return LongReadInsert(
            read=name,
            ee=ee,
            strand=strand,
            barcode1=barcode1,
            barcode2=barcode2,
            read_length=len(seq),
            insert_at=left_at,
            insert=insert,
        )

    def process_all(
        self, records: Iterable[tuple[str, str]]
    ) -> Iterator[LongReadInsert]:
        """Process (header, sequence) tuples and yield the accepted reads."""
        for header, seq in records:
            result = self.process(header, seq)
            if result is not None:
                yield result

    def run(self, reads: PathType, output: PathType) -> LongReadStatistics:
        """Demultiplex a FASTA file of long reads into a table.

        The summary is logged also when the run fails.

        :param reads: the FASTA file of reads
        :param output: the table to write
        :returns: the statistics of the run
        """
        logger.info(
            "Looking for %s and %s",
            self.left_pattern.sequence,
            self.right_pattern.sequence,
        )
        records = ((r.id, r.sequence) for r in read_fasta(reads))
        try:
            write_table(
                output,
                LONGREAD_COLUMNS,
                (hit.values() for hit in self.process_all(records)),
            )
            logger.info("Skipped %s of %s", self.stats.failed, self.stats.reads)
        finally:
            self.stats.log_summary()
        return self.stats
