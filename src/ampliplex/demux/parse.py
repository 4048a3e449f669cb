"""Parse merged reads into per-primer counts of insert sequences.

Copyright © 2024 Pixelgen Technologies AB.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Iterable, Iterator, Optional

from dnaio import SequenceRecord

from ampliplex.demux.inline import InlineClassifier
from ampliplex.demux.insert import InsertExtractor
from ampliplex.demux.model import InlineModel
from ampliplex.demux.report import ParseStatistics
from ampliplex.seqio import ObservationRow, read_fasta, write_table
from ampliplex.types import PathType

logger = logging.getLogger(__name__)

OBSERVATION_COLUMNS = ObservationRow.required_columns()


class InlineParser:
    """Classify reads and count the insert sequence of each primer."""

    def __init__(
        self, model: InlineModel, extractor: Optional[InsertExtractor] = None
    ):
        """Create a parser.

        :param model: the barcode table
        :param extractor: the end anchor settings, default settings if None
        """
        self.model = model
        self.classifier = InlineClassifier(model)
        self.extractor = extractor or InsertExtractor()
        self.counts: dict[str, Counter[str]] = {}
        self.stats = ParseStatistics()

    def add(self, record: SequenceRecord) -> Optional[str]:
        """Classify a single read and count its insert.

        :param record: the read
        :returns: the insert or None if the read was not used
        """
        seq = record.sequence
        if seq == "":
            logger.warning("Ignoring empty sequence for %s", record.name)
            self.stats.empty += 1
            return None

        self.stats.reads += 1
        match = self.classifier.classify(seq)
        if match is None:
            logger.debug("Skipping %s starts with %s", record.name, seq[:30])
            return None

        insert = self.extractor.extract(seq[match.start :])
        if insert is None:
            logger.debug("End fail for %s in %s", record.name, match.primer_name)
            self.stats.end_failed += 1
            return None

        logger.debug("Using %s in %s", record.name, match.primer_name)
        self.counts.setdefault(match.primer_name, Counter())[insert] += 1
        self.stats.used += 1
        self.stats.primer_counter[match.primer_name] += 1
        return insert

    def add_all(self, records: Iterable[SequenceRecord]) -> ParseStatistics:
        """Classify all reads of an iterable."""
        for record in records:
            self.add(record)
        return self.stats

    def observations(self) -> Iterator[ObservationRow]:
        """Iterate over the counted inserts.

        Primers are in the order of the barcode table. The sequences of a
        primer are ordered by decreasing count, then alphabetically.
        """
        for primer_name in self.model.primer_names:
            counter = self.counts.get(primer_name)
            if not counter:
                continue
            for seq, count in sorted(counter.items(), key=lambda kv: (-kv[1], kv[0])):
                yield ObservationRow(primer_name=primer_name, count=count, sequence=seq)


def write_observations(path: PathType, observations: Iterable[ObservationRow]) -> int:
    """Write an observation table with the columns primer_name, count, sequence."""
    return write_table(
        path,
        OBSERVATION_COLUMNS,
        (row.values(OBSERVATION_COLUMNS) for row in observations),
    )


def parse_inline_fasta(
    reads: PathType,
    model: InlineModel,
    output: PathType,
    extractor: Optional[InsertExtractor] = None,
) -> ParseStatistics:
    """Parse a FASTA file of merged reads into an observation table.

    :param reads: the FASTA file with merged and quality filtered reads
    :param model: the barcode table
    :param output: the observation table to write
    :param extractor: the end anchor settings
    :returns: the statistics of the run
    """
    parser = InlineParser(model, extractor)
    try:
        parser.add_all(read_fasta(reads))
        n = write_observations(output, parser.observations())
        logger.info("Wrote %s distinct sequences to %s", n, output)
    finally:
        parser.stats.log_summary()
    return parser.stats
