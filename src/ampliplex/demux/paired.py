"""Demultiplex paired-end reads into one pair of FASTQ files per primer.

Copyright © 2024 Pixelgen Technologies AB.
"""

from __future__ import annotations

import contextlib
import logging
from pathlib import Path
from typing import Iterable, Optional

import dnaio
from dnaio import SequenceRecord

from ampliplex.demux.inline import InlineClassifier
from ampliplex.demux.insert import EndTrimMode, InsertExtractor
from ampliplex.demux.model import InlineModel, PrimerDescriptor
from ampliplex.demux.report import PairedDemuxStatistics
from ampliplex.exception import ConfigurationError
from ampliplex.seqio import read_paired_fastq
from ampliplex.types import PathType
from ampliplex.utils import atomic_output

logger = logging.getLogger(__name__)


def output_paths(prefix: PathType, number: int) -> tuple[Path, Path]:
    """Return the read 1 and read 2 output files of a primer number."""
    prefix = str(prefix)
    return (
        Path(f"{prefix}_p{number}_R1.fastq"),
        Path(f"{prefix}_p{number}_R2.fastq"),
    )


def select_expected(
    model: InlineModel, expected: Iterable[int]
) -> dict[int, PrimerDescriptor]:
    """Look up the primers of the expected primer numbers.

    :param model: the barcode table, all primer names must end in a number
    :param expected: the primer numbers to write output for
    :returns: a dict of primer number to primer
    :raises ConfigurationError: if a number is not in the table
    """
    numbered = model.primers_by_number()
    selected = {}
    for number in sorted(expected):
        if number not in numbered:
            raise ConfigurationError(
                f"Expect number {number} does not appear in the input table "
                f"{model.name}"
            )
        selected[number] = numbered[number]
    return selected


class PairedDemultiplexer:
    """Assign read pairs to primers and trim both reads.

    Read 1 is classified by its inline barcode and trimmed to the end of
    the primer. Read 2 is trimmed after the reverse complement of the end
    anchor, depending on the `end_trim` mode.
    """

    def __init__(
        self,
        model: InlineModel,
        expected: Iterable[int],
        extractor: Optional[InsertExtractor] = None,
        end_trim: EndTrimMode = EndTrimMode.REQUIRED,
    ):
        """Create a demultiplexer.

        :param model: the barcode table
        :param expected: the numbers of the primers to keep
        :param extractor: the end anchor settings
        :param end_trim: how to handle the end anchor on read 2
        :raises ConfigurationError: if an expected number is not in the table
        """
        self.model = model
        self.classifier = InlineClassifier(model)
        self.extractor = extractor or InsertExtractor()
        self.end_trim = EndTrimMode(end_trim)
        self.expected = select_expected(model, expected)
        self._number_of = {p.primer_name: n for n, p in self.expected.items()}
        self.stats = PairedDemuxStatistics()

    def process(
        self, read1: SequenceRecord, read2: SequenceRecord
    ) -> Optional[tuple[int, SequenceRecord, SequenceRecord]]:
        """Classify and trim a read pair.

        :param read1: the first read
        :param read2: the mate read
        :returns: a tuple (primer number, trimmed read 1, trimmed read 2) or
            None if the pair is not kept
        """
        stats = self.stats
        stats.read_pairs += 1

        match = self.classifier.classify(read1.sequence)
        if match is None:
            stats.unclassified += 1
            logger.debug(
                "Failed to demultiplex %s beginning with %s",
                read1.name,
                read1.sequence[:20],
            )
            return None

        number = self._number_of.get(match.primer_name)
        if number is None:
            stats.unexpected += 1
            logger.debug("Skipped unexpected demultiplex for %s", match.primer_name)
            return None

        cut2 = None
        if self.end_trim is not EndTrimMode.OFF:
            cut2 = self.extractor.mate_cut(read2.sequence)
            if cut2 is None:
                if self.end_trim is EndTrimMode.REQUIRED:
                    stats.missing_end += 1
                    logger.debug("No end sequence for %s", read2.name)
                    return None
                stats.untrimmed_mates += 1

        stats.kept += 1
        stats.primer_counter[number] += 1
        trimmed2 = read2 if cut2 is None else read2[cut2:]
        return number, read1[match.start :], trimmed2

    def run(
        self, read1: PathType, read2: PathType, prefix: PathType
    ) -> dict[int, tuple[Path, Path]]:
        """Demultiplex two FASTQ files.

        One pair of output files is created for every expected primer, even
        if no reads were assigned to it. The output files only appear when
        all input has been processed. The summary is logged also when the run
        fails.

        :param read1: the FASTQ file with the first reads
        :param read2: the FASTQ file with the mate reads
        :param prefix: the prefix of the output files
        :returns: the output files per primer number
        """
        outputs = {n: output_paths(prefix, n) for n in self.expected}
        logger.info(
            "Parsing reads for primers %s from %s and %s into %s_p*_R*.fastq",
            ",".join(str(n) for n in self.expected),
            read1,
            read2,
            prefix,
        )
        if self.end_trim is not EndTrimMode.OFF:
            logger.info(
                "Trimming end %s (rc %s) with N%s:%s",
                self.extractor.end_pattern.sequence,
                self.extractor.mate_pattern.sequence,
                self.extractor.min_end,
                self.extractor.max_end,
            )

        try:
            with contextlib.ExitStack() as stack:
                writers = {}
                for number, (out1, out2) in outputs.items():
                    tmp1 = stack.enter_context(atomic_output(out1))
                    tmp2 = stack.enter_context(atomic_output(out2))
                    writers[number] = stack.enter_context(
                        dnaio.open(str(tmp1), str(tmp2), mode="w", fileformat="fastq")
                    )

                for r1, r2 in read_paired_fastq(read1, read2):
                    result = self.process(r1, r2)
                    if result is not None:
                        number, out_r1, out_r2 = result
                        writers[number].write(out_r1, out_r2)
        finally:
            self.stats.log_summary()

        return outputs
