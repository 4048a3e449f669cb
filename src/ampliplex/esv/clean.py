"""Denoise observation tables and aggregate them into one ESV count table.

Every (sample, primer) partition is denoised separately by an external
program. Its surviving sequences are then named in a shared registry and
their counts recorded, before the next partition is processed.

Copyright © 2024 Pixelgen Technologies AB.
"""

from __future__ import annotations

import logging
import re
import tempfile
from pathlib import Path
from typing import Iterable, Iterator, Optional, Protocol

from ampliplex.config import CleanSettings
from ampliplex.esv.registry import CountTable, ESVRegistry
from ampliplex.esv.report import CleanStatistics
from ampliplex.exception import InputFormatError, InternalConsistencyError
from ampliplex.seqio import (
    EsvCountRow,
    ObservationRow,
    read_fasta,
    read_records,
    write_fasta,
    write_table,
)
from ampliplex.types import PathType
from ampliplex.utils import atomic_output

logger = logging.getLogger(__name__)

ESV_COLUMNS = EsvCountRow.required_columns()

_SAMPLE_INDEX_RE = re.compile(r"^([a-zA-Z]+\d+)[._]")
_PRIMER_SUFFIX_RE = re.compile(r"[a-zA-Z](\d+)$")
_AMPOUT_RE = re.compile(r"^SEQ(\d+);size=\d+;amptype=([a-z]+)", re.IGNORECASE)


class Denoiser(Protocol):
    """Anything that can denoise a size annotated FASTA file."""

    def unoise3(self, fasta: PathType, ampout: PathType, min_size: int) -> Path:
        """Classify the sequences of `fasta` and write them to `ampout`."""
        ...


def sample_index_from_path(path: PathType) -> str:
    """Return the sample index from the name of an observation table.

    >>> sample_index_from_path("run1/IT012.parse.tab")
    'IT012'

    :param path: the file name
    :returns: the sample index
    :raises InputFormatError: if the name does not start with an index
    """
    match = _SAMPLE_INDEX_RE.match(Path(path).name)
    if match is None:
        raise InputFormatError(f"Cannot parse index from {path}")
    return match.group(1)


def filter_observations(
    rows: Iterable[ObservationRow], settings: CleanSettings, source: PathType = ""
) -> list[ObservationRow]:
    """Keep the observations with enough reads and length of the wanted primers.

    :param rows: the observations of a sample
    :param settings: the thresholds and primer numbers
    :param source: the file the rows were read from (for messages)
    :returns: the observations that pass all filters
    :raises InputFormatError: if primers are filtered and a primer name
        does not end in a number
    """
    kept = [
        row
        for row in rows
        if row.count >= settings.min_count and len(row.sequence) >= settings.min_length
    ]
    numbers = settings.primer_numbers
    if numbers:
        selected = []
        for row in kept:
            match = _PRIMER_SUFFIX_RE.search(row.primer_name)
            if match is None:
                raise InputFormatError(
                    f"Invalid primer_name {row.primer_name}", fname=source
                )
            if int(match.group(1)) in numbers:
                selected.append(row)
        kept = selected
    return kept


def parse_ampout(path: PathType) -> Iterator[tuple[int, str]]:
    """Read the sequence numbers and amplicon types from denoiser output.

    :param path: the output of `unoise3 -ampout`
    :yields: tuples of (sequence number, amptype)
    :raises InputFormatError: if a header cannot be parsed
    """
    for record in read_fasta(path):
        match = _AMPOUT_RE.match(record.name)
        if match is None:
            raise InputFormatError(
                f"Cannot parse sequence number and amptype from {record.name}",
                fname=str(path),
            )
        yield int(match.group(1)), match.group(2)


class AggregationContext:
    """The state shared by all partitions of an aggregation run.

    The registry and count table are only updated by `denoise_partition`,
    after the denoiser has finished with that partition.
    """

    def __init__(
        self,
        settings: CleanSettings,
        denoiser: Denoiser,
        registry: Optional[ESVRegistry] = None,
    ):
        """Create an aggregation context.

        :param settings: filters and naming of the ESVs
        :param denoiser: the external denoiser
        :param registry: a registry seeded from a previous run, a new one
            with the naming of `settings` if None
        """
        self.settings = settings
        self.denoiser = denoiser
        self.registry = registry or ESVRegistry(
            settings.name_prefix, settings.hash_function
        )
        self.counts = CountTable()
        self.stats = CleanStatistics()
        self.stats.seeded_esvs = self.registry.seeded
        self._indices: dict[str, Path] = {}

    def denoise_partition(
        self,
        primer_name: str,
        index: str,
        rows: list[ObservationRow],
        workdir: Path,
    ) -> int:
        """Denoise the observations of a primer in a sample and record them.

        :param primer_name: the primer of all rows
        :param index: the sample index
        :param rows: the observations
        :param workdir: the directory for the temporary files
        :returns: the number of sequences kept by the denoiser
        :raises InternalConsistencyError: if the denoiser reports an unknown
            sequence or a count is recorded twice
        """
        fasta = workdir / "partition.fna"
        ampout = workdir / "partition.u"
        try:
            write_fasta(
                fasta,
                (
                    (f"SEQ{n};size={row.count};", row.sequence)
                    for n, row in enumerate(rows)
                ),
            )
            self.denoiser.unoise3(fasta, ampout, self.settings.min_count)
            results = list(parse_ampout(ampout))
        finally:
            fasta.unlink(missing_ok=True)
            ampout.unlink(missing_ok=True)

        self.stats.partitions += 1
        kept = 0
        for number, amptype in results:
            if number >= len(rows):
                raise InternalConsistencyError(f"Unknown sequence number {number}")
            if amptype != "otu":
                self.stats.chimeras += 1
                continue
            row = rows[number]
            known = row.sequence in self.registry
            esv = self.registry.assign(row.sequence)
            if not known:
                self.stats.new_esvs += 1
            self.counts.add(primer_name, index, esv, row.count)
            kept += 1
        self.stats.amplicons += kept
        return kept

    def add_sample(self, path: PathType, workdir: Path) -> None:
        """Filter, denoise and record the observation table of a sample.

        :param path: the observation table
        :param workdir: the directory for the temporary files
        :raises InputFormatError: if the sample index was already seen
        """
        path = Path(path)
        index = sample_index_from_path(path)
        if index in self._indices:
            raise InputFormatError(f"Duplicate index {index} from file {path}")
        self._indices[index] = path
        self.stats.input_files += 1

        rows = filter_observations(
            read_records(path, ObservationRow), self.settings, source=path
        )
        if not rows:
            logger.warning(
                "No rows in %s with count >= %s and length >= %s and expected primers",
                path,
                self.settings.min_count,
                self.settings.min_length,
            )
            self.stats.empty_files += 1
            return

        n_reads = sum(row.count for row in rows)
        self.stats.input_sequences += len(rows)
        self.stats.input_reads += n_reads
        logger.info(
            "Considering %s sequences (%s reads) in %s", len(rows), n_reads, path
        )

        by_primer: dict[str, list[ObservationRow]] = {}
        for row in rows:
            by_primer.setdefault(row.primer_name, []).append(row)
        for primer_name, primer_rows in by_primer.items():
            self.denoise_partition(primer_name, index, primer_rows, workdir)

    def write(self, out_prefix: PathType) -> tuple[Path, Path]:
        """Write `<out_prefix>.fna` and `<out_prefix>.tsv`.

        Neither file is left behind when writing one of them fails.

        :param out_prefix: the prefix of the output files
        :returns: the paths of the FASTA file and the count table
        """
        fna = Path(f"{out_prefix}.fna")
        tsv = Path(f"{out_prefix}.tsv")
        # the FASTA file is only put in place once the table is written
        with atomic_output(fna) as fna_tmp:
            self.registry.write_fasta(fna_tmp)
            write_table(
                tsv,
                ESV_COLUMNS,
                (
                    row.values(ESV_COLUMNS)
                    for row in self.counts.rows(sort_key=self.registry.sort_key)
                ),
            )
        logger.info("Wrote %s and %s", fna, tsv)
        return fna, tsv


def clean_observations(
    inputs: Iterable[PathType],
    out_prefix: PathType,
    context: AggregationContext,
) -> CleanStatistics:
    """Denoise observation tables and write the ESV FASTA file and count table.

    The temporary files of the run are created in a private directory that
    is removed when the run ends, also on failure.

    :param inputs: the observation tables, one per sample
    :param out_prefix: the prefix of the output files
    :param context: the aggregation state
    :returns: the statistics of the run
    """
    try:
        with tempfile.TemporaryDirectory(prefix="ampliplex-clean.") as tmp:
            workdir = Path(tmp)
            for path in inputs:
                context.add_sample(path, workdir)
        context.write(out_prefix)
    finally:
        context.stats.esvs = len(context.registry)
        context.stats.output_reads = context.counts.total_count
        context.stats.log_summary()
    return context.stats
