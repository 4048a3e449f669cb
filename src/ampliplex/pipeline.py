"""Run the per-sample read processing of a directory and summarize it.

For every sample the read pairs are merged with pear, the merged reads are
quality filtered with usearch, and the filtered reads are parsed into an
observation table. All samples go through one step before the next step
starts.

Copyright © 2024 Pixelgen Technologies AB.
"""

from __future__ import annotations

import dataclasses
import logging
import re
from pathlib import Path
from typing import Optional

import dnaio
import pydantic

from ampliplex.demux.insert import InsertExtractor
from ampliplex.demux.model import InlineModel
from ampliplex.demux.parse import parse_inline_fasta
from ampliplex.demux.report import ParseStatistics
from ampliplex.exception import ConfigurationError, InputFormatError
from ampliplex.external.pear import Pear
from ampliplex.external.process import format_command
from ampliplex.external.usearch import Usearch
from ampliplex.report import SampleReport
from ampliplex.seqio import read_fasta
from ampliplex.types import PathType

logger = logging.getLogger(__name__)

_R1_RE = re.compile(r"R1_\d+\.fastq(\.gz)?$")
_R2_RE = re.compile(r"R2_\d+\.fastq(\.gz)?$")
_READ_TAG_RE = re.compile(r"_R[12]_\d+")
_SAMPLE_RES = [
    re.compile(r"^(IT\d+)"),
    re.compile(r"[_-](IT\d+)"),
    re.compile(r"^(S\d+)"),
    re.compile(r"_(S\d+)"),
    re.compile(r"^([A-Z][0-9]+)[_.]"),
]
_ASSEMBLED_RE = re.compile(r"^Assembled reads .*: *([0-9,]+) */ *([0-9,]+) *")


def sample_from_filename(path: PathType) -> str:
    """Extract the sample name from the name of a read file.

    Sample names look like `IT001`, `S12` or `B09`.

    >>> sample_from_filename("runs/IT003_S3_L001_R1_001.fastq.gz")
    'IT003'

    :param path: the read file
    :returns: the sample name
    :raises InputFormatError: if no sample name is found
    """
    name = _READ_TAG_RE.sub("", Path(path).name, count=1)
    for pattern in _SAMPLE_RES:
        match = pattern.search(name)
        if match is not None:
            return match.group(1)
    raise InputFormatError(f"Cannot extract sample number from {name}")


def is_fastq_empty(path: PathType) -> bool:
    """Return True if a (possibly compressed) FASTQ file has no records."""
    with dnaio.open(str(path), fileformat="fastq") as reader:
        return next(iter(reader), None) is None


@dataclasses.dataclass(frozen=True)
class SampleReads:
    """The read files of a sample and the files derived from them."""

    sample: str
    read1: Path
    read2: Path
    directory: Path

    @property
    def pear_prefix(self) -> Path:
        """Return the prefix of the pear output files."""
        return self.directory / f"{self.sample}.pear"

    @property
    def merged(self) -> Path:
        """Return the FASTQ file of merged reads."""
        return Pear.assembled_path(self.pear_prefix)

    @property
    def filtered(self) -> Path:
        """Return the FASTA file of quality filtered reads."""
        return self.directory / f"{self.sample}.filtered"

    @property
    def parsed(self) -> Path:
        """Return the observation table."""
        return self.directory / f"{self.sample}.parse.tab"


def find_read_pairs(directory: PathType) -> list[SampleReads]:
    """Find the paired read files of all samples in a directory.

    Files of undetermined reads are ignored. If there are no compressed
    FASTQ files, uncompressed ones are used (but not the output of pear).

    :param directory: the directory with `*_R1_NNN.fastq.gz` files
    :returns: the samples in file name order
    :raises InputFormatError: if the files cannot be paired or two pairs
        belong to the same sample
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise InputFormatError(f"Not a directory: {directory}")

    fastq = sorted(directory.glob("*.fastq.gz"))
    if not fastq:
        fastq = sorted(p for p in directory.glob("*.fastq") if ".pear." not in p.name)
    if not fastq:
        raise InputFormatError(f"No fastq inputs found in {directory}")
    fastq = [p for p in fastq if not p.name.lower().startswith("undetermined")]

    r1 = [p for p in fastq if _R1_RE.search(p.name)]
    r2 = [p for p in fastq if _R2_RE.search(p.name)]
    if not r1:
        raise InputFormatError(f"No R1 input reads found in {directory}")
    if len(r1) != len(r2):
        raise InputFormatError(
            "Found different numbers of fastq files for R1 and R2"
        )
    logger.info("Found %s input files", len(r1))

    samples = []
    for read1, read2 in zip(r1, r2):
        s1 = sample_from_filename(read1)
        s2 = sample_from_filename(read2)
        if s1 != s2:
            raise InputFormatError(f"Mismatched read files, {read1} and {read2}")
        samples.append(SampleReads(s1, read1, read2, directory))

    names = [s.sample for s in samples]
    if len(set(names)) != len(names):
        raise InputFormatError(
            "Not all sample identifiers are unique. "
            "Multiple read files for one sample are not supported."
        )
    logger.info("Sample names: %s", " ".join(names))
    return samples


class InlineRunner:
    """Merge, filter and parse the reads of all samples in a directory."""

    def __init__(
        self,
        model_file: PathType,
        pear: Optional[Pear] = None,
        usearch: Optional[Usearch] = None,
        max_ee: float = 1.0,
        extractor: Optional[InsertExtractor] = None,
    ):
        """Create a runner.

        :param model_file: the barcode table
        :param pear: the read merger
        :param usearch: the quality filter
        :param max_ee: the maximum number of expected errors per read
        :param extractor: the end anchor settings of the parser
        :raises ConfigurationError: if `max_ee` is not positive
        """
        if max_ee <= 0:
            raise ConfigurationError("Invalid max errors, must be positive")
        self.model_file = Path(model_file)
        self.pear = pear or Pear()
        self.usearch = usearch or Usearch()
        self.max_ee = max_ee
        self.extractor = extractor or InsertExtractor()

    def select_samples(self, samples: list[SampleReads]) -> list[SampleReads]:
        """Drop the samples without reads.

        :raises InputFormatError: if only one of the read files is empty
        """
        selected = []
        for sample in samples:
            if is_fastq_empty(sample.read1):
                if not is_fastq_empty(sample.read2):
                    raise InputFormatError(
                        f"File {sample.read1} is empty but {sample.read2} is not"
                    )
                logger.warning("Skipping sample %s with no reads", sample.sample)
                continue
            selected.append(sample)
        return selected

    def commands(self, samples: list[SampleReads]) -> dict[str, list[str]]:
        """Return the command lines of every step, for a dry run."""
        extractor = self.extractor
        end_options = [
            "--end-sequence",
            extractor.settings.end_sequence,
            "--end-range",
            extractor.settings.end_range,
        ]
        return {
            "pear": [
                format_command(
                    self.pear.merge_command(s.read1, s.read2, s.pear_prefix),
                    stdout=Pear.log_path(s.pear_prefix),
                )
                for s in samples
            ],
            "usearch": [
                format_command(
                    self.usearch.fastq_filter_command(s.merged, s.filtered, self.max_ee)
                )
                for s in samples
            ],
            "parse": [
                format_command(
                    ["ampliplex", "parse", "--model-file", str(self.model_file)]
                    + end_options
                    + ["--output", str(s.parsed), str(s.filtered)]
                )
                for s in samples
            ],
        }

    def run(self, samples: list[SampleReads]) -> dict[str, ParseStatistics]:
        """Process all samples.

        :param samples: the samples to process
        :returns: the parse statistics per sample
        """
        model = InlineModel.from_file(self.model_file)

        for sample in samples:
            logger.info("Merging reads of %s", sample.sample)
            self.pear.merge(sample.read1, sample.read2, sample.pear_prefix)

        for sample in samples:
            logger.info("Filtering merged reads of %s", sample.sample)
            self.usearch.fastq_filter(sample.merged, sample.filtered, self.max_ee)

        stats = {}
        for sample in samples:
            logger.info("Parsing filtered reads of %s", sample.sample)
            stats[sample.sample] = parse_inline_fasta(
                sample.filtered, model, sample.parsed, self.extractor
            )
        return stats


class PipelineStatistics(SampleReport):
    """Read counts after each step of a run directory."""

    reads: int = pydantic.Field(..., description="The number of read pairs.")
    assembled_reads: int = pydantic.Field(
        ..., description="The number of read pairs merged by pear."
    )
    high_quality_reads: int = pydantic.Field(
        ..., description="The number of merged reads that pass the quality filter."
    )
    demultiplexed_reads: int = pydantic.Field(
        ..., description="The number of reads in the observation tables."
    )
    singletons: int = pydantic.Field(
        ...,
        description="The number of observations supported by a single read.",
    )

    @pydantic.computed_field  # type: ignore[prop-decorator]
    @property
    def non_unique_reads(self) -> int:
        """Return the number of demultiplexed reads that are not singletons."""
        return self.demultiplexed_reads - self.singletons

    def summary_lines(self) -> list[str]:
        """Return the human readable summary, one line per step."""
        total = self.reads

        def line(label: str, n: int) -> str:
            return f"{label:<14}{n / 1e6:6.1f} M {100 * n / total:5.1f}%"

        return [
            line("Total reads:", self.reads),
            line("Assembled:", self.assembled_reads),
            line("High-quality:", self.high_quality_reads),
            line("Demultiplexed:", self.demultiplexed_reads),
            line("Singletons:", self.singletons),
            line("Non-unique:", self.non_unique_reads),
        ]


def _count_fasta_records(path: Path) -> int:
    return sum(1 for _ in read_fasta(path))


def collect_pipeline_stats(directory: PathType) -> PipelineStatistics:
    """Count the reads that passed each step in a run directory.

    :param directory: the directory processed by `InlineRunner`
    :returns: the read counts
    :raises InputFormatError: if the output of a step is missing, there are
        no reads or an observation table has an invalid count
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise InputFormatError(f"Not a directory: {directory}")

    pear_logs = sorted(directory.glob("*.pear.log"))
    filtered = sorted(directory.glob("*.filtered"))
    parsed = sorted(directory.glob("*.parse.tab"))
    for files, pattern in (
        (pear_logs, "*.pear.log"),
        (filtered, "*.filtered"),
        (parsed, "*.parse.tab"),
    ):
        if not files:
            raise InputFormatError(f"No {pattern} files in {directory}")

    n_reads = 0
    n_assembled = 0
    for path in pear_logs:
        with open(path, "r") as fh:
            for line in fh:
                match = _ASSEMBLED_RE.match(line)
                if match is not None:
                    n_assembled += int(match.group(1).replace(",", ""))
                    n_reads += int(match.group(2).replace(",", ""))
    logger.info("Scanned %s pear logs", len(pear_logs))
    if n_reads < 1:
        raise InputFormatError(f"No reads in the pear logs of {directory}")

    n_quality = sum(_count_fasta_records(path) for path in filtered)
    logger.info("Scanned %s filtered files", len(filtered))

    n_used = 0
    n_singleton = 0
    for path in parsed:
        with open(path, "r") as fh:
            for line in fh:
                fields = line.rstrip("\r\n").split("\t")
                count = fields[1] if len(fields) > 1 else ""
                if count == "count":
                    continue
                if not count.isdigit():
                    raise InputFormatError(
                        f"Invalid line\n{line.rstrip()}\n", fname=path
                    )
                n_used += int(count)
                n_singleton += int(count) == 1

    return PipelineStatistics(
        sample_id=directory.resolve().name,
        reads=n_reads,
        assembled_reads=n_assembled,
        high_quality_reads=n_quality,
        demultiplexed_reads=n_used,
        singletons=n_singleton,
    )
