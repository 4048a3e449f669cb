"""Readers and writers for FASTA, FASTQ and tab-separated tables.

Sequence files are read with dnaio, so gzip and zstd compressed inputs
are handled transparently. Tables are tab-separated with a mandatory
header row. Each table schema is a pydantic model that names the
required columns; unknown extra columns are kept so they can be written
back out unchanged.

Copyright © 2024 Pixelgen Technologies AB.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterable, Iterator, Sequence, Type, TypeVar

import dnaio
import pandas as pd
import pydantic
from dnaio import SequenceRecord

from ampliplex.exception import InputFormatError, InvalidSequenceError
from ampliplex.types import PathType
from ampliplex.utils import atomic_output

logger = logging.getLogger(__name__)

# allow - or . as used in alignments and * as used for stop codons
_SEQUENCE_RE = re.compile(r"^[A-Z*.-]*$")


# ------------------------------------------------------------
# Sequence files
# ------------------------------------------------------------


def _check_sequence(record: SequenceRecord, filename: PathType) -> SequenceRecord:
    """Upper-case and validate the sequence of a FASTA record in place."""
    if record.name == "":
        raise InputFormatError("Empty header", fname=str(filename))
    sequence = record.sequence.upper()
    if not _SEQUENCE_RE.match(sequence):
        raise InvalidSequenceError(
            f"Invalid sequence for {record.name}: {sequence}", fname=str(filename)
        )
    record.sequence = sequence
    return record


def read_fasta(path: PathType) -> Iterator[SequenceRecord]:
    """Iterate over the records of a FASTA file.

    Multi-line sequences are concatenated and upper-cased. The record
    `id` is the header up to the first whitespace.

    :param path: the FASTA file (optionally compressed)
    :yields SequenceRecord: the records in file order
    :raises InputFormatError: on a malformed file
    :raises InvalidSequenceError: on a sequence with invalid characters
    """
    try:
        with dnaio.open(str(path), fileformat="fasta") as reader:
            for record in reader:
                yield _check_sequence(record, path)
    except dnaio.FileFormatError as exc:
        raise InputFormatError(str(exc), fname=str(path)) from exc


def read_fasta_dict(path: PathType) -> dict[str, str]:
    """Read a FASTA file into a dict of id to sequence.

    :param path: the FASTA file
    :returns: a dict with one entry per record
    :raises InputFormatError: if an id occurs more than once
    """
    sequences: dict[str, str] = {}
    for record in read_fasta(path):
        if record.id in sequences:
            raise InputFormatError(f"Duplicate entry for {record.id}", fname=str(path))
        sequences[record.id] = record.sequence
    return sequences


def read_paired_fastq(
    read1: PathType, read2: PathType
) -> Iterator[tuple[SequenceRecord, SequenceRecord]]:
    """Iterate over two FASTQ files in lock-step.

    :param read1: the FASTQ file with the first reads
    :param read2: the FASTQ file with the mate reads
    :yields: a tuple with the two records of a pair
    :raises InputFormatError: if the files have a different number of
        records, the read ids do not match or a record is malformed
    """
    try:
        with dnaio.open(str(read1), str(read2), fileformat="fastq") as reader:
            yield from reader
    except dnaio.FileFormatError as exc:
        raise InputFormatError(
            f"Error reading paired files {read1} and {read2}: {exc}"
        ) from exc


def write_fasta(path: PathType, entries: Iterable[tuple[str, str]]) -> int:
    """Write (name, sequence) tuples to a FASTA file with one line per sequence.

    :param path: the output file
    :param entries: the records to write
    :returns: the number of records written
    """
    n = 0
    with dnaio.open(str(path), mode="w", fileformat="fasta") as writer:
        for name, sequence in entries:
            writer.write(SequenceRecord(name, sequence))
            n += 1
    return n


# ------------------------------------------------------------
# Tables
# ------------------------------------------------------------


class TableRow(pydantic.BaseModel):
    """Base class of all table schemas.

    The declared fields are the required columns of the table. Unknown
    columns are kept as extra attributes.
    """

    model_config = pydantic.ConfigDict(extra="allow", frozen=True)

    @classmethod
    def required_columns(cls) -> list[str]:
        """Return the names of the required columns."""
        return list(cls.model_fields.keys())

    def values(self, columns: Sequence[str]) -> list[str]:
        """Return the values of the given columns as strings."""
        data = self.model_dump()
        return [str(data[c]) for c in columns]


class BarcodeDescriptorRow(TableRow):
    """A row of an inline barcode table."""

    primer_name: str
    Ns: str
    inline_index: str
    begin: str


class ObservationRow(TableRow):
    """A row of a parsed observation table."""

    primer_name: str
    count: int
    sequence: str


class EsvCountRow(TableRow):
    """A row of an aggregated ESV count table."""

    primer_name: str
    index: str
    Zotu: str
    count: int
    tot: int


RowT = TypeVar("RowT", bound=TableRow)


def read_table(path: PathType, required: Sequence[str] = ()) -> pd.DataFrame:
    """Read a tab-separated table with a header line.

    All values are read as strings. Every row must have exactly as many
    fields as the header.

    :param path: the table file
    :param required: the columns that must be present
    :returns: a DataFrame with one column per header field
    :raises InputFormatError: on a missing column, an empty header or a
        row with the wrong number of fields
    """
    path = Path(path)
    with open(path, "r", newline="") as fh:
        header_line = fh.readline()
        if header_line.rstrip("\r\n") == "":
            raise InputFormatError("Empty header line", fname=str(path))
        columns = header_line.rstrip("\r\n").split("\t")
        for field in required:
            if field not in columns:
                raise InputFormatError(f"No field {field}", fname=str(path))

        rows = []
        for line in fh:
            values = line.rstrip("\r\n").split("\t")
            if len(values) != len(columns):
                raise InputFormatError(
                    f"Wrong number of columns in:\n{line.rstrip()}\n", fname=str(path)
                )
            rows.append(values)

    return pd.DataFrame(rows, columns=columns, dtype=str)


def read_records(path: PathType, schema: Type[RowT]) -> list[RowT]:
    """Read a table into a list of typed rows.

    :param path: the table file
    :param schema: the row model with the required columns
    :returns: one validated row per line
    :raises InputFormatError: if the table or a value is invalid
    """
    df = read_table(path, schema.required_columns())
    try:
        return [schema.model_validate(row) for row in df.to_dict(orient="records")]
    except pydantic.ValidationError as exc:
        raise InputFormatError(f"Invalid value: {exc}", fname=str(path)) from exc


def write_table(
    path: PathType, columns: Sequence[str], rows: Iterable[Sequence[object]]
) -> int:
    """Write a tab-separated table.

    The file is only put in place when all rows have been written.

    :param path: the output file
    :param columns: the header fields
    :param rows: the row values in column order
    :returns: the number of rows written
    """
    n = 0
    with atomic_output(path) as tmp:
        with open(tmp, "w") as fh:
            fh.write("\t".join(columns) + "\n")
            for row in rows:
                fh.write("\t".join(str(v) for v in row) + "\n")
                n += 1
    return n
