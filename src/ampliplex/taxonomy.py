"""Taxonomic annotation of an ESV count table.

Copyright © 2024 Pixelgen Technologies AB.
"""

from __future__ import annotations

import logging
import re
import tempfile
from pathlib import Path
from typing import Optional, Protocol

import pandas as pd
import pydantic

from ampliplex.exception import InputFormatError
from ampliplex.report import SampleReport
from ampliplex.seqio import read_table, write_table
from ampliplex.types import PathType

logger = logging.getLogger(__name__)

TAX_RANKS = ["domain", "phylum", "class", "order", "family", "genus"]
TAX_LONG_COLUMN = "taxLong"

_TAX_PART_RE = re.compile(r"^([a-z]):(.*)$")


class TaxonomyClassifier(Protocol):
    """Anything that can assign taxonomy to a FASTA file."""

    def sintax(self, fasta: PathType, db: PathType, tabbedout: PathType) -> Path:
        """Classify the sequences of `fasta` and write them to `tabbedout`."""
        ...


class TaxonomySampleReport(SampleReport):
    """Model for the report of the taxonomy annotation."""

    rows: int = pydantic.Field(..., description="The number of rows in the table.")
    esvs: int = pydantic.Field(
        ..., description="The number of distinct ESVs in the table."
    )
    unassigned_esvs: int = pydantic.Field(
        ..., description="The number of ESVs without an accepted assignment."
    )


def parse_tax_string(tax: str) -> dict[str, str]:
    """Parse a comma separated list of `rank:"name"` parts.

    >>> parse_tax_string('d:"Bacteria",p:"Firmicutes"')
    {'d': 'Bacteria', 'p': 'Firmicutes'}

    :param tax: the taxonomy string
    :returns: a dict of rank key to name
    :raises InputFormatError: if a part cannot be parsed
    """
    parts: dict[str, str] = {}
    if tax == "":
        return parts
    for part in tax.split(","):
        match = _TAX_PART_RE.match(part)
        if match is None:
            raise InputFormatError(f"Cannot parse tax part {part} from {tax}")
        key, value = match.group(1), match.group(2)
        if value.startswith('"'):
            value = value[1:]
        if value.endswith('"'):
            value = value[:-1]
        parts[key] = value
    return parts


def read_sintax_output(path: PathType, strand: str = "-") -> dict[str, tuple[str, str]]:
    """Read the tabbed output of sintax.

    Only hits on `strand` are kept.

    :param path: the sintax output
    :param strand: the strand of the accepted hits
    :returns: a dict of ESV name to (taxonomy with confidences, taxonomy)
    :raises InputFormatError: on a line with fewer than four fields or an
        ESV with two accepted hits
    """
    assignments: dict[str, tuple[str, str]] = {}
    with open(path, "r") as fh:
        for line in fh:
            fields = line.rstrip("\r\n").split("\t")
            if len(fields) < 4:
                raise InputFormatError(
                    f"Invalid line from usearch: {line.rstrip()}", fname=path
                )
            esv, tax_long, hit_strand, tax = fields[:4]
            if hit_strand != strand:
                continue
            if esv in assignments:
                raise InputFormatError(f"Duplicate zotu {esv}", fname=path)
            assignments[esv] = (tax_long, tax)
    return assignments


def annotate_table(
    table: pd.DataFrame, assignments: dict[str, tuple[str, str]]
) -> tuple[pd.DataFrame, set[str]]:
    """Add the taxonomy columns to an ESV table.

    :param table: a table with a `Zotu` column
    :param assignments: the accepted assignments per ESV
    :returns: the annotated table and the ESVs without an assignment
    :raises InputFormatError: if a taxonomy string cannot be parsed
    """
    missing: set[str] = set()
    rank_keys = [rank[0] for rank in TAX_RANKS]
    ranks: list[list[str]] = []
    tax_long: list[str] = []
    for esv in table["Zotu"]:
        if esv in assignments:
            this_long, tax = assignments[esv]
        else:
            this_long, tax = "", ""
            missing.add(esv)
        parts = parse_tax_string(tax)
        ranks.append([parts.get(key, "") for key in rank_keys])
        tax_long.append(this_long)

    annotated = table.copy()
    rank_df = pd.DataFrame(ranks, columns=TAX_RANKS, index=table.index, dtype=str)
    for rank in TAX_RANKS:
        annotated[rank] = rank_df[rank]
    annotated[TAX_LONG_COLUMN] = tax_long
    return annotated, missing


def assign_taxonomy(
    in_prefix: PathType,
    db: PathType,
    output: PathType,
    classifier: TaxonomyClassifier,
    strand: str = "-",
    sample_id: Optional[str] = None,
) -> TaxonomySampleReport:
    """Annotate `<in_prefix>.tsv` with the taxonomy of `<in_prefix>.fna`.

    :param in_prefix: the prefix of the aggregation output
    :param db: the taxonomy database
    :param output: the annotated table
    :param classifier: the external taxonomy classifier
    :param strand: the strand of the accepted hits
    :param sample_id: the name used in the report
    :returns: the report of the annotation
    """
    in_table = Path(f"{in_prefix}.tsv")
    in_fasta = Path(f"{in_prefix}.fna")
    for path in (in_table, in_fasta, Path(db)):
        if not path.is_file():
            raise InputFormatError(f"No such file: {path}")

    table = read_table(in_table, ["Zotu"])
    with tempfile.TemporaryDirectory(prefix="ampliplex-sintax.") as tmp:
        tabbed = Path(tmp) / "sintax.tsv"
        classifier.sintax(in_fasta, db, tabbed)
        assignments = read_sintax_output(tabbed, strand=strand)

    annotated, missing = annotate_table(table, assignments)
    columns = list(annotated.columns)
    write_table(output, columns, annotated.itertuples(index=False, name=None))
    logger.info("Wrote %s -- no tax assignment for %s Zotus", output, len(missing))

    return TaxonomySampleReport(
        sample_id=sample_id or Path(in_prefix).name,
        rows=len(annotated),
        esvs=int(table["Zotu"].nunique()),
        unassigned_esvs=len(missing),
    )
