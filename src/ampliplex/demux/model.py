"""Inline barcode tables.

An inline model describes, for every primer, the number of random bases
before the inline barcode, the barcode itself and the start of the primer
that follows it.

Copyright © 2024 Pixelgen Technologies AB.
"""

from __future__ import annotations

import dataclasses
import logging
import re
from typing import Iterable, Iterator, Optional

from ampliplex.exception import ConfigurationError
from ampliplex.patterns import AmbiguityPattern, compile_pattern
from ampliplex.seqio import BarcodeDescriptorRow, read_records
from ampliplex.types import PathType

logger = logging.getLogger(__name__)

_NS_RE = re.compile(r"^N+$", re.IGNORECASE)
_INDEX_RE = re.compile(r"^[ACGT]+$")
_BEGIN_RE = re.compile(r"^[A-Z]+$")
_PRIMER_NUMBER_RE = re.compile(r"^.*[a-zA-Z_](\d+)$")


def primer_number(primer_name: str) -> Optional[int]:
    """Return the numeric suffix of a primer name, e.g. 12 for `806R_12`.

    :param primer_name: the primer name
    :returns: the number or None if the name does not end in a number
    """
    match = _PRIMER_NUMBER_RE.match(primer_name)
    if match is None:
        return None
    return int(match.group(1))


@dataclasses.dataclass(frozen=True)
class PrimerDescriptor:
    """A single primer of an inline model.

    :ivar primer_name: the unique name of the primer
    :ivar offset: the position in the read where the barcode starts
    :ivar barcode: the inline barcode
    :ivar begin: the expected start of the primer after the barcode
    :ivar begin_pattern: the compiled `begin` sequence
    """

    primer_name: str
    offset: int
    barcode: str
    begin: str
    begin_pattern: AmbiguityPattern = dataclasses.field(compare=False, repr=False)

    @property
    def number(self) -> Optional[int]:
        """Return the numeric suffix of the primer name."""
        return primer_number(self.primer_name)

    @property
    def boundary(self) -> int:
        """Return the read position right after the begin sequence."""
        return self.offset + len(self.barcode) + len(self.begin)

    @classmethod
    def from_row(cls, row: BarcodeDescriptorRow) -> PrimerDescriptor:
        """Validate a row of a barcode table.

        :param row: the table row
        :returns: the primer descriptor
        :raises ConfigurationError: if a field is invalid
        """
        if not _NS_RE.match(row.Ns):
            raise ConfigurationError(f"Invalid Ns specifier {row.Ns}")
        if not _INDEX_RE.match(row.inline_index):
            raise ConfigurationError(f"Invalid index {row.inline_index}")
        if row.primer_name == "":
            raise ConfigurationError(f"Invalid primer_name {row.primer_name}")
        if not _BEGIN_RE.match(row.begin):
            raise ConfigurationError(f"Invalid begin {row.begin}")

        return cls(
            primer_name=row.primer_name,
            offset=len(row.Ns),
            barcode=row.inline_index,
            begin=row.begin,
            begin_pattern=compile_pattern(row.begin),
        )


class InlineModel:
    """An immutable table of primers with inline barcodes.

    Primers keep the order of the barcode table. Barcodes are grouped by
    the offset at which they occur in the read.
    """

    def __init__(self, primers: Iterable[PrimerDescriptor], name: str = ""):
        """Create a model and check its consistency.

        :param primers: the primers in table order
        :param name: the name of the model (used for reporting)
        :raises ConfigurationError: if barcode lengths differ, a primer name
            is repeated or two primers share a barcode at the same offset
        """
        self.name = name
        self._primers: dict[str, PrimerDescriptor] = {}
        self._by_offset: dict[int, dict[str, PrimerDescriptor]] = {}
        self.barcode_length = 0

        for primer in primers:
            if self.barcode_length and len(primer.barcode) != self.barcode_length:
                raise ConfigurationError("inline_index must all be the same length")
            self.barcode_length = len(primer.barcode)

            if primer.primer_name in self._primers:
                raise ConfigurationError(
                    f"Duplicate primer_name {primer.primer_name}"
                )

            at_offset = self._by_offset.setdefault(primer.offset, {})
            if primer.barcode in at_offset:
                raise ConfigurationError(
                    f"Primers {at_offset[primer.barcode].primer_name} and "
                    f"{primer.primer_name} have the same barcode {primer.barcode} "
                    f"at offset {primer.offset}"
                )
            at_offset[primer.barcode] = primer
            self._primers[primer.primer_name] = primer

        if not self._primers:
            raise ConfigurationError(f"The barcode table of {name} has no primers")

    def __len__(self) -> int:
        """Return the number of primers."""
        return len(self._primers)

    def __iter__(self) -> Iterator[PrimerDescriptor]:
        """Iterate over the primers in table order."""
        return iter(self._primers.values())

    def __contains__(self, primer_name: str) -> bool:
        """Return True if the model has a primer with this name."""
        return primer_name in self._primers

    def __repr__(self) -> str:
        """Return a string representation of the model."""
        return (
            f"<InlineModel {self.name!r} primers={len(self)} "
            f"offsets={self.offsets}>"
        )

    def __getitem__(self, primer_name: str) -> PrimerDescriptor:
        """Return the primer with the given name."""
        return self._primers[primer_name]

    @property
    def primer_names(self) -> list[str]:
        """Return the primer names in table order."""
        return list(self._primers.keys())

    @property
    def offsets(self) -> list[int]:
        """Return the barcode offsets in ascending order."""
        return sorted(self._by_offset.keys())

    def barcodes_at(self, offset: int) -> dict[str, PrimerDescriptor]:
        """Return the lookup of barcode to primer for an offset."""
        return self._by_offset.get(offset, {})

    def primers_by_number(self) -> dict[int, PrimerDescriptor]:
        """Map the numeric suffix of every primer name to the primer.

        :returns: a dict of primer number to primer
        :raises ConfigurationError: if a primer name has no numeric suffix
            or two primers have the same number
        """
        numbered: dict[int, PrimerDescriptor] = {}
        for primer in self:
            number = primer.number
            if number is None:
                raise ConfigurationError(
                    f"Cannot parse primer number from {primer.primer_name}"
                )
            if number in numbered:
                raise ConfigurationError(
                    f"Primers {numbered[number].primer_name} and "
                    f"{primer.primer_name} have the same number {number}"
                )
            numbered[number] = primer
        return numbered

    @classmethod
    def from_records(
        cls, rows: Iterable[BarcodeDescriptorRow], name: str = ""
    ) -> InlineModel:
        """Build a model from barcode table rows."""
        return cls((PrimerDescriptor.from_row(row) for row in rows), name=name)

    @classmethod
    def from_file(cls, path: PathType) -> InlineModel:
        """Read a model from a barcode table.

        The table must have the columns `primer_name`, `Ns`, `inline_index`
        and `begin`.

        :param path: the barcode table
        :returns: the inline model
        """
        rows = read_records(path, BarcodeDescriptorRow)
        model = cls.from_records(rows, name=str(path))
        logger.debug("Loaded %r", model)
        return model
