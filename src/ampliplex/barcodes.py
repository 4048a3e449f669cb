"""Error tolerant barcode lookup for long reads.

Instead of computing edit distances at query time, every barcode is
expanded into the set of strings it may appear as in a read (both
strands, truncated by two bases at either end, or with one substitution)
and all of them are stored in a single dict.

Copyright © 2024 Pixelgen Technologies AB.
"""

from __future__ import annotations

import logging
from typing import Iterable, Iterator, Optional

from ampliplex.exception import ConfigurationError
from ampliplex.patterns import CONCRETE_BASES, reverse_complement
from ampliplex.seqio import read_fasta
from ampliplex.types import PathType

logger = logging.getLogger(__name__)

TRUNCATION = 2


def single_substitutions(sequence: str) -> Iterator[str]:
    """Generate all sequences with exactly one substituted base.

    Positions that are not one of A, C, G or T are left unchanged.

    >>> sorted(single_substitutions("AC"))
    ['AA', 'AG', 'AT', 'CC', 'GC', 'TC']
    """
    sequence = sequence.upper()
    for i, char in enumerate(sequence):
        if char not in CONCRETE_BASES:
            continue
        for new_char in CONCRETE_BASES:
            if new_char != char:
                yield sequence[:i] + new_char + sequence[i + 1 :]


class BarcodeIndex:
    """Lookup table from barcode variants to barcode names.

    Barcodes are registered in the order they are added. When two
    barcodes share a variant, the barcode added last wins.

    :ivar barcode_length: the length of all barcodes in the index
    """

    def __init__(self, barcode_length: int):
        """Create an empty index.

        :param barcode_length: the length of all barcodes in the index
        """
        if barcode_length <= TRUNCATION:
            raise ConfigurationError(
                f"Barcode length must be larger than {TRUNCATION}"
            )
        self.barcode_length = barcode_length
        self._lookup: dict[str, str] = {}
        self._names: list[str] = []

    def __len__(self) -> int:
        """Return the number of distinct variant strings in the index."""
        return len(self._lookup)

    def __contains__(self, variant: str) -> bool:
        """Return True if `variant` resolves to a barcode."""
        return variant in self._lookup

    @property
    def names(self) -> list[str]:
        """Return the names of the registered barcodes in insertion order."""
        return list(self._names)

    def get(self, variant: str) -> Optional[str]:
        """Return the barcode name for an exact variant string."""
        return self._lookup.get(variant)

    def add(self, name: str, sequence: str) -> None:
        """Register a barcode and all its tolerated variants.

        :param name: the barcode name
        :param sequence: the barcode sequence
        :raises ConfigurationError: if the barcode has the wrong length
        """
        length = self.barcode_length
        if len(sequence) != length:
            raise ConfigurationError(f"barcode {name} is not the expected length")

        rc = reverse_complement(sequence)
        variants = [
            sequence,
            rc,
            sequence[: length - TRUNCATION],
            sequence[TRUNCATION:],
            rc[: length - TRUNCATION],
            rc[TRUNCATION:],
        ]
        lookup = self._lookup
        for variant in variants:
            lookup[variant] = name
        for variant in single_substitutions(sequence):
            lookup[variant] = name
        for variant in single_substitutions(rc):
            lookup[variant] = name
        self._names.append(name)

    def query(self, window: str, slop: int) -> str:
        """Find the barcode in a window of read sequence.

        The barcode is expected at the start of the window but may be
        shifted by up to `slop` positions. At each offset the full-length
        substring is tried first, then the substring without its first two
        bases, then without its last two bases.

        :param window: the read sequence to search
        :param slop: the number of extra offsets to probe
        :returns: the barcode name, or an empty string if none matched
        """
        length = self.barcode_length
        if len(window) < length - TRUNCATION:
            return ""
        lookup = self._lookup
        for at in range(slop + 1):
            candidate = window[at : at + length]
            for test in (
                candidate,
                candidate[TRUNCATION:],
                candidate[: length - TRUNCATION],
            ):
                name = lookup.get(test)
                if name is not None:
                    return name
        return ""

    @classmethod
    def from_barcodes(
        cls, barcodes: Iterable[tuple[str, str]], barcode_length: int
    ) -> BarcodeIndex:
        """Build an index from (name, sequence) tuples, in the given order."""
        index = cls(barcode_length)
        for name, sequence in barcodes:
            index.add(name, sequence)
        return index

    @classmethod
    def from_fasta(cls, path: PathType, barcode_length: int) -> BarcodeIndex:
        """Build an index from a FASTA file of barcodes, in file order.

        :param path: the barcode FASTA file
        :param barcode_length: the length all barcodes must have
        :returns: the barcode index
        """
        index = cls.from_barcodes(
            ((record.id, record.sequence) for record in read_fasta(path)),
            barcode_length,
        )
        logger.info(
            "Loaded %s barcodes (%s variants) from %s",
            len(index.names),
            len(index),
            path,
        )
        return index
