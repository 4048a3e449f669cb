"""Naming and counting of exact sequence variants (ESVs).

An ESV name is either a hash of its sequence, which is stable between
independent runs, or a prefix followed by a running number, which is only
stable when the names of a previous run are loaded first.

Copyright © 2024 Pixelgen Technologies AB.
"""

from __future__ import annotations

import functools
import hashlib
import logging
import re
from typing import Callable, Iterator, Literal, Optional

import xxhash

from ampliplex.exception import InputFormatError, InternalConsistencyError
from ampliplex.seqio import EsvCountRow, read_fasta, write_fasta
from ampliplex.types import PathType
from ampliplex.utils import atomic_output

logger = logging.getLogger(__name__)

HashFunction = Literal["md5", "xxh3"]

_DIGITS_RE = re.compile(r"^\d+$")


def content_hash(sequence: str, hash_function: HashFunction = "md5") -> str:
    """Compute the hex digest name of a sequence.

    :param sequence: the sequence
    :param hash_function: `md5` or `xxh3` (128 bit)
    :returns: the hex digest
    """
    if hash_function == "md5":
        return hashlib.md5(sequence.encode("ascii")).hexdigest()
    if hash_function == "xxh3":
        return xxhash.xxh3_128_hexdigest(sequence.encode("ascii"))
    raise ValueError(f"Unknown hash function: {hash_function}")


def compare_esv_names(a: str, b: str, prefix: str = "") -> int:
    """Compare two ESV names.

    Names that both start with `prefix` and continue with digits only are
    ordered by that number. All other names are ordered as strings.

    >>> compare_esv_names("P2", "P10", prefix="P")
    -1
    >>> compare_esv_names("P2", "P10", prefix="Q")
    1
    """
    if a.startswith(prefix) and b.startswith(prefix):
        a2 = a[len(prefix) :]
        b2 = b[len(prefix) :]
        if _DIGITS_RE.match(a2) and _DIGITS_RE.match(b2):
            n_a, n_b = int(a2), int(b2)
            return (n_a > n_b) - (n_a < n_b)
    return (a > b) - (a < b)


def esv_sort_key(prefix: str = "") -> Callable[[str], object]:
    """Return a sort key that orders ESV names like `compare_esv_names`."""
    return functools.cmp_to_key(functools.partial(compare_esv_names, prefix=prefix))


class ESVRegistry:
    """A one-to-one mapping between sequences and ESV names.

    :ivar prefix: the name prefix, names are content hashes if empty
    :ivar hash_function: the hash used for content derived names
    """

    def __init__(self, prefix: str = "", hash_function: HashFunction = "md5"):
        """Create an empty registry."""
        self.prefix = prefix
        self.hash_function = hash_function
        self._seq_to_name: dict[str, str] = {}
        self._name_to_seq: dict[str, str] = {}
        self.seeded = 0

    def __len__(self) -> int:
        """Return the number of named sequences."""
        return len(self._name_to_seq)

    def __contains__(self, sequence: str) -> bool:
        """Return True if the sequence has a name."""
        return sequence in self._seq_to_name

    def __repr__(self) -> str:
        """Return a string representation of the registry."""
        naming = f"prefix={self.prefix!r}" if self.prefix else self.hash_function
        return f"<ESVRegistry [{naming} size={len(self)} seeded={self.seeded}]>"

    @property
    def sort_key(self) -> Callable[[str], object]:
        """Return the sort key for the names of this registry."""
        return esv_sort_key(self.prefix)

    def name_for(self, sequence: str) -> Optional[str]:
        """Return the name of a sequence, or None if it has no name."""
        return self._seq_to_name.get(sequence)

    def sequence_for(self, name: str) -> Optional[str]:
        """Return the sequence of a name, or None if the name is unused."""
        return self._name_to_seq.get(name)

    def _bind(self, name: str, sequence: str) -> None:
        self._seq_to_name[sequence] = name
        self._name_to_seq[name] = sequence

    def new_name(self, sequence: str) -> str:
        """Compute the name a new sequence would get."""
        if self.prefix:
            return f"{self.prefix}{1 + len(self._seq_to_name)}"
        return content_hash(sequence, self.hash_function)

    def assign(self, sequence: str) -> str:
        """Return the name of a sequence, naming it first if needed.

        :param sequence: the sequence
        :returns: the name of the sequence
        :raises InternalConsistencyError: if the new name is already used for
            another sequence
        """
        name = self._seq_to_name.get(sequence)
        if name is not None:
            return name

        name = self.new_name(sequence)
        if name in self._name_to_seq:
            raise InternalConsistencyError(f"zotu name {name} is already in use!")
        self._bind(name, sequence)
        return name

    def seed(
        self, name: str, sequence: str, source: Optional[PathType] = None
    ) -> bool:
        """Bind a name from a previous run.

        :param name: the existing name
        :param sequence: its sequence
        :param source: the file the name was read from (for messages)
        :returns: True if the name was added, False if the sequence already
            had a name
        :raises InputFormatError: if the name is bound to another sequence
        """
        if sequence in self._seq_to_name:
            logger.warning("Warning, sequence for %s is a duplicate, ignored", name)
            return False
        if name in self._name_to_seq:
            raise InputFormatError(f"Duplicate ESV name {name}", fname=source)
        self._bind(name, sequence)
        self.seeded += 1
        return True

    def seed_from_fasta(self, path: PathType) -> int:
        """Load the names of a previous run from a FASTA file.

        :param path: the FASTA file written by a previous run
        :returns: the number of names loaded
        """
        n = 0
        for record in read_fasta(path):
            n += self.seed(record.id, record.sequence, source=path)
        logger.info("Read %s ESV names from %s", n, path)
        return n

    def items(self) -> Iterator[tuple[str, str]]:
        """Iterate over (name, sequence) tuples in output order."""
        for name in sorted(self._name_to_seq, key=self.sort_key):
            yield name, self._name_to_seq[name]

    def write_fasta(self, path: PathType) -> int:
        """Write all named sequences in output order.

        :param path: the output FASTA file
        :returns: the number of sequences written
        """
        with atomic_output(path) as tmp:
            return write_fasta(tmp, self.items())


class CountTable:
    """Read counts per (primer, sample index, ESV name).

    Every key can only be written once.
    """

    def __init__(self):
        """Create an empty table."""
        self._counts: dict[str, dict[str, dict[str, int]]] = {}

    def __len__(self) -> int:
        """Return the number of cells."""
        return sum(
            len(cells)
            for by_index in self._counts.values()
            for cells in by_index.values()
        )

    def add(self, primer_name: str, index: str, esv: str, count: int) -> None:
        """Record the count of an ESV in a sample.

        :raises InternalConsistencyError: if the cell was already written
        """
        cells = self._counts.setdefault(primer_name, {}).setdefault(index, {})
        if esv in cells:
            raise InternalConsistencyError(
                f"Count for {primer_name} {index} {esv} was already recorded"
            )
        cells[esv] = count

    def get(self, primer_name: str, index: str, esv: str) -> Optional[int]:
        """Return the count of a cell, or None if it was not written."""
        return self._counts.get(primer_name, {}).get(index, {}).get(esv)

    def total(self, primer_name: str, index: str) -> int:
        """Return the total count of a primer in a sample."""
        return sum(self._counts.get(primer_name, {}).get(index, {}).values())

    @property
    def total_count(self) -> int:
        """Return the sum of all cells."""
        return sum(
            count
            for by_index in self._counts.values()
            for esvs in by_index.values()
            for count in esvs.values()
        )

    def rows(self, sort_key: Callable[[str], object] = str) -> Iterator[EsvCountRow]:
        """Iterate over the cells in output order.

        Primers and sample indices are sorted as strings and the ESVs of a
        sample by `sort_key`.
        """
        for primer_name in sorted(self._counts):
            by_index = self._counts[primer_name]
            for index in sorted(by_index):
                cells = by_index[index]
                tot = sum(cells.values())
                for esv in sorted(cells, key=sort_key):
                    yield EsvCountRow(
                        primer_name=primer_name,
                        index=index,
                        Zotu=esv,
                        count=cells[esv],
                        tot=tot,
                    )
