"""Matching of DNA sequences that contain IUPAC ambiguity codes.

A pattern is compiled into one acceptance set per position instead of a
regular expression, so that match semantics (fixed length, leftmost
match) do not depend on a regex engine.

Copyright © 2024 Pixelgen Technologies AB.
"""

from __future__ import annotations

from typing import Optional

from ampliplex.exception import InvalidSequenceError

CONCRETE_BASES = "ACGT"

_COMPLEMENT_FROM = "RYKMSWBDHVNATCGXrykmswbdhvnatcg.-"
_COMPLEMENT_TO = "YRMKWSVHDBNTAGCXyrmkwsvhdbntagc.-"
_COMPLEMENT_TABLE = str.maketrans(_COMPLEMENT_FROM, _COMPLEMENT_TO)
_COMPLEMENT_ALPHABET = frozenset(_COMPLEMENT_FROM)

IUPAC_CODES: dict[str, str] = {
    "A": "A",
    "C": "C",
    "G": "G",
    "T": "T",
    "R": "AG",
    "Y": "CT",
    "S": "CG",
    "W": "AT",
    "K": "GT",
    "M": "AC",
    "B": "CGT",
    "D": "AGT",
    "H": "ACT",
    "V": "ACG",
    "N": "ACGT",
}


def reverse_complement(seq: str) -> str:
    """Compute the reverse complement of a DNA sequence.

    Ambiguity codes are mapped to their complementary code, so
    `reverse_complement(reverse_complement(s)) == s`.

    :param seq: the DNA sequence
    :return: the reverse complement of the input sequence
    :raises InvalidSequenceError: if `seq` contains an unsupported character
    """
    invalid = set(seq) - _COMPLEMENT_ALPHABET
    if invalid:
        raise InvalidSequenceError(
            f'Invalid sequence "{seq}" in reverse_complement'
        )
    return seq.translate(_COMPLEMENT_TABLE)[::-1]


class AmbiguityPattern:
    """A fixed-length DNA pattern with wildcard positions.

    By default every character outside `ACGT` is a wildcard that accepts
    any single character. With `iupac=True`, the IUPAC codes accept
    exactly the bases they represent and only unknown characters remain
    wildcards.

    :ivar sequence: the sequence the pattern was compiled from
    """

    __slots__ = ("sequence", "iupac", "_checks")

    def __init__(self, sequence: str, iupac: bool = False):
        """Compile a pattern.

        :param sequence: the DNA sequence, possibly with ambiguity codes
        :param iupac: restrict ambiguity codes to the bases they represent
        """
        self.sequence = sequence
        self.iupac = iupac
        checks: list[tuple[int, frozenset[str]]] = []
        for i, char in enumerate(sequence):
            if char in CONCRETE_BASES:
                checks.append((i, frozenset(char)))
            elif iupac and char in IUPAC_CODES:
                checks.append((i, frozenset(IUPAC_CODES[char])))
        self._checks = tuple(checks)

    def __len__(self) -> int:
        """Return the number of positions in the pattern."""
        return len(self.sequence)

    def __repr__(self) -> str:
        """Return a string representation of the pattern."""
        return f"AmbiguityPattern({self.sequence!r}, iupac={self.iupac})"

    def __eq__(self, other: object) -> bool:
        """Patterns are equal when compiled from the same input."""
        if not isinstance(other, AmbiguityPattern):
            return NotImplemented
        return self.sequence == other.sequence and self.iupac == other.iupac

    def __hash__(self) -> int:
        """Hash on the pattern source."""
        return hash((self.sequence, self.iupac))

    def accepts(self, position: int, base: str) -> bool:
        """Return True if `base` is accepted at `position` of the pattern."""
        for i, allowed in self._checks:
            if i == position:
                return base in allowed
        return 0 <= position < len(self.sequence)

    def match_at(self, text: str, pos: int) -> bool:
        """Return True if the pattern matches `text` starting at `pos`."""
        if pos < 0 or pos + len(self.sequence) > len(text):
            return False
        for i, allowed in self._checks:
            if text[pos + i] not in allowed:
                return False
        return True

    def matches(self, text: str) -> bool:
        """Return True if `text` has the pattern length and matches it."""
        return len(text) == len(self.sequence) and self.match_at(text, 0)

    def search(self, text: str, start: int = 0, end: Optional[int] = None) -> int:
        """Find the leftmost match of the pattern in `text[start:end]`.

        :param text: the text to search
        :param start: the first position to consider
        :param end: the end of the region, the match must lie within it
        :returns: the start position of the match or -1
        """
        stop = len(text) if end is None else min(end, len(text))
        last = stop - len(self.sequence)
        for pos in range(max(start, 0), last + 1):
            if self.match_at(text, pos):
                return pos
        return -1

    def reverse_complement(self) -> AmbiguityPattern:
        """Return the pattern matching the opposite strand."""
        return AmbiguityPattern(reverse_complement(self.sequence), iupac=self.iupac)


def compile_pattern(sequence: str, iupac: bool = False) -> AmbiguityPattern:
    """Compile a DNA sequence with ambiguity codes into a matcher.

    :param sequence: the DNA sequence
    :param iupac: restrict ambiguity codes to the bases they represent
    :returns: the compiled pattern
    """
    return AmbiguityPattern(sequence, iupac=iupac)
