"""Tests for ESV naming and count tables.

Copyright © 2024 Pixelgen Technologies AB.
"""

import hashlib

import pytest
import xxhash

from ampliplex.esv.registry import (
    CountTable,
    ESVRegistry,
    compare_esv_names,
    content_hash,
)
from ampliplex.exception import InputFormatError, InternalConsistencyError
from tests.helpers import write_fasta_text

SEQ_A = "ACGTACGTAAAA"
SEQ_B = "ACGTACGTCCCC"
SEQ_C = "ACGTACGTGGGG"


def test_content_hash():
    assert content_hash(SEQ_A) == hashlib.md5(SEQ_A.encode()).hexdigest()
    assert content_hash(SEQ_A, "xxh3") == xxhash.xxh3_128_hexdigest(SEQ_A.encode())
    with pytest.raises(ValueError):
        content_hash(SEQ_A, "sha1")


@pytest.mark.parametrize(
    "a,b,prefix,expected",
    [
        ("P2", "P10", "P", -1),
        ("P10", "P2", "P", 1),
        ("P7", "P7", "P", 0),
        ("P2", "P10", "", 1),
        ("P2", "Px", "P", -1),
        ("abc", "abd", "", -1),
    ],
)
def test_compare_esv_names(a, b, prefix, expected):
    assert compare_esv_names(a, b, prefix=prefix) == expected


def test_hash_naming_is_stable():
    first = ESVRegistry()
    second = ESVRegistry()
    second.assign(SEQ_B)
    assert first.assign(SEQ_A) == second.assign(SEQ_A)
    assert first.assign(SEQ_A) == hashlib.md5(SEQ_A.encode()).hexdigest()


def test_prefix_naming():
    registry = ESVRegistry(prefix="Zotu")
    assert registry.assign(SEQ_A) == "Zotu1"
    assert registry.assign(SEQ_B) == "Zotu2"
    assert registry.assign(SEQ_A) == "Zotu1"
    assert len(registry) == 2
    assert registry.sequence_for("Zotu2") == SEQ_B
    assert registry.name_for(SEQ_C) is None
    assert SEQ_A in registry


def test_seed_keeps_names_and_continues_numbering():
    registry = ESVRegistry(prefix="P")
    assert registry.seed("P1", SEQ_A)
    assert registry.assign(SEQ_A) == "P1"
    assert registry.assign(SEQ_B) == "P2"
    assert registry.seeded == 1


def test_seed_duplicate_sequence_is_ignored():
    registry = ESVRegistry(prefix="P")
    assert registry.seed("P1", SEQ_A)
    assert not registry.seed("P9", SEQ_A)
    assert registry.name_for(SEQ_A) == "P1"
    assert registry.sequence_for("P9") is None


def test_seed_duplicate_name_is_fatal():
    registry = ESVRegistry(prefix="P")
    registry.seed("P1", SEQ_A)
    with pytest.raises(InputFormatError):
        registry.seed("P1", SEQ_B)


def test_name_collision_is_fatal():
    registry = ESVRegistry(prefix="P")
    registry.seed("P2", SEQ_A)
    with pytest.raises(InternalConsistencyError, match="already in use"):
        registry.assign(SEQ_B)


def test_seed_from_fasta_and_write(tmp_path):
    seed = write_fasta_text(
        tmp_path / "seed.fa", [("P10", SEQ_A), ("P2", SEQ_B), ("P3", SEQ_B)]
    )
    registry = ESVRegistry(prefix="P")
    assert registry.seed_from_fasta(seed) == 2
    registry.assign(SEQ_C)

    output = tmp_path / "out.fa"
    assert registry.write_fasta(output) == 3
    assert output.read_text() == f">P2\n{SEQ_B}\n>P3\n{SEQ_C}\n>P10\n{SEQ_A}\n"


def test_count_table():
    table = CountTable()
    table.add("806R_1", "IT002", "P2", 7)
    table.add("806R_1", "IT001", "P10", 3)
    table.add("806R_1", "IT001", "P2", 5)
    table.add("806R_0", "IT009", "P1", 1)

    assert table.get("806R_1", "IT001", "P2") == 5
    assert table.get("806R_1", "IT001", "P3") is None
    assert table.total("806R_1", "IT001") == 8
    assert table.total_count == 16
    assert len(table) == 4

    rows = [
        (r.primer_name, r.index, r.Zotu, r.count, r.tot)
        for r in table.rows(sort_key=ESVRegistry(prefix="P").sort_key)
    ]
    assert rows == [
        ("806R_0", "IT009", "P1", 1, 1),
        ("806R_1", "IT001", "P2", 5, 8),
        ("806R_1", "IT001", "P10", 3, 8),
        ("806R_1", "IT002", "P2", 7, 7),
    ]


def test_count_table_duplicate_key():
    table = CountTable()
    table.add("806R_1", "IT001", "P1", 5)
    with pytest.raises(InternalConsistencyError):
        table.add("806R_1", "IT001", "P1", 5)
