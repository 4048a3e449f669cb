"""Configuration and shared files/objects for the testing framework.

Copyright © 2024 Pixelgen Technologies AB.
"""

import pytest

from ampliplex.demux.model import InlineModel
from tests.helpers import (
    BARCODE_TABLE,
    FAKE_PEAR,
    FAKE_USEARCH,
    INSERT_A,
    INSERT_B,
    make_inline_read,
    write_executable,
    write_fasta_text,
)


@pytest.fixture(name="barcode_table")
def barcode_table_fixture(tmp_path):
    """Write a barcode table with two primers at different offsets."""
    path = tmp_path / "inline_806R.tsv"
    path.write_text(BARCODE_TABLE)
    return path


@pytest.fixture(name="inline_model")
def inline_model_fixture(barcode_table):
    """Load the two-primer barcode table."""
    return InlineModel.from_file(barcode_table)


@pytest.fixture(name="merged_reads")
def merged_reads_fixture(tmp_path):
    """Write a FASTA file of merged reads.

    Two reads carry INSERT_A and one INSERT_B for primer 1, one read has
    INSERT_A for primer 2, one read has no barcode and one has no end.
    """
    records = [
        ("read1", make_inline_read(INSERT_A)),
        ("read2", make_inline_read(INSERT_B)),
        ("read3", make_inline_read(INSERT_A)),
        ("read4", make_inline_read(INSERT_A, primer=2, extra="ACGT")),
        ("read5", "T" * 60),
        ("read6", make_inline_read(INSERT_B)[:-30]),
    ]
    return write_fasta_text(tmp_path / "IT001.filtered", records)


@pytest.fixture(name="fake_usearch")
def fake_usearch_fixture(tmp_path):
    """Create a usearch stand-in that keeps every sequence."""
    return write_executable(tmp_path / "usearch", FAKE_USEARCH)


@pytest.fixture(name="fake_pear")
def fake_pear_fixture(tmp_path):
    """Create a pear stand-in that passes read 1 through as merged reads."""
    return write_executable(tmp_path / "pear", FAKE_PEAR)
