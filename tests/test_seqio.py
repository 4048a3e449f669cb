"""Tests for reading and writing sequence files and tables.

Copyright © 2024 Pixelgen Technologies AB.
"""

import pytest

from ampliplex.exception import InputFormatError, InvalidSequenceError
from ampliplex.seqio import (
    BarcodeDescriptorRow,
    ObservationRow,
    read_fasta,
    read_fasta_dict,
    read_paired_fastq,
    read_records,
    read_table,
    write_fasta,
    write_table,
)
from tests.helpers import write_fastq_text


def test_read_fasta_multiline(tmp_path):
    path = tmp_path / "seqs.fa"
    path.write_text(">first comment here\nacgt\nACGT\n>second\nTTTT\n")
    records = list(read_fasta(path))
    assert [r.id for r in records] == ["first", "second"]
    assert records[0].sequence == "ACGTACGT"


def test_read_fasta_invalid_sequence(tmp_path):
    path = tmp_path / "seqs.fa"
    path.write_text(">first\nACG1T\n")
    with pytest.raises(InvalidSequenceError):
        list(read_fasta(path))


def test_read_fasta_dict_duplicates(tmp_path):
    path = tmp_path / "seqs.fa"
    path.write_text(">a\nACGT\n>a\nTTTT\n")
    with pytest.raises(InputFormatError):
        read_fasta_dict(path)


def test_write_fasta(tmp_path):
    path = tmp_path / "out.fa"
    n = write_fasta(path, [("x", "ACGT"), ("y", "GGCC")])
    assert n == 2
    assert path.read_text() == ">x\nACGT\n>y\nGGCC\n"


def test_read_paired_fastq(tmp_path):
    r1 = write_fastq_text(tmp_path / "r1.fastq", [("p1", "ACGT"), ("p2", "GGGG")])
    r2 = write_fastq_text(tmp_path / "r2.fastq", [("p1", "TTTT"), ("p2", "CCCC")])
    pairs = list(read_paired_fastq(r1, r2))
    assert [(a.name, b.sequence) for a, b in pairs] == [("p1", "TTTT"), ("p2", "CCCC")]


def test_read_paired_fastq_different_lengths(tmp_path):
    r1 = write_fastq_text(tmp_path / "r1.fastq", [("p1", "ACGT"), ("p2", "GGGG")])
    r2 = write_fastq_text(tmp_path / "r2.fastq", [("p1", "TTTT")])
    with pytest.raises(InputFormatError):
        list(read_paired_fastq(r1, r2))


def test_read_table(tmp_path):
    path = tmp_path / "table.tsv"
    path.write_text("primer_name\tcount\tsequence\nP1\t3\tACGT\n")
    df = read_table(path, ["primer_name", "count"])
    assert list(df.columns) == ["primer_name", "count", "sequence"]
    assert df.loc[0, "count"] == "3"


def test_read_table_missing_column(tmp_path):
    path = tmp_path / "table.tsv"
    path.write_text("primer_name\tsequence\nP1\tACGT\n")
    with pytest.raises(InputFormatError, match="No field count"):
        read_table(path, ["primer_name", "count"])


def test_read_table_wrong_number_of_fields(tmp_path):
    path = tmp_path / "table.tsv"
    path.write_text("primer_name\tcount\tsequence\nP1\t3\n")
    with pytest.raises(InputFormatError):
        read_table(path)


def test_read_records_keeps_extra_columns(tmp_path):
    path = tmp_path / "model.tsv"
    path.write_text("primer_name\tNs\tinline_index\tbegin\tnote\nP1\tNN\tACGT\tGG\tx\n")
    (row,) = read_records(path, BarcodeDescriptorRow)
    assert row.primer_name == "P1"
    assert row.model_dump()["note"] == "x"


def test_read_records_invalid_value(tmp_path):
    path = tmp_path / "parse.tab"
    path.write_text("primer_name\tcount\tsequence\nP1\tmany\tACGT\n")
    with pytest.raises(InputFormatError):
        read_records(path, ObservationRow)


def test_write_table(tmp_path):
    path = tmp_path / "out.tsv"
    n = write_table(path, ["a", "b"], [["x", 1], ["y", 2]])
    assert n == 2
    assert path.read_text() == "a\tb\nx\t1\ny\t2\n"
    assert sorted(p.name for p in tmp_path.iterdir()) == ["out.tsv"]


def test_write_table_failure_leaves_no_output(tmp_path):
    path = tmp_path / "out.tsv"

    def rows():
        yield ["x", 1]
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        write_table(path, ["a", "b"], rows())
    assert list(tmp_path.iterdir()) == []
