"""Tests for demultiplexing read pairs.

Copyright © 2024 Pixelgen Technologies AB.
"""

import logging

import dnaio
import pytest

from ampliplex.demux.insert import EndTrimMode
from ampliplex.demux.paired import PairedDemultiplexer, output_paths, select_expected
from ampliplex.exception import ConfigurationError, InputFormatError
from tests.helpers import (
    INSERT_A,
    INSERT_B,
    MATE_END_SEQUENCE,
    make_inline_read,
    write_fastq_text,
)

MATE_TAIL = "TTTTGGGGCCCCAAAA"


@pytest.fixture(name="read_pairs")
def read_pairs_fixture(tmp_path):
    r1 = [
        ("pair1", make_inline_read(INSERT_A)),
        ("pair2", make_inline_read(INSERT_B, primer=2)),
        ("pair3", "T" * 50),
        ("pair4", make_inline_read(INSERT_B)),
    ]
    r2 = [
        ("pair1", "CA" + MATE_END_SEQUENCE + MATE_TAIL),
        ("pair2", "CA" + MATE_END_SEQUENCE + MATE_TAIL),
        ("pair3", "CA" + MATE_END_SEQUENCE + MATE_TAIL),
        ("pair4", "G" * 40),
    ]
    return (
        write_fastq_text(tmp_path / "S1_R1_001.fastq", r1),
        write_fastq_text(tmp_path / "S1_R2_001.fastq", r2),
    )


def _read_all(path):
    with dnaio.open(str(path)) as reader:
        return [(r.name, r.sequence, r.qualities) for r in reader]


def test_output_paths(tmp_path):
    assert output_paths(tmp_path / "run", 3) == (
        tmp_path / "run_p3_R1.fastq",
        tmp_path / "run_p3_R2.fastq",
    )


def test_select_expected(inline_model):
    assert sorted(select_expected(inline_model, [2, 1])) == [1, 2]
    with pytest.raises(ConfigurationError, match="Expect number 5"):
        select_expected(inline_model, [1, 5])


def test_demultiplex_required_end(inline_model, read_pairs, tmp_path):
    demux = PairedDemultiplexer(inline_model, [1])
    outputs = demux.run(*read_pairs, tmp_path / "out")

    assert list(outputs) == [1]
    out1, out2 = outputs[1]
    reads1 = _read_all(out1)
    reads2 = _read_all(out2)
    assert [r[0] for r in reads1] == ["pair1"]
    assert reads1[0][1].startswith(INSERT_A)
    assert len(reads1[0][2]) == len(reads1[0][1])
    assert reads2[0][1] == MATE_TAIL

    stats = demux.stats
    assert stats.read_pairs == 4
    assert stats.kept == 1
    assert stats.unexpected == 1
    assert stats.unclassified == 1
    assert stats.missing_end == 1
    assert stats.primer_counter == {1: 1}


def test_demultiplex_optional_end(inline_model, read_pairs, tmp_path):
    demux = PairedDemultiplexer(inline_model, [1, 2], end_trim=EndTrimMode.OPTIONAL)
    outputs = demux.run(*read_pairs, tmp_path / "out")

    assert [r[0] for r in _read_all(outputs[1][0])] == ["pair1", "pair4"]
    assert [r[1] for r in _read_all(outputs[1][1])] == [MATE_TAIL, "G" * 40]
    assert [r[0] for r in _read_all(outputs[2][0])] == ["pair2"]
    assert demux.stats.untrimmed_mates == 1
    assert demux.stats.kept == 3


def test_demultiplex_without_end_trim(inline_model, read_pairs, tmp_path):
    demux = PairedDemultiplexer(inline_model, [1], end_trim=EndTrimMode.OFF)
    outputs = demux.run(*read_pairs, tmp_path / "out")
    mates = [r[1] for r in _read_all(outputs[1][1])]
    assert mates == ["CA" + MATE_END_SEQUENCE + MATE_TAIL, "G" * 40]


def test_outputs_exist_for_primers_without_reads(inline_model, tmp_path):
    r1 = write_fastq_text(tmp_path / "r1.fastq", [("p", "T" * 40)])
    r2 = write_fastq_text(tmp_path / "r2.fastq", [("p", "T" * 40)])
    outputs = PairedDemultiplexer(inline_model, [2]).run(r1, r2, tmp_path / "none")
    for path in outputs[2]:
        assert path.is_file()
        assert path.read_text() == ""


def test_unpaired_input_leaves_no_output(inline_model, tmp_path):
    r1 = write_fastq_text(
        tmp_path / "r1.fastq",
        [("p1", make_inline_read(INSERT_A)), ("p2", make_inline_read(INSERT_A))],
    )
    r2 = write_fastq_text(tmp_path / "r2.fastq", [("p1", "CA" + MATE_END_SEQUENCE)])
    with pytest.raises(InputFormatError):
        PairedDemultiplexer(inline_model, [1]).run(r1, r2, tmp_path / "bad")
    assert not (tmp_path / "bad_p1_R1.fastq").exists()
    assert not (tmp_path / "bad_p1_R2.fastq").exists()


def test_summary_is_logged_when_input_fails(inline_model, tmp_path, caplog):
    r1 = write_fastq_text(
        tmp_path / "r1.fastq",
        [(f"p{i}", make_inline_read(INSERT_A)) for i in range(3)],
    )
    r2 = write_fastq_text(
        tmp_path / "r2.fastq",
        [(f"p{i}", "CA" + MATE_END_SEQUENCE + MATE_TAIL) for i in range(2)],
    )
    demultiplexer = PairedDemultiplexer(inline_model, [1])
    with caplog.at_level(logging.INFO, logger="ampliplex"):
        with pytest.raises(InputFormatError):
            demultiplexer.run(r1, r2, tmp_path / "bad")

    assert demultiplexer.stats.read_pairs == 2
    assert "Read 2 reads, kept 2" in caplog.messages
