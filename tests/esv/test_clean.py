"""Tests for denoising and aggregating observation tables.

Copyright © 2024 Pixelgen Technologies AB.
"""

from pathlib import Path

import pytest

from ampliplex.config import CleanSettings
from ampliplex.esv.clean import (
    AggregationContext,
    clean_observations,
    filter_observations,
    parse_ampout,
    sample_index_from_path,
)
from ampliplex.esv.registry import ESVRegistry
from ampliplex.exception import InputFormatError, InternalConsistencyError
from ampliplex.seqio import EsvCountRow, ObservationRow, read_fasta, read_records

SEQ_A = "ACGTACGTACGTAAAA"
SEQ_B = "ACGTACGTACGTCCCC"
SEQ_C = "ACGTACGTACGTGGGG"


class FakeDenoiser:
    """Keep every sequence except the given chimeras."""

    def __init__(self, chimeras=(), renumber=0):
        self.chimeras = set(chimeras)
        self.renumber = renumber
        self.calls = []

    def unoise3(self, fasta, ampout, min_size):
        self.calls.append((Path(fasta), Path(ampout), min_size))
        with open(ampout, "w") as fh:
            for record in read_fasta(fasta):
                amptype = "chimera" if record.sequence in self.chimeras else "otu"
                name = record.id
                if self.renumber:
                    name = name.replace("SEQ", f"SEQ{self.renumber}")
                fh.write(f">{name}amptype={amptype};\n{record.sequence}\n")
        return Path(ampout)


def _write_observations(path, rows):
    with open(path, "w") as fh:
        fh.write("primer_name\tcount\tsequence\n")
        for primer_name, count, sequence in rows:
            fh.write(f"{primer_name}\t{count}\t{sequence}\n")
    return path


@pytest.fixture(name="settings")
def settings_fixture():
    return CleanSettings(min_count=2, min_length=10)


@pytest.mark.parametrize(
    "name,expected",
    [("IT012.parse.tab", "IT012"), ("run/S3_L001.tab", "S3"), ("A1.x", "A1")],
)
def test_sample_index_from_path(name, expected):
    assert sample_index_from_path(name) == expected


def test_sample_index_from_invalid_path():
    with pytest.raises(InputFormatError):
        sample_index_from_path("sample.parse.tab")


def test_filter_observations(settings):
    rows = [
        ObservationRow(primer_name="V4R1", count=5, sequence=SEQ_A),
        ObservationRow(primer_name="V4R1", count=1, sequence=SEQ_B),
        ObservationRow(primer_name="V4R2", count=9, sequence="ACGT"),
        ObservationRow(primer_name="V4R3", count=9, sequence=SEQ_C),
    ]
    assert [r.sequence for r in filter_observations(rows, settings)] == [SEQ_A, SEQ_C]

    only_three = CleanSettings(min_count=2, min_length=10, primers="3")
    assert [r.primer_name for r in filter_observations(rows, only_three)] == ["V4R3"]


def test_filter_observations_invalid_primer_name():
    rows = [ObservationRow(primer_name="806R_1", count=5, sequence=SEQ_A)]
    settings = CleanSettings(min_count=1, min_length=1, primers="1")
    with pytest.raises(InputFormatError):
        filter_observations(rows, settings)


def test_parse_ampout(tmp_path):
    path = tmp_path / "out.u"
    path.write_text(
        ">SEQ0;size=5;amptype=otu;\nACGT\n>SEQ12;size=2;amptype=chimera;\nACGT\n"
    )
    assert list(parse_ampout(path)) == [(0, "otu"), (12, "chimera")]


def test_parse_ampout_invalid_header(tmp_path):
    path = tmp_path / "out.u"
    path.write_text(">read1;size=5\nACGT\n")
    with pytest.raises(InputFormatError):
        list(parse_ampout(path))


def test_parse_ampout_wrapped_sequences(tmp_path):
    path = tmp_path / "out.u"
    path.write_text(
        ">SEQ3;size=9;amptype=otu;\nACGT\nACGT\n>SEQ4;size=2;amptype=otu;\nAC\n"
    )
    assert list(parse_ampout(path)) == [(3, "otu"), (4, "otu")]


def test_parse_ampout_not_fasta(tmp_path):
    path = tmp_path / "out.u"
    path.write_text("SEQ3;size=9;amptype=otu;\nACGT\n")
    with pytest.raises(InputFormatError):
        list(parse_ampout(path))



def test_same_sequence_in_two_samples(settings, tmp_path):
    first = _write_observations(tmp_path / "IT001.parse.tab", [("806R_1", 5, SEQ_A)])
    second = _write_observations(tmp_path / "IT002.parse.tab", [("806R_1", 7, SEQ_A)])
    context = AggregationContext(settings, FakeDenoiser())
    stats = clean_observations([first, second], tmp_path / "esv", context)

    rows = read_records(tmp_path / "esv.tsv", EsvCountRow)
    name = context.registry.name_for(SEQ_A)
    assert [(r.index, r.Zotu, r.count, r.tot) for r in rows] == [
        ("IT001", name, 5, 5),
        ("IT002", name, 7, 7),
    ]
    assert [(r.id, r.sequence) for r in read_fasta(tmp_path / "esv.fna")] == [
        (name, SEQ_A)
    ]
    assert stats.esvs == 1
    assert stats.new_esvs == 1
    assert stats.input_reads == 12
    assert stats.output_reads == 12


def test_chimeras_are_dropped(settings, tmp_path):
    obs = _write_observations(
        tmp_path / "IT001.parse.tab",
        [("806R_1", 9, SEQ_A), ("806R_1", 4, SEQ_B), ("806R_2", 3, SEQ_C)],
    )
    denoiser = FakeDenoiser(chimeras=[SEQ_B])
    context = AggregationContext(
        CleanSettings(min_count=2, min_length=10, name_prefix="Zotu"), denoiser
    )
    stats = clean_observations([obs], tmp_path / "esv", context)

    rows = read_records(tmp_path / "esv.tsv", EsvCountRow)
    assert [(r.primer_name, r.Zotu, r.count, r.tot) for r in rows] == [
        ("806R_1", "Zotu1", 9, 9),
        ("806R_2", "Zotu2", 3, 3),
    ]
    assert stats.partitions == 2
    assert stats.chimeras == 1
    assert stats.amplicons == 2
    assert stats.output_reads == 12
    assert stats.kept_percent == pytest.approx(100 * 13 / 17)

    # one denoiser call per primer, with the minimum count as minimum size
    assert [call[2] for call in denoiser.calls] == [2, 2]
    # the temporary files of each partition are removed
    for fasta, ampout, _ in denoiser.calls:
        assert not fasta.exists()
        assert not ampout.exists()


def test_seeded_names_are_reused(settings, tmp_path):
    registry = ESVRegistry(prefix="Zotu")
    registry.seed("Zotu1", SEQ_B)
    obs = _write_observations(
        tmp_path / "IT001.parse.tab", [("806R_1", 9, SEQ_A), ("806R_1", 4, SEQ_B)]
    )
    context = AggregationContext(settings, FakeDenoiser(), registry=registry)
    stats = clean_observations([obs], tmp_path / "esv", context)

    assert registry.name_for(SEQ_B) == "Zotu1"
    assert registry.name_for(SEQ_A) == "Zotu2"
    assert stats.seeded_esvs == 1
    assert stats.new_esvs == 1
    fasta_names = [r.id for r in read_fasta(tmp_path / "esv.fna")]
    assert fasta_names == ["Zotu1", "Zotu2"]


def test_empty_sample_is_counted(settings, tmp_path):
    low = _write_observations(tmp_path / "IT003.parse.tab", [("806R_1", 1, SEQ_A)])
    context = AggregationContext(settings, FakeDenoiser())
    stats = clean_observations([low], tmp_path / "esv", context)
    assert stats.empty_files == 1
    assert stats.esvs == 0
    header = (tmp_path / "esv.tsv").read_text()
    assert header == "primer_name\tindex\tZotu\tcount\ttot\n"


def test_duplicate_index_is_fatal(settings, tmp_path):
    (tmp_path / "a").mkdir()
    (tmp_path / "b").mkdir()
    first = _write_observations(tmp_path / "a" / "IT001.parse.tab", [])
    second = _write_observations(tmp_path / "b" / "IT001.parse.tab", [])
    context = AggregationContext(settings, FakeDenoiser())
    with pytest.raises(InputFormatError, match="Duplicate index IT001"):
        clean_observations([first, second], tmp_path / "esv", context)
    assert not (tmp_path / "esv.tsv").exists()


def test_unknown_sequence_number_is_fatal(settings, tmp_path):
    obs = _write_observations(tmp_path / "IT001.parse.tab", [("806R_1", 9, SEQ_A)])
    context = AggregationContext(settings, FakeDenoiser(renumber=5))
    with pytest.raises(InternalConsistencyError):
        clean_observations([obs], tmp_path / "esv", context)


def test_failed_table_write_leaves_no_fasta(settings, tmp_path, monkeypatch):
    obs = _write_observations(tmp_path / "IT001.parse.tab", [("806R_1", 5, SEQ_A)])

    def failing_write_table(path, columns, rows):
        raise OSError("No space left on device")

    monkeypatch.setattr("ampliplex.esv.clean.write_table", failing_write_table)
    context = AggregationContext(settings, FakeDenoiser())
    with pytest.raises(OSError, match="No space left"):
        clean_observations([obs], tmp_path / "esv", context)

    assert not (tmp_path / "esv.fna").exists()
    assert not (tmp_path / "esv.tsv").exists()
    assert not any(p.name.startswith(".esv.fna") for p in tmp_path.iterdir())
