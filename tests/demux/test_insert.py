"""Tests for locating the end anchor of reads.

Copyright © 2024 Pixelgen Technologies AB.
"""

import pytest

from ampliplex.config import InlineEndSettings
from ampliplex.demux.insert import InsertExtractor
from tests.helpers import END_SEQUENCE, INSERT_A, MATE_END_SEQUENCE


@pytest.fixture(name="extractor")
def extractor_fixture():
    return InsertExtractor()


def test_defaults(extractor):
    assert extractor.min_end == 1
    assert extractor.max_end == 4
    assert extractor.window_length == 4 + 19
    assert extractor.mate_pattern.sequence == "GTGYCAGCMGCCGCGGTAA"


@pytest.mark.parametrize("extra", ["A", "AC", "ACG", "ACGT"])
def test_extract_within_range(extractor, extra):
    assert extractor.extract(INSERT_A + END_SEQUENCE + extra) == INSERT_A


@pytest.mark.parametrize("extra", ["", "ACGTA"])
def test_extract_outside_range(extractor, extra):
    assert extractor.extract(INSERT_A + END_SEQUENCE + extra) is None


def test_extract_short_remainder(extractor):
    assert extractor.extract(END_SEQUENCE + "AC") == ""
    assert extractor.extract("ACGT") is None


def test_extract_zero_trailing_bases():
    extractor = InsertExtractor(InlineEndSettings(end_range="0:2"))
    assert extractor.extract(INSERT_A + END_SEQUENCE) == INSERT_A


def test_mate_cut(extractor):
    mate = "CA" + MATE_END_SEQUENCE + "TTTTGGGG"
    assert extractor.mate_cut(mate) == 2 + len(MATE_END_SEQUENCE)


def test_mate_cut_needs_leading_bases(extractor):
    assert extractor.mate_cut(MATE_END_SEQUENCE + "TTTTGGGG") is None


def test_mate_cut_outside_window(extractor):
    assert extractor.mate_cut("CACAC" + MATE_END_SEQUENCE + "TTTT") is None
