"""Sequences, file writers and fake programs shared by the tests.

Copyright © 2024 Pixelgen Technologies AB.
"""

import stat
from pathlib import Path

BARCODE_1 = "ACGTACGTACGTACGT"
BARCODE_2 = "TTGGCCAATTGGCCAA"
# the default end sequence with K -> G and R -> A
END_SEQUENCE = "TTACCGCGGCGGCTGACAC"
# the reverse complement of the default end sequence with M -> A and Y -> C
MATE_END_SEQUENCE = "GTGCCAGCAGCCGCGGTAA"

INSERT_A = "GATTACAGATTACAGATTACA"
INSERT_B = "CCCTTTGGGAAACCCTTTGGG"

BARCODE_TABLE = (
    "primer_name\tNs\tinline_index\tbegin\tnote\n"
    f"806R_1\tNN\t{BARCODE_1}\tACNT\tfirst\n"
    f"806R_2\tNNN\t{BARCODE_2}\tGGAC\tsecond\n"
)


def make_inline_read(insert: str, primer: int = 1, extra: str = "AC") -> str:
    """Build a merged read of a primer with an insert and the end sequence."""
    if primer == 1:
        head = "GG" + BARCODE_1 + "ACAT"
    else:
        head = "GGG" + BARCODE_2 + "GGAC"
    return head + insert + END_SEQUENCE + extra


def write_fasta_text(path: Path, records) -> Path:
    """Write (name, sequence) tuples as a FASTA file."""
    with open(path, "w") as fh:
        for name, seq in records:
            fh.write(f">{name}\n{seq}\n")
    return path


def write_fastq_text(path: Path, records) -> Path:
    """Write (name, sequence) tuples as a FASTQ file with constant qualities."""
    with open(path, "w") as fh:
        for name, seq in records:
            fh.write(f"@{name}\n{seq}\n+\n{'I' * len(seq)}\n")
    return path


def write_executable(path: Path, script: str) -> Path:
    """Write a shell script and make it executable."""
    path.write_text(script)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


FAKE_USEARCH = """#!/bin/sh
mode=""
while [ $# -gt 0 ]; do
  case "$1" in
    -unoise3) mode=unoise3; in="$2"; shift 2;;
    -fastq_filter) mode=filter; in="$2"; shift 2;;
    -sintax) mode=sintax; in="$2"; shift 2;;
    -ampout|-fastaout|-tabbedout) out="$2"; shift 2;;
    *) shift;;
  esac
done
case "$mode" in
  unoise3)
    awk '/^>/ {print $0 "amptype=otu;"; next} {print}' "$in" > "$out";;
  filter)
    awk 'NR % 4 == 1 {print ">" substr($0, 2)} NR % 4 == 2 {print}' "$in" > "$out";;
  sintax)
    awk '/^>/ {name = substr($0, 2); printf "%s\\td:Bacteria(1.00)\\t-\\td:Bacteria\\n", name}' "$in" > "$out";;
  *)
    echo "unknown command" >&2; exit 1;;
esac
"""

FAKE_PEAR = """#!/bin/sh
while [ $# -gt 0 ]; do
  case "$1" in
    -f) r1="$2"; shift 2;;
    -r) r2="$2"; shift 2;;
    -o) out="$2"; shift 2;;
    *) shift;;
  esac
done
cp "$r1" "$out.assembled.fastq"
n=$(awk 'END {print NR / 4}' "$r1")
echo "Assembled reads ...................: $n / $n (100.000%)"
"""
