"""Wrapper around the usearch program.

usearch is used to filter reads by expected errors, to remove noisy and
chimeric sequences (unoise3) and to assign taxonomy (sintax).

Copyright © 2024 Pixelgen Technologies AB.
"""

from __future__ import annotations

import logging
from pathlib import Path

from ampliplex.external.process import find_executable, run_command
from ampliplex.types import PathType

logger = logging.getLogger(__name__)


class Usearch:
    """Build and run usearch command lines.

    :ivar executable: the usearch program name or path
    :ivar quiet: pass `-quiet` to commands that support it
    """

    def __init__(self, executable: str = "usearch", quiet: bool = True):
        """Create a wrapper for a usearch executable."""
        self.executable = executable
        self.quiet = quiet

    def __repr__(self) -> str:
        """Return a string representation of the wrapper."""
        return f"Usearch({self.executable!r}, quiet={self.quiet})"

    def unoise3_command(
        self, fasta: PathType, ampout: PathType, min_size: int
    ) -> list[str]:
        """Return the command to denoise a FASTA file with size annotations."""
        cmd = [
            self.executable,
            "-unoise3",
            str(fasta),
            "-minsize",
            str(min_size),
            "-ampout",
            str(ampout),
        ]
        if self.quiet:
            cmd.append("-quiet")
        return cmd

    def unoise3(self, fasta: PathType, ampout: PathType, min_size: int) -> Path:
        """Denoise sequences and classify them as real amplicons or chimeras.

        :param fasta: sequences with headers like `SEQ0;size=12;`
        :param ampout: the output file with an `amptype=` annotation per sequence
        :param min_size: the minimum abundance of a sequence
        :returns: the path to the output file
        :raises ExternalToolError: if usearch fails
        """
        self._run(self.unoise3_command(fasta, ampout, min_size), ampout)
        return Path(ampout)

    def fastq_filter_command(
        self, fastq: PathType, fasta_out: PathType, max_ee: float
    ) -> list[str]:
        """Return the command to filter reads by their expected errors."""
        return [
            self.executable,
            "-fastq_filter",
            str(fastq),
            "-fastq_maxee",
            str(max_ee),
            "-fastaout",
            str(fasta_out),
        ]

    def fastq_filter(self, fastq: PathType, fasta_out: PathType, max_ee: float) -> Path:
        """Write the reads with at most `max_ee` expected errors as FASTA.

        :raises ExternalToolError: if usearch fails
        """
        self._run(self.fastq_filter_command(fastq, fasta_out, max_ee), fasta_out)
        return Path(fasta_out)

    def sintax_command(
        self, fasta: PathType, db: PathType, tabbedout: PathType, strand: str = "both"
    ) -> list[str]:
        """Return the command to classify sequences against a taxonomy database."""
        cmd = [
            self.executable,
            "-sintax",
            str(fasta),
            "-db",
            str(db),
            "-strand",
            strand,
            "-tabbedout",
            str(tabbedout),
        ]
        if self.quiet:
            cmd.append("-quiet")
        return cmd

    def sintax(self, fasta: PathType, db: PathType, tabbedout: PathType) -> Path:
        """Assign taxonomy to the sequences of a FASTA file.

        :param fasta: the named sequences
        :param db: the sintax database
        :param tabbedout: the tab-separated output
        :returns: the path to the output
        :raises ExternalToolError: if usearch fails
        """
        self._run(self.sintax_command(fasta, db, tabbedout), tabbedout)
        return Path(tabbedout)

    def _run(self, cmd: list[str], output: PathType) -> None:
        cmd = [find_executable(self.executable)] + cmd[1:]
        run_command(cmd, expected_outputs=[output])
