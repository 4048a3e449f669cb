"""Wrapper around the pear read merger.

Copyright © 2024 Pixelgen Technologies AB.
"""

from __future__ import annotations

import logging
from pathlib import Path

from ampliplex.external.process import find_executable, run_command
from ampliplex.types import PathType

logger = logging.getLogger(__name__)


class Pear:
    """Merge overlapping read pairs with pear."""

    def __init__(self, executable: str = "pear"):
        """Create a wrapper for a pear executable."""
        self.executable = executable

    def __repr__(self) -> str:
        """Return a string representation of the wrapper."""
        return f"Pear({self.executable!r})"

    @staticmethod
    def assembled_path(out_prefix: PathType) -> Path:
        """Return the file with the merged reads for an output prefix."""
        return Path(f"{out_prefix}.assembled.fastq")

    @staticmethod
    def log_path(out_prefix: PathType) -> Path:
        """Return the file with the console output of pear."""
        return Path(f"{out_prefix}.log")

    def merge_command(
        self, read1: PathType, read2: PathType, out_prefix: PathType
    ) -> list[str]:
        """Return the command to merge a pair of FASTQ files."""
        return [
            self.executable,
            "-f",
            str(read1),
            "-r",
            str(read2),
            "-o",
            str(out_prefix),
        ]

    def merge(self, read1: PathType, read2: PathType, out_prefix: PathType) -> Path:
        """Merge read pairs.

        The console output, which includes the number of assembled reads, is
        written to `<out_prefix>.log`.

        :param read1: the FASTQ file with the first reads
        :param read2: the FASTQ file with the mate reads
        :param out_prefix: the prefix of the pear output files
        :returns: the FASTQ file of merged reads
        :raises ExternalToolError: if pear fails
        """
        cmd = self.merge_command(read1, read2, out_prefix)
        cmd[0] = find_executable(self.executable)
        assembled = self.assembled_path(out_prefix)
        run_command(
            cmd, expected_outputs=[assembled], stdout=self.log_path(out_prefix)
        )
        return assembled
