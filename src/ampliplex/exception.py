"""
This module contains all the extra exception classes and handling
defined by ampliplex

Copyright © 2024 Pixelgen Technologies AB.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence, Union


class AmpliplexError(Exception):
    """Base class for all fatal ampliplex errors."""


class ConfigurationError(AmpliplexError):
    """
    A malformed barcode table, option value or settings file.

    Raised at startup, before any read is processed.
    """


class InputFormatError(AmpliplexError):
    """
    Class to manage malformed input files.

    Attributes:
        msg: the error message to output
        fname: the name of the offending file (if known)
    """

    def __init__(self, msg: str, fname: Optional[Union[str, Path]] = None):
        self.msg = msg
        self.fname = fname
        super().__init__(msg if fname is None else f"{msg} in {fname}")


class InvalidSequenceError(InputFormatError):
    """A sequence contains characters outside the supported alphabet."""


class InternalConsistencyError(AmpliplexError):
    """
    A logic or environment error that must never be tolerated.

    Examples are a name bound to two sequences, a count table key written
    twice, or an unknown sequence id returned by an external tool.
    """


class ExternalToolError(AmpliplexError):
    """
    Class to manage failed invocations of external programs.

    Attributes:
        command: the command line that was executed
        returncode: the exit status (None if the program could not start)
        stderr: the captured standard error of the program
    """

    def __init__(
        self,
        msg: str,
        command: Sequence[str],
        returncode: Optional[int] = None,
        stderr: str = "",
    ):
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(msg)
