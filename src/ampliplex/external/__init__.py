"""Boundaries to the external programs used by ampliplex.

Copyright © 2024 Pixelgen Technologies AB.
"""

from ampliplex.external.pear import Pear
from ampliplex.external.process import find_executable, run_command
from ampliplex.external.usearch import Usearch

__all__ = ["Pear", "Usearch", "find_executable", "run_command"]
