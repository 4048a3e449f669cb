"""Location of the end anchor that closes the insert of a read.

Copyright © 2024 Pixelgen Technologies AB.
"""

from __future__ import annotations

import enum
import logging
from typing import Optional

from ampliplex.config import InlineEndSettings
from ampliplex.patterns import compile_pattern

logger = logging.getLogger(__name__)


class EndTrimMode(str, enum.Enum):
    """How to handle the end anchor at the start of the mate read.

    - `required`: trim the anchor, drop the pair if it is missing
    - `optional`: trim the anchor when it is found, keep the pair otherwise
    - `off`: do not look for the anchor
    """

    REQUIRED = "required"
    OPTIONAL = "optional"
    OFF = "off"


class InsertExtractor:
    """Find the end anchor near the tail of a read or the start of its mate.

    The anchor is followed by `min_end` to `max_end` extra bases, so it is
    searched for in the last `max_end + len(anchor)` bases of the read.
    """

    def __init__(self, settings: Optional[InlineEndSettings] = None):
        """Create an extractor.

        :param settings: the end anchor and the range of extra bases
        """
        self.settings = settings or InlineEndSettings()
        self.min_end = self.settings.min_end
        self.max_end = self.settings.max_end
        self.end_pattern = compile_pattern(self.settings.end_sequence)
        self.mate_pattern = self.end_pattern.reverse_complement()
        self.window_length = self.max_end + len(self.end_pattern)

    def extract(self, remain: str) -> Optional[str]:
        """Return the part of `remain` before the end anchor.

        :param remain: the read after the classification boundary
        :returns: the insert, or None if the anchor was not found
        """
        window_start = max(0, len(remain) - self.window_length)
        window = remain[window_start:]
        at = self.end_pattern.search(window, end=len(window) - self.min_end)
        if at < 0:
            return None
        return remain[: window_start + at]

    def mate_cut(self, mate: str) -> Optional[int]:
        """Return where the mate read continues after the reverse anchor.

        :param mate: the sequence of the mate read
        :returns: the position after the anchor, or None if not found
        """
        window = mate[: self.window_length]
        at = self.mate_pattern.search(window, start=self.min_end)
        if at < 0:
            return None
        return at + len(self.mate_pattern)
