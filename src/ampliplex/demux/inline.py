"""Classification of reads by their inline barcode.

Copyright © 2024 Pixelgen Technologies AB.
"""

from __future__ import annotations

import logging
from typing import NamedTuple, Optional

from ampliplex.demux.model import InlineModel, PrimerDescriptor

logger = logging.getLogger(__name__)


class InlineMatch(NamedTuple):
    """The primer of a read and where the rest of the read starts."""

    primer: PrimerDescriptor
    offset: int
    start: int

    @property
    def primer_name(self) -> str:
        """Return the name of the matched primer."""
        return self.primer.primer_name


class InlineClassifier:
    """Find the primer of a read from its inline barcode.

    Offsets are tried in ascending order. At each offset the barcode must
    match exactly and the bases after it must match the `begin` pattern of
    the primer. The first offset where both hold decides the primer.
    """

    def __init__(self, model: InlineModel):
        """Create a classifier.

        :param model: the barcode table
        """
        self.model = model
        self._barcode_length = model.barcode_length
        self._lookups = [(at, model.barcodes_at(at)) for at in model.offsets]

    def classify(self, sequence: str) -> Optional[InlineMatch]:
        """Classify a read.

        :param sequence: the read sequence
        :returns: the match or None if no primer matched
        """
        barcode_length = self._barcode_length
        for at, lookup in self._lookups:
            barcode = sequence[at : at + barcode_length]
            primer = lookup.get(barcode)
            if primer is None:
                continue
            begin_at = at + barcode_length
            begin = sequence[begin_at : begin_at + len(primer.begin)]
            if primer.begin_pattern.matches(begin):
                return InlineMatch(primer, at, primer.boundary)
        return None
