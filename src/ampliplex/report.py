"""Base class of the JSON reports written by every ampliplex command.

Copyright © 2024 Pixelgen Technologies AB.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pydantic

from ampliplex.types import PathType
from ampliplex.utils import atomic_output

try:
    from typing import Self
except ImportError:
    from typing_extensions import Self


class SampleReport(pydantic.BaseModel):
    """Counts of a single command run, written to `<output>.report.json`.

    :ivar sample_id: the sample, run directory or output prefix the
        counts belong to
    """

    sample_id: str

    @classmethod
    def from_json(cls, path: PathType) -> Self:
        """Load a report written by `write_json_file`.

        :param path: the report file
        :returns: the validated report
        """
        return cls.model_validate_json(Path(path).read_text())

    def write_json_file(self, path: PathType, **kwargs: Any) -> None:
        """Write the report, creating missing parent folders.

        :param path: the report file
        :param kwargs: passed on to `model_dump_json`, e.g. `indent`
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with atomic_output(path) as tmp:
            tmp.write_text(self.model_dump_json(**kwargs))
