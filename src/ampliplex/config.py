"""Settings, defaults and configuration files for ampliplex.

Copyright © 2024 Pixelgen Technologies AB.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any, Literal, Optional

import pydantic
from ruamel import yaml

from ampliplex.exception import ConfigurationError
from ampliplex.types import PathType

logger = logging.getLogger(__name__)

MODEL_DIR_ENV = "AMPLIPLEX_MODEL_DIR"

DEFAULT_END_SEQUENCE = "TTACCGCGGCKGCTGRCAC"
DEFAULT_END_RANGE = "1:4"

_RANGE_RE = re.compile(r"^(\d+):(\d+)$")
_PRIMER_SPEC_RE = re.compile(r"^[0-9,]+$")


def parse_end_range(spec: str) -> tuple[int, int]:
    """Parse a `min:max` specifier of extra bases after the end sequence.

    :param spec: the range, e.g. "1:4"
    :returns: a tuple with (min, max)
    :raises ConfigurationError: if the specifier is malformed or min > max
    """
    match = _RANGE_RE.match(spec)
    if not match:
        raise ConfigurationError(
            f"Invalid end range {spec}: should be something like 1:4"
        )
    min_end, max_end = int(match.group(1)), int(match.group(2))
    if max_end < min_end:
        raise ConfigurationError(f"Invalid end range {spec}")
    return min_end, max_end


def parse_primer_spec(spec: str) -> frozenset[int]:
    """Parse a comma separated list of primer numbers, e.g. "4,6,7".

    :param spec: the specifier
    :returns: the set of primer numbers
    :raises ConfigurationError: if the specifier is malformed
    """
    if not _PRIMER_SPEC_RE.match(spec):
        raise ConfigurationError(f"Invalid primer specifier {spec}")
    numbers = set()
    for part in spec.split(","):
        if not part.isdigit() or int(part) <= 0:
            raise ConfigurationError(f"Invalid primer specifier {spec}")
        numbers.add(int(part))
    return frozenset(numbers)


class InlineEndSettings(pydantic.BaseModel):
    """The anchor expected after the insert of inline-barcoded reads."""

    end_sequence: str = DEFAULT_END_SEQUENCE
    end_range: str = DEFAULT_END_RANGE

    @pydantic.field_validator("end_sequence")
    @classmethod
    def _check_end_sequence(cls, value: str) -> str:
        if not re.match(r"^[A-Z]+$", value):
            raise ConfigurationError(f"Invalid end sequence {value}")
        return value

    @pydantic.field_validator("end_range")
    @classmethod
    def _check_end_range(cls, value: str) -> str:
        parse_end_range(value)
        return value

    @property
    def min_end(self) -> int:
        """Return the minimum number of bases after the end sequence."""
        return parse_end_range(self.end_range)[0]

    @property
    def max_end(self) -> int:
        """Return the maximum number of bases after the end sequence."""
        return parse_end_range(self.end_range)[1]


class LongReadSettings(pydantic.BaseModel):
    """Flanking patterns, barcode geometry and insert size of long reads."""

    barcode_length: int = pydantic.Field(16, gt=2)
    slop: int = pydantic.Field(2, ge=0)
    expected_length: int = pydantic.Field(1453, gt=0)
    length_range: int = pydantic.Field(300, ge=0)
    left_pattern: str = "AGnGTTnGATnnTGGCTCAG"
    right_pattern: str = "AAGTCGTAACAAGGTAnC"


class CleanSettings(pydantic.BaseModel):
    """Filtering and naming of exact sequence variants."""

    min_count: int = pydantic.Field(4, ge=1)
    min_length: int = pydantic.Field(200, ge=0)
    name_prefix: str = ""
    hash_function: Literal["md5", "xxh3"] = "md5"
    primers: Optional[str] = None

    @pydantic.field_validator("primers")
    @classmethod
    def _check_primers(cls, value: Optional[str]) -> Optional[str]:
        if value is not None:
            parse_primer_spec(value)
        return value

    @property
    def primer_numbers(self) -> frozenset[int]:
        """Return the primer numbers to keep (empty means keep all)."""
        if self.primers is None:
            return frozenset()
        return parse_primer_spec(self.primers)


class AmpliplexConfig(pydantic.BaseModel):
    """Per-command default values loaded from a YAML file.

    Each top level key is the name of a command and each nested
    key is the name of an option of that command (with underscores).
    """

    model_config = pydantic.ConfigDict(extra="forbid")

    demux: dict[str, Any] = pydantic.Field(default_factory=dict)
    parse: dict[str, Any] = pydantic.Field(default_factory=dict)
    longread: dict[str, Any] = pydantic.Field(default_factory=dict)
    clean: dict[str, Any] = pydantic.Field(default_factory=dict)
    taxonomy: dict[str, Any] = pydantic.Field(default_factory=dict)
    run: dict[str, Any] = pydantic.Field(default_factory=dict)
    stats: dict[str, Any] = pydantic.Field(default_factory=dict)

    def as_default_map(self) -> dict[str, dict[str, Any]]:
        """Return the configuration as a click `default_map`."""
        return {k: v for k, v in self.model_dump().items() if v}


def load_yaml_file(path: PathType) -> Any:
    """
    Load an arbitrary yaml file.

    :param path: path to the yaml file
    :raises ConfigurationError: If the path does not exist or is not a yaml file
    :returns: a yaml object
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(f"{path} is not a file")

    if path.suffix not in (".yaml", ".yml"):
        raise ConfigurationError(f"{path} is not a yaml file")

    yaml_loader = yaml.YAML(typ="safe")
    with open(path, "r") as cf:
        data = yaml_loader.load(cf)

    return data


def load_config(path: PathType) -> AmpliplexConfig:
    """Load and validate a configuration file.

    :param path: path to the yaml file
    :returns: the validated configuration
    :raises ConfigurationError: if the file is not valid
    """
    data = load_yaml_file(path) or {}
    try:
        return AmpliplexConfig.model_validate(data)
    except pydantic.ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration file {path}:\n{exc}")


def resolve_model_file(
    model_name: Optional[str] = None, model_file: Optional[PathType] = None
) -> Path:
    """Find the barcode table for a model name or validate an explicit file.

    A model name `806R` refers to `inline_806R.tsv`, searched for in the
    current directory and then in the directory named by the
    `AMPLIPLEX_MODEL_DIR` environment variable.

    :param model_name: the name of the model
    :param model_file: an explicit path to a barcode table
    :returns: the path to the barcode table
    :raises ConfigurationError: if both or neither are given or no file exists
    """
    if (model_name is None) == (model_file is None):
        raise ConfigurationError(
            "Must specify --model or --model-file (but not both)"
        )

    if model_file is not None:
        path = Path(model_file)
        if not path.is_file():
            raise ConfigurationError(f"No such file: {path}")
        return path

    file_name = f"inline_{model_name}.tsv"
    candidates = [Path(file_name)]
    model_dir = os.environ.get(MODEL_DIR_ENV)
    if model_dir:
        candidates.append(Path(model_dir) / file_name)

    for candidate in candidates:
        if candidate.is_file():
            logger.debug("Using model file %s", candidate)
            return candidate

    raise ConfigurationError(
        "No such file: " + " or ".join(str(c) for c in candidates)
    )
