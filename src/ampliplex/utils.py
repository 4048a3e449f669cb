"""Helpers shared by the ampliplex commands.

Copyright © 2024 Pixelgen Technologies AB.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import textwrap
import time
from functools import wraps
from pathlib import Path
from typing import Any, Iterator, Optional, Sequence, Union

import click

from ampliplex.types import PathType

logger = logging.getLogger(__name__)


def click_echo(msg: str, multiline: bool = False):
    """Print a line of command output.

    :param msg: the message to print
    :param multiline: wrap the (dedented) message at 100 characters
    """
    click.echo(textwrap.fill(textwrap.dedent(msg), width=100) if multiline else msg)


def create_output_dir(path: PathType) -> Path:
    """Create the folder that will hold an output file or output prefix.

    :param path: an output file or output prefix
    :returns Path: the folder
    """
    parent = Path(path).parent
    parent.mkdir(parents=True, exist_ok=True)
    return parent


@contextlib.contextmanager
def atomic_output(path: PathType) -> Iterator[Path]:
    """Yield a temporary path that replaces `path` only on success.

    If the body raises, the temporary file is removed and `path` is left
    untouched, so a failed run never leaves a complete-looking output.

    :param path: the final output path
    :yields Path: the temporary path to write to
    """
    final = Path(path)
    tmp = final.with_name(f".{final.name}.{os.getpid()}.tmp")
    try:
        yield tmp
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise
    os.replace(tmp, final)


def log_step_start(
    step_name: str,
    input_files: Optional[Union[Sequence[PathType], PathType]] = None,
    output: Optional[PathType] = None,
    **kwargs: Any,
) -> None:
    """Log the version, inputs, output and parameters of a command.

    :param step_name: the name of the command
    :param input_files: one input file or a list of them
    :param output: the output file or prefix
    :param kwargs: the parameters to log, underscores are shown as dashes
    """
    from ampliplex import __version__

    logger.info("Start ampliplex %s %s", step_name, __version__)

    if isinstance(input_files, (str, os.PathLike)):
        logger.info("Input file %s", input_files)
    elif input_files is not None:
        logger.info("Input file(s) %s", ",".join(str(f) for f in input_files))

    if output is not None:
        logger.info("Output %s", output)

    if kwargs:
        params = ",".join(f"{k.replace('_', '-')}={v}" for k, v in kwargs.items())
        logger.info("Parameters:%s", params)


def sanity_check_inputs(
    input_files: Union[Sequence[PathType], PathType],
    allowed_extensions: Union[Sequence[str], str, None] = None,
    allow_empty: bool = False,
) -> None:
    """Check that the input files of a command exist before any work starts.

    :param input_files: the files to check
    :param allowed_extensions: a suffix, e.g. "fastq.gz", or a sequence of
        accepted suffixes
    :param allow_empty: accept files of size zero
    :raises AssertionError: if a file is missing, empty or has another suffix
    """
    if isinstance(input_files, (str, os.PathLike)):
        input_files = [input_files]
    if isinstance(allowed_extensions, str):
        allowed_extensions = [allowed_extensions]
    suffixes = tuple(allowed_extensions) if allowed_extensions else ()

    for input_file in map(Path, input_files):
        logger.debug("Sanity checking %s", input_file)

        if not input_file.is_file():
            raise AssertionError(f"{input_file} is not a file")

        if not allow_empty and input_file.stat().st_size == 0:
            raise AssertionError(f"{input_file} is an empty file")

        if suffixes and not str(input_file).endswith(suffixes):
            raise AssertionError(
                f"{input_file} does not have any of the extensions "
                f"{', '.join(suffixes)}"
            )


def timer(func):
    """Log the run time of a command when it returns."""

    @wraps(func)
    def wrapper(*args, **kwds):
        start = time.perf_counter()
        res = func(*args, **kwds)
        logger.info(
            "Finished ampliplex %s in %.2fs",
            func.__name__,
            time.perf_counter() - start,
        )
        return res

    return wrapper


def _option_value(param: click.Option, value: Any) -> Any:
    """Return an option value as stored in the parameters file.

    Paths are made absolute so that a run can be traced back to its inputs.
    """
    if value is None:
        return None
    if isinstance(param.type, click.Path):
        if isinstance(value, (list, tuple)):
            return [str(Path(v).resolve()) for v in value]
        return str(Path(value).resolve())
    if isinstance(value, tuple):
        return list(value)
    return value


def write_parameters_file(
    click_context: click.Context, output_file: Path, command_path: Optional[str] = None
) -> None:
    """Write the options of a command invocation to a JSON file.

    :param click_context: the context of the command
    :param output_file: the `.meta.json` file to write
    :param command_path: the command name to record instead of the one
        in the context
    """
    options = {
        param.opts[0]: _option_value(param, click_context.params.get(str(param.name)))
        for param in click_context.command.params
        if isinstance(param, click.Option)
    }
    data = {
        "cli": {
            "command": command_path or click_context.command_path,
            "options": options,
        }
    }

    logger.debug("Writing parameters file to %s", output_file)
    with open(output_file, "w") as fh:
        json.dump(data, fh, indent=4)
