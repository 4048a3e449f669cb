"""
Console script for ampliplex (common functions)

Copyright © 2024 Pixelgen Technologies AB.
"""

import functools
import logging
from pathlib import Path
from typing import Optional

import click

from ampliplex.config import (
    DEFAULT_END_RANGE,
    DEFAULT_END_SEQUENCE,
    InlineEndSettings,
    resolve_model_file,
)
from ampliplex.exception import AmpliplexError

logger = logging.getLogger("ampliplex.cli")


class OrderedGroup(click.Group):
    """A click group that lists its commands in the order they were added."""

    def list_commands(self, ctx: click.Context) -> list[str]:
        """Return the command names in order of addition."""
        return list(self.commands)


def handle_errors(func):
    """Turn ampliplex errors raised by a command into a clean CLI error."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except AmpliplexError as exc:
            logger.error(str(exc))
            raise click.ClickException(str(exc)) from exc

    return wrapper


def output_option(func):
    """Wrap a Click entrypoint to add the --output option."""

    @click.option(
        "--output",
        required=True,
        type=click.Path(exists=False),
        help=(
            "The path where the results will be placed (the parent folder is"
            " created if it does not exist)"
        ),
    )
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        return func(*args, **kwargs)

    return wrapper


def model_options(func):
    """Decorate a click command and add the --model and --model-file options."""

    @click.option(
        "--model",
        "model_name",
        required=False,
        default=None,
        type=click.STRING,
        help="The name of the barcode table to load, e.g. 806R for inline_806R.tsv",
    )
    @click.option(
        "--model-file",
        required=False,
        default=None,
        type=click.Path(exists=True, dir_okay=False),
        help="An explicit path to a barcode table",
    )
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        return func(*args, **kwargs)

    return wrapper


def end_options(func):
    """Decorate a click command and add the end anchor options."""

    @click.option(
        "--end-sequence",
        default=DEFAULT_END_SEQUENCE,
        required=False,
        type=click.STRING,
        show_default=True,
        help="The sequence expected after the insert (IUPAC codes allowed)",
    )
    @click.option(
        "--end-range",
        default=DEFAULT_END_RANGE,
        required=False,
        type=click.STRING,
        show_default=True,
        help="The min:max number of bases allowed after the end sequence",
    )
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        return func(*args, **kwargs)

    return wrapper


def get_model_file(model_name: Optional[str], model_file: Optional[str]) -> Path:
    """Resolve the --model/--model-file options to a barcode table."""
    return resolve_model_file(model_name=model_name, model_file=model_file)


def get_end_settings(end_sequence: str, end_range: str) -> InlineEndSettings:
    """Build the end anchor settings from the command line options."""
    return InlineEndSettings(end_sequence=end_sequence.upper(), end_range=end_range)
