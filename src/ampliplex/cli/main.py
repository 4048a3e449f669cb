"""Main console script for ampliplex.

Copyright © 2024 Pixelgen Technologies AB.
"""

import sys
from typing import Optional

import click

from ampliplex import __version__
from ampliplex.cli.clean import clean
from ampliplex.cli.common import OrderedGroup, logger
from ampliplex.cli.demux import demux
from ampliplex.cli.longread import longread
from ampliplex.cli.parse import parse
from ampliplex.cli.run import run
from ampliplex.cli.stats import stats
from ampliplex.cli.taxonomy import taxonomy
from ampliplex.config import load_config
from ampliplex.exception import ConfigurationError
from ampliplex.logging import LoggingSetup


@click.group(cls=OrderedGroup, name="ampliplex")
@click.version_option(__version__)
@click.option(
    "--verbose",
    type=click.BOOL,
    default=False,
    is_flag=True,
    help="Show extended messages during execution",
)
@click.option(
    "--log-file",
    required=False,
    default=None,
    type=click.Path(exists=False),
    help="The path to the log file (it is created if it does not exist)",
)
@click.option(
    "--config",
    "config_file",
    required=False,
    default=None,
    type=click.Path(exists=True, dir_okay=False),
    help="A YAML file with default option values per command",
)
@click.pass_context
def main_cli(ctx, verbose: bool, log_file: Optional[str], config_file: Optional[str]):
    """Run the main CLI entrypoint for ampliplex."""
    # no logging setup when only printing help or the version
    if any(x in sys.argv for x in ["--help", "--version"]):
        return 0

    ctx.ensure_object(dict)

    # closed by click when the invoked command returns
    ctx.obj["LOGGER"] = ctx.with_resource(LoggingSetup(log_file, verbose=verbose))
    ctx.obj["VERBOSE"] = verbose

    if verbose:
        logger.info("Running in VERBOSE mode")

    if config_file is not None:
        try:
            config = load_config(config_file)
        except ConfigurationError as exc:
            raise click.ClickException(str(exc)) from exc
        ctx.default_map = config.as_default_map()
        logger.info("Loaded option defaults from %s", config_file)

    return 0


main_cli.add_command(parse)
main_cli.add_command(demux)
main_cli.add_command(longread)
main_cli.add_command(clean)
main_cli.add_command(taxonomy)
main_cli.add_command(run)
main_cli.add_command(stats)


if __name__ == "__main__":
    sys.exit(main_cli())  # pragma: no cover
