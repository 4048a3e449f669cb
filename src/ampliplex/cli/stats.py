"""
Console script for ampliplex (stats)

Copyright © 2024 Pixelgen Technologies AB.
"""

from pathlib import Path
from typing import Optional

import click

from ampliplex.cli.common import handle_errors
from ampliplex.pipeline import collect_pipeline_stats
from ampliplex.utils import (
    click_echo,
    create_output_dir,
    log_step_start,
    timer,
    write_parameters_file,
)


@click.command(
    "stats",
    short_help="summarize the read counts of each step of a run directory",
    options_metavar="<options>",
)
@click.option(
    "--dir",
    "directory",
    required=True,
    type=click.Path(exists=True, file_okay=False),
    help="A directory processed by the run command",
)
@click.option(
    "--output",
    default=None,
    required=False,
    type=click.Path(exists=False),
    help="Also write the counts to <output>.report.json",
)
@click.pass_context
@timer
@handle_errors
def stats(ctx, directory: str, output: Optional[str]):
    """
    Count the reads that were assembled, passed the quality filter and were
    demultiplexed in a run directory
    """
    log_step_start("stats", input_files=directory, output=output)

    report = collect_pipeline_stats(directory)
    for line in report.summary_lines():
        click_echo(line)

    if output is not None:
        create_output_dir(output)
        write_parameters_file(ctx, Path(f"{output}.meta.json"))
        report.write_json_file(f"{output}.report.json", indent=4)
