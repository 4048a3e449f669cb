"""
Console script for ampliplex (clean)

Copyright © 2024 Pixelgen Technologies AB.
"""

from pathlib import Path
from typing import List, Optional

import click

from ampliplex.cli.common import handle_errors, output_option
from ampliplex.config import CleanSettings
from ampliplex.esv.clean import AggregationContext, clean_observations
from ampliplex.esv.registry import ESVRegistry
from ampliplex.esv.report import CleanSampleReport
from ampliplex.external.usearch import Usearch
from ampliplex.utils import (
    create_output_dir,
    log_step_start,
    sanity_check_inputs,
    timer,
    write_parameters_file,
)

_DEFAULTS = CleanSettings()


@click.command(
    "clean",
    short_help="denoise observation tables into one ESV count table",
    options_metavar="<options>",
)
@click.argument(
    "input_files",
    nargs=-1,
    required=True,
    type=click.Path(exists=True, dir_okay=False),
    metavar="PARSE_TABLES",
)
@click.option(
    "--zotu",
    default=None,
    required=False,
    type=click.Path(exists=True, dir_okay=False),
    help="A FASTA file of ESV names from a previous run to reuse",
)
@click.option(
    "--min-count",
    default=_DEFAULTS.min_count,
    required=False,
    type=click.IntRange(min=1),
    show_default=True,
    help="The minimum number of reads of an observation",
)
@click.option(
    "--min-length",
    default=_DEFAULTS.min_length,
    required=False,
    type=click.IntRange(min=0),
    show_default=True,
    help="The minimum length of an observed sequence",
)
@click.option(
    "--name-prefix",
    default=_DEFAULTS.name_prefix,
    required=False,
    type=click.STRING,
    help=(
        "Name new ESVs with this prefix and a running number instead of a hash"
        " of the sequence"
    ),
)
@click.option(
    "--hash-function",
    default=_DEFAULTS.hash_function,
    required=False,
    type=click.Choice(["md5", "xxh3"]),
    show_default=True,
    help="The hash used to name ESVs when no prefix is given",
)
@click.option(
    "--primers",
    default=None,
    required=False,
    type=click.STRING,
    help="Only keep the primers with these comma separated numbers, e.g. 4,6,7",
)
@click.option(
    "--usearch",
    "usearch_exe",
    default="usearch",
    required=False,
    type=click.STRING,
    show_default=True,
    help="The usearch executable",
)
@click.option(
    "--quiet/--no-quiet",
    default=True,
    show_default=True,
    help="Pass -quiet to usearch",
)
@output_option
@click.pass_context
@timer
@handle_errors
def clean(
    ctx,
    input_files: List[str],
    zotu: Optional[str],
    min_count: int,
    min_length: int,
    name_prefix: str,
    hash_function: str,
    primers: Optional[str],
    usearch_exe: str,
    quiet: bool,
    output: str,
):
    """
    Denoise the observations of every sample and primer and write the ESV
    sequences (<output>.fna) and counts (<output>.tsv)
    """
    # log input parameters
    log_step_start(
        "clean",
        input_files=list(input_files),
        output=output,
        zotu=zotu,
        min_count=min_count,
        min_length=min_length,
        name_prefix=name_prefix,
        hash_function=hash_function,
        primers=primers,
        usearch=usearch_exe,
    )

    sanity_check_inputs(input_files, allow_empty=True)
    create_output_dir(output)

    settings = CleanSettings(
        min_count=min_count,
        min_length=min_length,
        name_prefix=name_prefix,
        hash_function=hash_function,
        primers=primers,
    )
    registry = ESVRegistry(settings.name_prefix, settings.hash_function)
    if zotu is not None:
        registry.seed_from_fasta(zotu)

    context = AggregationContext(
        settings, Usearch(usearch_exe, quiet=quiet), registry=registry
    )
    stats = clean_observations(input_files, output, context)

    write_parameters_file(ctx, Path(f"{output}.meta.json"))
    report = CleanSampleReport(sample_id=Path(output).name, **stats.collect())
    report.write_json_file(f"{output}.report.json", indent=4)
