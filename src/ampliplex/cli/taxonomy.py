"""
Console script for ampliplex (taxonomy)

Copyright © 2024 Pixelgen Technologies AB.
"""

from pathlib import Path

import click

from ampliplex.cli.common import handle_errors, output_option
from ampliplex.external.usearch import Usearch
from ampliplex.taxonomy import assign_taxonomy
from ampliplex.utils import (
    create_output_dir,
    log_step_start,
    timer,
    write_parameters_file,
)


@click.command(
    "taxonomy",
    short_help="add sintax taxonomy columns to an ESV count table",
    options_metavar="<options>",
)
@click.option(
    "--input",
    "in_prefix",
    required=True,
    type=click.STRING,
    help="The prefix of the clean output, <input>.fna and <input>.tsv",
)
@click.option(
    "--db",
    required=True,
    type=click.Path(exists=True, dir_okay=False),
    help="The sintax database",
)
@click.option(
    "--strand",
    default="-",
    required=False,
    type=click.Choice(["+", "-"]),
    show_default=True,
    help="Only accept the hits on this strand",
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
@output_option
@click.pass_context
@timer
@handle_errors
def taxonomy(
    ctx,
    in_prefix: str,
    db: str,
    strand: str,
    usearch_exe: str,
    output: str,
):
    """
    Classify the ESV sequences with sintax and annotate the count table with
    one column per rank
    """
    # log input parameters
    log_step_start(
        "taxonomy",
        input_files=[f"{in_prefix}.fna", f"{in_prefix}.tsv"],
        output=output,
        db=db,
        strand=strand,
        usearch=usearch_exe,
    )

    create_output_dir(output)
    report = assign_taxonomy(
        in_prefix, db, output, Usearch(usearch_exe), strand=strand
    )

    write_parameters_file(ctx, Path(f"{output}.meta.json"))
    report.write_json_file(f"{output}.report.json", indent=4)
