"""
Console script for ampliplex (run)

Copyright © 2024 Pixelgen Technologies AB.
"""

from pathlib import Path
from typing import Optional

import click

from ampliplex.cli.common import (
    end_options,
    get_end_settings,
    get_model_file,
    handle_errors,
    logger,
    model_options,
)
from ampliplex.demux.insert import InsertExtractor
from ampliplex.demux.report import ParseSampleReport
from ampliplex.external.pear import Pear
from ampliplex.external.usearch import Usearch
from ampliplex.pipeline import InlineRunner, find_read_pairs
from ampliplex.utils import click_echo, log_step_start, timer, write_parameters_file


@click.command(
    "run",
    short_help="merge, filter and parse the read pairs of every sample in a directory",
    options_metavar="<options>",
)
@click.option(
    "--dir",
    "directory",
    required=True,
    type=click.Path(exists=True, file_okay=False),
    help="The directory with the *_R1_NNN.fastq.gz and *_R2_NNN.fastq.gz files",
)
@click.option(
    "--max-ee",
    default=1.0,
    required=False,
    type=click.FLOAT,
    show_default=True,
    help="The maximum number of expected errors of a merged read",
)
@model_options
@end_options
@click.option(
    "--pear",
    "pear_exe",
    default="pear",
    required=False,
    type=click.STRING,
    show_default=True,
    help="The pear executable",
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
    "--dry-run",
    is_flag=True,
    default=False,
    help="Print the commands of every step instead of running them",
)
@click.pass_context
@timer
@handle_errors
def run(
    ctx,
    directory: str,
    max_ee: float,
    model_name: Optional[str],
    model_file: Optional[str],
    end_sequence: str,
    end_range: str,
    pear_exe: str,
    usearch_exe: str,
    dry_run: bool,
):
    """
    Merge the read pairs of every sample with pear, filter them by expected
    errors with usearch and parse them into <sample>.parse.tab
    """
    # log input parameters
    log_step_start(
        "run",
        input_files=directory,
        max_ee=max_ee,
        model=model_name,
        model_file=model_file,
        end_sequence=end_sequence,
        end_range=end_range,
        pear=pear_exe,
        usearch=usearch_exe,
        dry_run=dry_run,
    )

    runner = InlineRunner(
        get_model_file(model_name, model_file),
        pear=Pear(pear_exe),
        usearch=Usearch(usearch_exe),
        max_ee=max_ee,
        extractor=InsertExtractor(get_end_settings(end_sequence, end_range)),
    )
    samples = runner.select_samples(find_read_pairs(directory))

    if dry_run:
        for step, commands in runner.commands(samples).items():
            click_echo(f"# {step}")
            for command in commands:
                click_echo(command)
        return

    stats = runner.run(samples)
    output = Path(directory)
    write_parameters_file(ctx, output / "run.meta.json")
    for sample, sample_stats in stats.items():
        report = ParseSampleReport(sample_id=sample, **sample_stats.collect())
        report.write_json_file(output / f"{sample}.report.json", indent=4)
    logger.info("Processed %s samples in %s", len(stats), directory)
