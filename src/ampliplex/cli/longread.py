"""
Console script for ampliplex (longread)

Copyright © 2024 Pixelgen Technologies AB.
"""

from pathlib import Path

import click

from ampliplex.barcodes import BarcodeIndex
from ampliplex.cli.common import handle_errors, output_option
from ampliplex.config import LongReadSettings
from ampliplex.demux.longread import LongReadDemultiplexer
from ampliplex.demux.report import LongReadSampleReport
from ampliplex.utils import (
    create_output_dir,
    log_step_start,
    sanity_check_inputs,
    timer,
    write_parameters_file,
)

_DEFAULTS = LongReadSettings()


@click.command(
    "longread",
    short_help="extract inserts and end barcodes of long reads (FASTA)",
    options_metavar="<options>",
)
@click.argument(
    "input_file",
    required=True,
    type=click.Path(exists=True, dir_okay=False),
    metavar="FASTA_FILE",
)
@click.option(
    "--barcodes",
    required=True,
    type=click.Path(exists=True, dir_okay=False),
    help="A FASTA file with the barcode sequences",
)
@click.option(
    "--barcode-length",
    default=_DEFAULTS.barcode_length,
    required=False,
    type=click.IntRange(min=3),
    show_default=True,
    help="The length of every barcode",
)
@click.option(
    "--slop",
    default=_DEFAULTS.slop,
    required=False,
    type=click.IntRange(min=0),
    show_default=True,
    help="The number of extra positions to look for a barcode",
)
@click.option(
    "--expected-length",
    default=_DEFAULTS.expected_length,
    required=False,
    type=click.IntRange(min=1),
    show_default=True,
    help="The expected length of the insert",
)
@click.option(
    "--length-range",
    default=_DEFAULTS.length_range,
    required=False,
    type=click.IntRange(min=0),
    show_default=True,
    help="The allowed difference from the expected insert length",
)
@click.option(
    "--left-pattern",
    default=_DEFAULTS.left_pattern,
    required=False,
    type=click.STRING,
    show_default=True,
    help="The flanking sequence before the insert",
)
@click.option(
    "--right-pattern",
    default=_DEFAULTS.right_pattern,
    required=False,
    type=click.STRING,
    show_default=True,
    help="The flanking sequence after the insert",
)
@output_option
@click.pass_context
@timer
@handle_errors
def longread(
    ctx,
    input_file: str,
    barcodes: str,
    barcode_length: int,
    slop: int,
    expected_length: int,
    length_range: int,
    left_pattern: str,
    right_pattern: str,
    output: str,
):
    """
    Demultiplex long reads in either orientation by the barcodes outside the
    flanking sequences
    """
    # log input parameters
    log_step_start(
        "longread",
        input_files=input_file,
        output=output,
        barcodes=barcodes,
        barcode_length=barcode_length,
        slop=slop,
        expected_length=expected_length,
        length_range=length_range,
        left_pattern=left_pattern,
        right_pattern=right_pattern,
    )

    sanity_check_inputs([input_file, barcodes], allow_empty=True)
    create_output_dir(output)

    settings = LongReadSettings(
        barcode_length=barcode_length,
        slop=slop,
        expected_length=expected_length,
        length_range=length_range,
        left_pattern=left_pattern,
        right_pattern=right_pattern,
    )
    index = BarcodeIndex.from_fasta(barcodes, barcode_length)
    demultiplexer = LongReadDemultiplexer(index, settings)
    stats = demultiplexer.run(input_file, output)

    write_parameters_file(ctx, Path(f"{output}.meta.json"))
    report = LongReadSampleReport(
        sample_id=Path(input_file).name.split(".")[0],
        **stats.collect(),
    )
    report.write_json_file(f"{output}.report.json", indent=4)
