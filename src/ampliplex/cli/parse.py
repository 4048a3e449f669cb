"""
Console script for ampliplex (parse)

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
    output_option,
)
from ampliplex.demux.insert import InsertExtractor
from ampliplex.demux.model import InlineModel
from ampliplex.demux.parse import parse_inline_fasta
from ampliplex.demux.report import ParseSampleReport
from ampliplex.utils import (
    create_output_dir,
    log_step_start,
    sanity_check_inputs,
    timer,
    write_parameters_file,
)


@click.command(
    "parse",
    short_help="count the inserts of inline barcoded merged reads (FASTA)",
    options_metavar="<options>",
)
@click.argument(
    "input_file",
    required=True,
    type=click.Path(exists=True, dir_okay=False),
    metavar="FASTA_FILE",
)
@model_options
@end_options
@output_option
@click.pass_context
@timer
@handle_errors
def parse(
    ctx,
    input_file: str,
    model_name: Optional[str],
    model_file: Optional[str],
    end_sequence: str,
    end_range: str,
    output: str,
):
    """
    Classify merged reads by their inline barcode and count the insert
    sequences of every primer
    """
    # log input parameters
    log_step_start(
        "parse",
        input_files=input_file,
        output=output,
        model=model_name,
        model_file=model_file,
        end_sequence=end_sequence,
        end_range=end_range,
    )

    sanity_check_inputs(input_file, allow_empty=True)
    create_output_dir(output)

    model = InlineModel.from_file(get_model_file(model_name, model_file))
    extractor = InsertExtractor(get_end_settings(end_sequence, end_range))
    logger.info("Using barcode table %s with %s primers", model.name, len(model))

    stats = parse_inline_fasta(input_file, model, output, extractor)

    write_parameters_file(ctx, Path(f"{output}.meta.json"))
    report = ParseSampleReport(
        sample_id=Path(input_file).name.split(".")[0],
        **stats.collect(),
    )
    report.write_json_file(f"{output}.report.json", indent=4)
