"""
Console script for ampliplex (demux)

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
from ampliplex.config import parse_primer_spec
from ampliplex.demux.insert import EndTrimMode, InsertExtractor
from ampliplex.demux.model import InlineModel
from ampliplex.demux.paired import PairedDemultiplexer
from ampliplex.demux.report import DemuxSampleReport
from ampliplex.utils import (
    create_output_dir,
    log_step_start,
    sanity_check_inputs,
    timer,
    write_parameters_file,
)


@click.command(
    "demux",
    short_help="split inline barcoded read pairs (FASTQ) into one file pair per primer",
    options_metavar="<options>",
)
@click.argument(
    "read1",
    required=True,
    type=click.Path(exists=True, dir_okay=False),
    metavar="R1_FASTQ",
)
@click.argument(
    "read2",
    required=True,
    type=click.Path(exists=True, dir_okay=False),
    metavar="R2_FASTQ",
)
@click.option(
    "--expect",
    required=True,
    type=click.STRING,
    help="The comma separated primer numbers to write output for, e.g. 1,2,8",
)
@click.option(
    "--end-trim",
    default=EndTrimMode.REQUIRED.value,
    required=False,
    type=click.Choice([m.value for m in EndTrimMode]),
    show_default=True,
    help=(
        "How to handle the reverse end sequence on read 2: drop pairs without it,"
        " trim it when found, or do not look for it"
    ),
)
@model_options
@end_options
@click.option(
    "--output",
    required=True,
    type=click.Path(exists=False),
    help="The prefix of the output files, <output>_p<n>_R1.fastq and _R2.fastq",
)
@click.pass_context
@timer
@handle_errors
def demux(
    ctx,
    read1: str,
    read2: str,
    expect: str,
    end_trim: str,
    model_name: Optional[str],
    model_file: Optional[str],
    end_sequence: str,
    end_range: str,
    output: str,
):
    """
    Demultiplex read pairs by the inline barcode of read 1 and trim both
    reads
    """
    # log input parameters
    log_step_start(
        "demux",
        input_files=[read1, read2],
        output=output,
        expect=expect,
        end_trim=end_trim,
        model=model_name,
        model_file=model_file,
        end_sequence=end_sequence,
        end_range=end_range,
    )

    sanity_check_inputs(
        [read1, read2],
        allowed_extensions=("fastq.gz", "fq.gz", "fastq", "fq"),
        allow_empty=True,
    )
    create_output_dir(output)

    expected = parse_primer_spec(expect)
    model = InlineModel.from_file(get_model_file(model_name, model_file))
    extractor = InsertExtractor(get_end_settings(end_sequence, end_range))
    demultiplexer = PairedDemultiplexer(
        model, expected, extractor=extractor, end_trim=EndTrimMode(end_trim)
    )

    outputs = demultiplexer.run(read1, read2, output)
    for number, (out1, out2) in outputs.items():
        logger.info("Primer %s: %s %s", number, out1, out2)

    write_parameters_file(ctx, Path(f"{output}.meta.json"))
    report = DemuxSampleReport(
        sample_id=Path(output).name,
        **demultiplexer.stats.collect(),
    )
    report.write_json_file(f"{output}.report.json", indent=4)
