"""Invocation of external programs.

Copyright © 2024 Pixelgen Technologies AB.
"""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
from pathlib import Path
from typing import Iterable, Optional, Sequence

from ampliplex.exception import ExternalToolError
from ampliplex.types import PathType

logger = logging.getLogger(__name__)


def find_executable(executable: str) -> str:
    """Resolve an executable name or path.

    :param executable: a program name on the PATH or a path to a program
    :returns: the path to the program
    :raises ExternalToolError: if the program cannot be found
    """
    found = shutil.which(executable)
    if found is None:
        raise ExternalToolError(
            f"Cannot find executable {executable}", command=[executable]
        )
    return found


def format_command(args: Sequence[str], stdout: Optional[PathType] = None) -> str:
    """Return a shell-quoted representation of a command line."""
    cmd = shlex.join(str(a) for a in args)
    if stdout is not None:
        cmd += f" > {shlex.quote(str(stdout))} 2>&1"
    return cmd


def run_command(
    args: Sequence[str],
    expected_outputs: Iterable[PathType] = (),
    stdout: Optional[PathType] = None,
) -> str:
    """Run an external program and wait for it to finish.

    :param args: the program and its arguments
    :param expected_outputs: files the program must have created
    :param stdout: write the standard output and error of the program to
        this file instead of capturing it
    :returns: the captured standard output (empty if `stdout` is given)
    :raises ExternalToolError: if the program cannot be started, exits with
        a non-zero status or does not create its output files
    """
    args = [str(a) for a in args]
    name = os.path.basename(args[0])
    logger.debug("Invoking %s: %s", name, format_command(args, stdout))

    try:
        if stdout is not None:
            with open(stdout, "w") as log_fh:
                proc = subprocess.Popen(
                    args,
                    stdout=log_fh,
                    stderr=subprocess.STDOUT,
                    close_fds=True,
                    shell=False,
                )
                proc.communicate()
                out, errmsg = b"", b""
        else:
            proc = subprocess.Popen(
                args,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                close_fds=True,
                shell=False,
            )
            (out, errmsg) = proc.communicate()
    except ValueError as exc:
        logger.error("ERROR running %s. Incorrect arguments", name)
        raise ExternalToolError(f"Incorrect arguments for {name}", args) from exc
    except OSError as exc:
        logger.error("ERROR running %s. Executable not found", name)
        raise ExternalToolError(f"Cannot run {name}: {exc}", args) from exc

    stderr = errmsg.decode("utf-8", errors="replace")
    if proc.returncode != 0:
        error = f"ERROR running {name}. Program returned {proc.returncode}"
        logger.error("%s\n%s", error, stderr)
        raise ExternalToolError(error, args, returncode=proc.returncode, stderr=stderr)

    for output in expected_outputs:
        if not Path(output).is_file():
            error = f"ERROR running {name}.\nOutput file not present {output}"
            logger.error("%s\n%s", error, stderr)
            raise ExternalToolError(
                error, args, returncode=proc.returncode, stderr=stderr
            )

    return out.decode("utf-8", errors="replace")
