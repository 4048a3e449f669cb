"""Console and file logging for the ampliplex commands.

Copyright © 2024 Pixelgen Technologies AB.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import click

from ampliplex.types import PathType

ampliplex_root_logger = logging.getLogger("ampliplex")

DEFAULT_LEVEL = logging.INFO
FILE_FORMAT = "%(asctime)s %(name)s %(levelname)-8s %(message)s"
CONSOLE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# click.style arguments per level name
LEVEL_STYLES: dict[str, dict[str, str]] = {
    "DEBUG": {"fg": "blue"},
    "INFO": {"fg": "green"},
    "WARNING": {"fg": "yellow"},
    "ERROR": {"fg": "red"},
    "CRITICAL": {"fg": "red"},
}


def _short_name(name: str) -> str:
    """Drop the package prefix of a logger name, e.g. ampliplex.esv.clean."""
    prefix = "ampliplex."
    return name[len(prefix) :] if name.startswith(prefix) else name


class ConsoleFormatter(logging.Formatter):
    """Formatter for messages shown on the terminal.

    In plain mode info messages are shown as they are and other levels get
    a `LEVEL: ` prefix. In verbose mode every line gets a timestamp, the
    coloured level and the module that logged it.
    """

    def __init__(self, verbose: bool = False):
        """Create a console formatter.

        :param verbose: use the timestamped, coloured layout
        """
        super().__init__(datefmt=CONSOLE_DATE_FORMAT)
        self.verbose = verbose

    def _prefix(self, record: logging.LogRecord) -> str:
        level = click.style(
            f"{record.levelname:<8}", **LEVEL_STYLES.get(record.levelname, {})
        )
        timestamp = self.formatTime(record, self.datefmt)
        return f"{timestamp} [{level}] {_short_name(record.name)}: "

    def format(self, record: logging.LogRecord) -> str:
        """Format a record for the terminal.

        :param record: the record to format
        :returns str: the formatted record
        """
        msg = record.getMessage()
        if record.exc_info:
            msg = f"{msg}\n{self.formatException(record.exc_info)}"

        if self.verbose:
            prefix = self._prefix(record)
            return "\n".join(prefix + line for line in msg.splitlines())

        if record.levelno == logging.INFO:
            return msg
        return f"{record.levelname}: {msg}"


class ClickHandler(logging.Handler):
    """Forward log records to the terminal with `click.echo`.

    :param use_stderr: write to stderr so that command output on stdout
        stays clean
    """

    def __init__(self, use_stderr: bool = True):
        """Initialize the click handler."""
        super().__init__()
        self.use_stderr = use_stderr

    def emit(self, record: logging.LogRecord) -> None:
        """Echo a formatted record."""
        try:
            click.echo(self.format(record), err=self.use_stderr)
        except Exception:
            self.handleError(record)


class LoggingSetup:
    """Install the console and log file handlers for the duration of a command.

    The handlers that were installed before are put back when the context
    exits, so that nested or repeated invocations (as in tests) do not
    accumulate handlers.
    """

    def __init__(
        self,
        log_file: Optional[PathType],
        verbose: bool,
        logger: Optional[logging.Logger] = None,
    ):
        """Initialize the logging setup.

        :param log_file: also write all records to this file if given
        :param verbose: log at DEBUG level with the verbose console layout
        :param logger: the logger to configure, default is the root logger
        """
        self.log_file = Path(log_file) if log_file is not None else None
        self.verbose = verbose
        self.level = logging.DEBUG if verbose else DEFAULT_LEVEL
        self._logger = logger or logging.getLogger()
        self._saved_handlers: list[logging.Handler] = []
        self._saved_level = self._logger.level
        self._file_handler: Optional[logging.FileHandler] = None

    def _console_handler(self) -> logging.Handler:
        handler = ClickHandler()
        handler.setFormatter(ConsoleFormatter(verbose=self.verbose))
        return handler

    def _log_file_handler(self, path: Path) -> logging.FileHandler:
        handler = logging.FileHandler(str(path), mode="w")
        handler.setFormatter(logging.Formatter(FILE_FORMAT))
        handler.setLevel(self.level)
        return handler

    def initialize(self) -> None:
        """Replace the handlers of the logger with the ampliplex handlers."""
        self._saved_handlers = list(self._logger.handlers)
        self._saved_level = self._logger.level

        handlers = [self._console_handler()]
        if self.log_file is not None:
            self._file_handler = self._log_file_handler(self.log_file)
            handlers.append(self._file_handler)

        self._logger.setLevel(self.level)
        self._logger.handlers = handlers

    def shutdown(self) -> None:
        """Close the log file and put the previous handlers and level back."""
        if self._file_handler is not None:
            self._file_handler.close()
            self._file_handler = None
        self._logger.handlers = self._saved_handlers
        self._logger.setLevel(self._saved_level)

    def __enter__(self) -> "LoggingSetup":
        """Install the handlers."""
        self.initialize()
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        """Remove the handlers, letting any exception propagate."""
        self.shutdown()
        return False


def handle_unhandled_exception(exc_type, exc_value, exc_traceback):
    """Log an uncaught exception at CRITICAL level.

    Keyboard interrupts are passed on to the default hook.
    """
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_traceback)
        return

    ampliplex_root_logger.critical(
        "Unhandled exception", exc_info=(exc_type, exc_value, exc_traceback)
    )


sys.excepthook = handle_unhandled_exception
