"""Logging utilities for FlareCert.

Log records go to stderr through a single stream handler installed by
`setup_logging`. The default verbosity is ERROR so that only fatal
problems are shown; each ``-v`` lowers the threshold, making warnings
about non-fatal failures (metadata, archive cleanup) visible.

The preferred method to display information to the user is the display
object from `flarecert._internal.display.obj`.

"""
import logging
import sys
from typing import IO
from typing import Optional
from typing import TYPE_CHECKING

from flarecert._internal import constants

if TYPE_CHECKING:
    from flarecert._internal import configuration

# Logging format
CLI_FMT = "%(message)s"

ANSI_SGR_RED = "\033[31m"
ANSI_SGR_RESET = "\033[0m"

logger = logging.getLogger(__name__)


def setup_logging(config: "configuration.Config",
                  stream: Optional[IO] = None) -> logging.Handler:
    """Send log records to ``stream`` (stderr by default).

    Handlers previously installed by this function are replaced, so it
    is safe to call more than once in the same process.

    :param .Config config: uses ``quiet`` and ``verbose_count``
    :returns: the installed handler

    """
    if config.quiet:
        level = constants.QUIET_LOGGING_LEVEL
    elif config.verbose_count:
        level = max(logging.DEBUG,
                    constants.DEFAULT_LOGGING_LEVEL - (config.verbose_count + 1) * 10)
    else:
        level = constants.DEFAULT_LOGGING_LEVEL

    handler = ColoredStreamHandler(stream)
    handler.setFormatter(logging.Formatter(CLI_FMT))
    handler.setLevel(level)

    root_logger = logging.getLogger()
    for old in [h for h in root_logger.handlers if isinstance(h, ColoredStreamHandler)]:
        root_logger.removeHandler(old)
    root_logger.setLevel(logging.DEBUG)  # send all records to handlers
    root_logger.addHandler(handler)
    logger.debug("Root logging level set at %d", level)
    return handler


class ColoredStreamHandler(logging.StreamHandler):
    """Sends colored logging output to a stream.

    If the specified stream is not a tty, the class works like the
    standard `logging.StreamHandler`. Default red_level is
    `logging.WARNING`.

    :ivar bool colored: True if output should be colored
    :ivar bool red_level: The level at which to output

    """
    def __init__(self, stream: Optional[IO] = None) -> None:
        super().__init__(stream)
        isatty = getattr(self.stream, "isatty", None)
        self.colored = bool(isatty and isatty())
        self.red_level = logging.WARNING

    def format(self, record: logging.LogRecord) -> str:
        """Formats the string representation of record.

        :param logging.LogRecord record: Record to be formatted

        :returns: Formatted, string representation of record
        :rtype: str

        """
        out = super().format(record)
        if self.colored and record.levelno >= self.red_level:
            return ''.join((ANSI_SGR_RED, out, ANSI_SGR_RESET))
        return out


def exit_with_error(error: Exception, stream: Optional[IO] = None) -> int:
    """Report a fatal error as a single line and return the exit status."""
    logger.debug("Exiting due to error", exc_info=error)
    print("Error: {0}".format(error), file=stream if stream is not None else sys.stderr)
    return 1
