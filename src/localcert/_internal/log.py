"""Logging setup for localcert.

Two handlers hang off the root logger. `ConsoleHandler` writes to stderr
at a level chosen by ``-v`` and ``-q``; it is installed by `start_console`
as soon as localcert starts, at `constants.QUIET_LOGGING_LEVEL` so only
warnings show up while the command line is being parsed. Once a
configuration exists, `finish_setup` adds the debug log in ``logs_dir``,
which keeps one file per run and the last ``max_log_backups`` runs.

Both steps install `report_crash` as `sys.excepthook`, so a crash always
ends with a pointer to the debug log when there is one.

"""
import functools
import logging
import logging.handlers
import os
import sys
import traceback
from types import TracebackType
from typing import IO
from typing import Optional

from acme import messages

from localcert import configuration
from localcert import errors
from localcert import util
from localcert._internal import constants

CONSOLE_FMT = "%(message)s"
FILE_FMT = "%(asctime)s:%(levelname)s:%(name)s:%(message)s"

HELP_URL = "https://github.com/wildone/localcert/issues"

logger = logging.getLogger(__name__)


class ConsoleHandler(logging.StreamHandler):
    """stderr handler that prints warnings and errors in red on a terminal."""

    def __init__(self, stream: Optional[IO] = None) -> None:
        super().__init__(stream)
        self.setFormatter(logging.Formatter(CONSOLE_FMT))
        self.use_color = self.stream.isatty()

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        if self.use_color and record.levelno >= logging.WARNING:
            return f"{util.ANSI_SGR_RED}{text}{util.ANSI_SGR_RESET}"
        return text


def start_console() -> ConsoleHandler:
    """Send warnings to stderr until the command line has been parsed.

    :returns: the console handler, to be passed to `finish_setup`
    :rtype: ConsoleHandler

    """
    console = ConsoleHandler()
    console.setLevel(constants.QUIET_LOGGING_LEVEL)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.addHandler(console)

    sys.excepthook = functools.partial(
        report_crash, debug="--debug" in sys.argv, log_path=None)
    return console


def finish_setup(config: configuration.NamespaceConfig, console: ConsoleHandler) -> str:
    """Attach the debug log and apply the verbosity requested in config.

    :param config: Configuration object
    :param console: handler returned by `start_console`

    :returns: path of this run's debug log
    :rtype: str

    """
    log_path = os.path.join(config.logs_dir, constants.LOG_FILENAME)
    logging.getLogger().addHandler(open_debug_log(config, log_path))
    console.setLevel(console_level(config))

    sys.excepthook = functools.partial(
        report_crash, debug=config.debug, log_path=log_path)
    logger.debug("Console logging level set at %d", console.level)
    logger.debug("Saving debug log to %s", log_path)
    return log_path


def console_level(config: configuration.NamespaceConfig) -> int:
    """Console logging level for ``-q`` and the number of ``-v`` flags."""
    if config.quiet:
        return constants.QUIET_LOGGING_LEVEL
    return max(logging.DEBUG, -config.verbose_count * 10)


def open_debug_log(config: configuration.NamespaceConfig, path: str) -> logging.Handler:
    """Open the debug log for a new run.

    With ``max_log_backups`` set, the previous run's log is moved to
    ``<path>.1`` (and so on) before this run starts writing; with zero
    backups the log is simply truncated.

    :raises .errors.Error: if ``logs_dir`` or the log can't be written

    """
    handler: logging.Handler
    try:
        util.make_or_verify_dir(config.logs_dir, 0o700, config.strict_permissions)
        if config.max_log_backups:
            rotating = logging.handlers.RotatingFileHandler(
                path, backupCount=config.max_log_backups, delay=True)
            rotating.doRollover()
            handler = rotating
        else:
            handler = logging.FileHandler(path, mode="w")
    except OSError as error:
        raise errors.Error(util.PERM_ERR_FMT.format(error))
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(FILE_FMT))
    return handler


def describe_error(error: BaseException) -> str:
    """One line summary of an unexpected error for the console."""
    if messages.is_acme_error(error):
        # drop the "urn:ietf:params:acme:error:...  ::" prefix
        return str(error).partition(":: ")[2]
    return "".join(traceback.format_exception_only(type(error), error)).rstrip()


def report_crash(exc_type: type[BaseException], exc_value: BaseException,
                 trace: Optional[TracebackType], debug: bool,
                 log_path: Optional[str]) -> None:
    """`sys.excepthook` for localcert; always exits with a nonzero status.

    `errors.Error` exits with its own message. Any other exception is
    summarized on the console, with the traceback going to the debug log
    only unless `debug` is set, and the exit message points at the log.

    """
    exc_info = (exc_type, exc_value, trace)
    if debug or not issubclass(exc_type, Exception):
        logger.error("Exiting abnormally:", exc_info=exc_info)
    else:
        logger.debug("Exiting abnormally:", exc_info=exc_info)
        if issubclass(exc_type, errors.Error):
            sys.exit(str(exc_value))
        logger.error("An unexpected error occurred:")
        logger.error(describe_error(exc_value))

    message = f"Ask for help or search for solutions at {HELP_URL}."
    if log_path:
        message += f" See the logfile {log_path} for more details."
    sys.exit(message)
