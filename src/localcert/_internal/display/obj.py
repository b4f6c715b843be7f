"""This modules define the actual display implementations used in localcert"""
import logging
import sys
import textwrap
from typing import Any
from typing import Optional
from typing import TextIO
from typing import Union

from localcert import errors

logger = logging.getLogger(__name__)

SIDE_FRAME = ("- " * 39) + "-"
"""Display boundary (alternates spaces, so when copy-pasted, markdown doesn't interpret
it as a heading)"""


class _DisplayService:
    def __init__(self) -> None:
        self.display: Optional[Union[FileDisplay, NoninteractiveDisplay]] = None


_SERVICE = _DisplayService()


def _wrap_lines(msg: str) -> str:
    """Format lines nicely to 80 chars.

    :param str msg: Original message

    :returns: Formatted message respecting newlines in message
    :rtype: str

    """
    lines = msg.splitlines()
    fixed_l = []

    for line in lines:
        fixed_l.append(textwrap.fill(
            line,
            80,
            break_long_words=False,
            break_on_hyphens=False))

    return '\n'.join(fixed_l)


def read_input(prompt: Optional[str] = None) -> str:
    """Get user input.

    :param str prompt: prompt message

    :returns: input from the user
    :rtype: str

    :raises EOFError: if stdin is closed

    """
    if prompt:
        sys.stdout.write(prompt)
        sys.stdout.flush()

    line = sys.stdin.readline()
    if not line:
        raise EOFError
    return line.rstrip('\n')


def _parens_around_char(label: str) -> str:
    """Place parens around first character of label.

    :param str label: Must contain at least one character

    """
    return "({first}){rest}".format(first=label[0], rest=label[1:])


class FileDisplay:
    """File-based display."""

    def __init__(self, outfile: TextIO, force_interactive: bool = False) -> None:
        super().__init__()
        self.outfile = outfile
        self.force_interactive = force_interactive

    def notification(self, message: str) -> None:
        """Display a status message.

        :param str message: Message to display

        """
        logger.debug("Notifying user: %s", message)
        self.outfile.write(message + "\n")
        self.outfile.flush()

    def yesno(self, message: str, yes_label: str = "Yes", no_label: str = "No",
              default: Optional[bool] = None, cli_flag: Optional[str] = None,
              force_interactive: bool = False, **unused_kwargs: Any) -> bool:
        """Query the user with a yes/no question.

        Yes and No label must begin with different letters, and must contain at
        least one letter each.

        :param str message: question for the user
        :param str yes_label: Label of the "Yes" parameter
        :param str no_label: Label of the "No" parameter
        :param default: default value to return, if interaction is not possible
        :param str cli_flag: option used to set this value with the CLI
        :param bool force_interactive: True if it's safe to prompt the user
            because it won't cause any workflow regressions

        :returns: True for "Yes", False for "No"
        :rtype: bool

        """
        if not self._can_interact(force_interactive):
            if default is None:
                raise errors.MissingCommandlineFlag(_interaction_fail_message(message, cli_flag))
            return default

        message = _wrap_lines(message)

        self.outfile.write("{0}\n{frame}\n".format(message, frame=SIDE_FRAME))
        self.outfile.flush()

        while True:
            ans = read_input("{yes}/{no}: ".format(
                yes=_parens_around_char(yes_label),
                no=_parens_around_char(no_label)))

            if (ans.startswith(yes_label[0].lower()) or
                    ans.startswith(yes_label[0].upper())):
                return True
            if (ans.startswith(no_label[0].lower()) or
                    ans.startswith(no_label[0].upper())):
                return False

    def _can_interact(self, force_interactive: bool = False) -> bool:
        """Can we safely interact with the user?

        :param bool force_interactive: if interactivity is forced

        :returns: True if the display can interact with the user
        :rtype: bool

        """
        if self.force_interactive or force_interactive:
            return True
        if sys.stdin.isatty() and self.outfile.isatty():
            return True
        logger.debug("Skipping interaction: stdin or the display is not a terminal")
        return False


class NoninteractiveDisplay:
    """A display utility implementation that never asks for interactive user input"""

    def __init__(self, outfile: TextIO, *unused_args: Any, **unused_kwargs: Any) -> None:
        super().__init__()
        self.outfile = outfile

    def notification(self, message: str) -> None:
        """Display a status message to the output file."""
        logger.debug("Notifying user: %s", message)
        self.outfile.write(message + "\n")
        self.outfile.flush()

    def yesno(self, message: str, yes_label: Optional[str] = None,
              no_label: Optional[str] = None,
              default: Optional[bool] = None, cli_flag: Optional[str] = None,
              **unused_kwargs: Any) -> bool:
        """Decide Yes or No, without asking anybody

        :param str message: question for the user
        :param default: default value to return
        :param str cli_flag: option used to set this value with the CLI

        :raises errors.MissingCommandlineFlag: if there was no default
        :returns: True for "Yes", False for "No"
        :rtype: bool

        """
        if default is None:
            raise errors.MissingCommandlineFlag(_interaction_fail_message(message, cli_flag))
        return default


def _interaction_fail_message(message: str, cli_flag: Optional[str]) -> str:
    msg = "Missing command line flag or config entry for this setting:\n"
    msg += message
    if cli_flag:
        msg += "\n\n(You can set this with the {0} flag)".format(cli_flag)
    return msg


def get_display() -> Union[FileDisplay, NoninteractiveDisplay]:
    """Get the display utility.

    :return: the display utility
    :rtype: Union[FileDisplay, NoninteractiveDisplay]
    :raise: ValueError if the display utility is not configured yet.

    """
    if not _SERVICE.display:
        raise ValueError("This function was called too early in localcert's execution "
                         "as the display utility hasn't been configured yet.")
    return _SERVICE.display


def set_display(display: Union[FileDisplay, NoninteractiveDisplay]) -> None:
    """Set the display service.

    :param Union[FileDisplay, NoninteractiveDisplay] display: the display service

    """
    _SERVICE.display = display
