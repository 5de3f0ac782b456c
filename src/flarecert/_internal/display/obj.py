"""This modules define the actual display implementations used in FlareCert"""
import logging
import sys
from typing import Optional
from typing import Sequence
from typing import TextIO
from typing import Union

from flarecert import errors
from flarecert._internal.display import util

logger = logging.getLogger(__name__)

SIDE_FRAME = ("- " * 39) + "-"
"""Line used to frame reports printed to the terminal."""


class FileDisplay:
    """File-based display reading answers from ``infile``."""

    def __init__(self, outfile: Optional[TextIO] = None,
                 infile: Optional[TextIO] = None) -> None:
        super().__init__()
        self.outfile = outfile if outfile is not None else sys.stdout
        self.infile = infile if infile is not None else sys.stdin

    def notification(self, message: str, wrap: bool = True) -> None:
        """Display a status message.

        :param str message: Message to display
        :param bool wrap: Whether or not the application should wrap text

        """
        if wrap:
            message = util.wrap_lines(message)
        logger.debug("Notifying user: %s", message)
        self.outfile.write(message + "\n")
        self.outfile.flush()

    def yesno(self, message: str) -> bool:
        """Query the user with a yes/no question.

        ``y`` and ``yes`` in any case answer yes, ``n``, ``no`` and an empty
        line answer no; anything else repeats the question. A closed or
        unreadable input stream counts as no.

        :param str message: question for the user

        :returns: True for "Yes", False for "No"
        :rtype: bool

        """
        while True:
            self.outfile.write("{0} [y/N]: ".format(message))
            self.outfile.flush()
            try:
                ans = util.read_line(self.infile)
            except (EOFError, OSError) as error:
                logger.warning("Error reading input: %r", error)
                self.outfile.write("\n")
                return False

            ans = ans.strip().lower()
            if ans in ("y", "yes"):
                return True
            if ans in ("n", "no", ""):
                return False
            self.outfile.write("Please answer yes (y) or no (n).\n")

    def menu(self, message: str, choices: Sequence[str]) -> int:
        """Display a numbered menu and read a single selection.

        :param str message: title of menu
        :param choices: Menu lines, len must be > 0

        :returns: 0-based index of the user's selection
        :rtype: int

        :raises errors.Error: for non-numeric or out of range input, or when
            the input stream is closed

        """
        self._print_menu(message, choices)
        self.outfile.write("Please select an option (enter number): ")
        self.outfile.flush()
        try:
            ans = util.read_line(self.infile).strip()
        except (EOFError, OSError) as error:
            raise errors.Error("Failed to read input: {0!r}".format(error))

        try:
            selection = int(ans)
        except ValueError:
            raise errors.Error("Invalid choice: {0}".format(ans))
        if selection < 1 or selection > len(choices):
            raise errors.Error("Choice out of range: {0}".format(selection))
        return selection - 1

    def _print_menu(self, message: str, choices: Sequence[str]) -> None:
        self.outfile.write("\n{0}\n\n".format(message))
        for i, desc in enumerate(choices, 1):
            self.outfile.write("  {0}. {1}\n".format(i, desc))
        self.outfile.write("\n")
        self.outfile.flush()


class NoninteractiveDisplay:
    """A display utility implementation that never asks for interactive user input"""

    def __init__(self, outfile: Optional[TextIO] = None, assume_yes: bool = False) -> None:
        super().__init__()
        self.outfile = outfile if outfile is not None else sys.stdout
        self.assume_yes = assume_yes

    def notification(self, message: str, wrap: bool = True) -> None:
        """Displays a notification without waiting for user acceptance.

        :param str message: Message to display to stdout
        :param bool wrap: Whether or not the application should wrap text

        """
        if wrap:
            message = util.wrap_lines(message)
        logger.debug("Notifying user: %s", message)
        self.outfile.write(message + "\n")
        self.outfile.flush()

    def yesno(self, message: str) -> bool:
        """Decide Yes or No, without asking anybody"""
        logger.info("Answering %s without prompting: %s",
                    "yes" if self.assume_yes else "no", message)
        return self.assume_yes

    def menu(self, message: str, choices: Sequence[str]) -> int:
        """Avoid displaying a menu.

        :raises errors.MissingCommandlineFlag: always

        """
        raise errors.MissingCommandlineFlag(
            "Missing an answer in non-interactive mode for:\n{0}\nChoices: {1!r}".format(
                message, list(choices)))


Display = Union[FileDisplay, NoninteractiveDisplay]
"""Any object offering ``notification``, ``yesno`` and ``menu``."""
