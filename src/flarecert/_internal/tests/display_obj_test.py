"""Test :mod:`flarecert._internal.display.obj`."""
import io
import sys
import unittest
from unittest import mock

import pytest

from flarecert import errors
from flarecert._internal.display import obj as display_obj

CHOICES = ["First", "Second", "Third"]


class FileOutputDisplayTest(unittest.TestCase):
    """Test stdout display."""

    def setUp(self):
        self.mock_stdout = io.StringIO()

    def _display(self, answers=""):
        return display_obj.FileDisplay(self.mock_stdout, io.StringIO(answers))

    def test_notification_wraps(self):
        self._display().notification("message " * 20)
        lines = self.mock_stdout.getvalue().splitlines()
        assert len(lines) == 2
        assert all(len(line) <= 80 for line in lines)

    def test_notification_no_wrap(self):
        self._display().notification("message " * 20, wrap=False)
        assert len(self.mock_stdout.getvalue().splitlines()) == 1

    def test_yesno(self):
        for answer, expected in (("y\n", True), ("Yes\n", True), ("YES\n", True),
                                 ("n\n", False), ("no\n", False), ("\n", False)):
            assert self._display(answer).yesno("Continue?") is expected
        assert "Continue? [y/N]: " in self.mock_stdout.getvalue()

    def test_yesno_repeats_on_invalid(self):
        assert self._display("maybe\nsure\ny\n").yesno("Continue?") is True
        assert self.mock_stdout.getvalue().count("Please answer yes (y) or no (n).") == 2

    def test_yesno_closed_input(self):
        assert self._display("").yesno("Continue?") is False

    def test_yesno_read_error(self):
        display = self._display()
        display.infile = mock.MagicMock()
        display.infile.readline.side_effect = OSError("broken pipe")
        assert display.yesno("Continue?") is False

    def test_menu(self):
        assert self._display("2\n").menu("Pick one", CHOICES) == 1
        out = self.mock_stdout.getvalue()
        assert "Pick one" in out
        assert "  1. First" in out
        assert "  3. Third" in out

    def test_menu_invalid(self):
        for answer in ("zero\n", "0\n", "4\n", ""):
            with pytest.raises(errors.Error):
                self._display(answer).menu("Pick one", CHOICES)


class NoninteractiveDisplayTest(unittest.TestCase):
    """Test non-interactive display. These tests are pretty easy!"""

    def setUp(self):
        self.mock_stdout = io.StringIO()
        self.displayer = display_obj.NoninteractiveDisplay(self.mock_stdout)

    def test_notification(self):
        self.displayer.notification("Hello World")
        assert self.mock_stdout.getvalue() == "Hello World\n"

    def test_yesno(self):
        assert self.displayer.yesno("Replace it?") is False
        yes = display_obj.NoninteractiveDisplay(self.mock_stdout, assume_yes=True)
        assert yes.yesno("Replace it?") is True

    def test_menu(self):
        with pytest.raises(errors.MissingCommandlineFlag, match="Pick one"):
            self.displayer.menu("Pick one", CHOICES)


if __name__ == "__main__":
    sys.exit(pytest.main(sys.argv[1:] + [__file__]))  # pragma: no cover
