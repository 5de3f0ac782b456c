"""Tests for flarecert._internal.log."""
import io
import logging
import sys
from unittest import mock

import pytest

from flarecert import errors
from flarecert._internal import log
from flarecert._internal.tests import util as test_util


class SetupLoggingTest(test_util.TempDirTestCase):
    """Tests for flarecert._internal.log.setup_logging."""

    def _level(self, **kwargs):
        config = test_util.make_config(**kwargs)
        return log.setup_logging(config, io.StringIO()).level

    def test_levels(self):
        assert self._level() == logging.ERROR
        assert self._level(verbose_count=1) == logging.INFO
        assert self._level(verbose_count=2) == logging.DEBUG
        assert self._level(verbose_count=5) == logging.DEBUG
        assert self._level(quiet=True, verbose_count=2) == logging.CRITICAL

    def test_quiet_still_reports_fatal_errors(self):
        stream = io.StringIO()
        log.setup_logging(test_util.make_config(quiet=True), stream)
        logging.getLogger("flarecert.test").error("renew failure")
        assert stream.getvalue() == ""

        assert log.exit_with_error(errors.Error("boom"), stream) == 1
        assert stream.getvalue() == "Error: boom\n"

    def test_replaces_previous_handler(self):
        first = log.setup_logging(test_util.make_config(), io.StringIO())
        second = log.setup_logging(test_util.make_config(), io.StringIO())
        handlers = logging.getLogger().handlers
        assert second in handlers
        assert first not in handlers

    def test_warnings_hidden_by_default(self):
        stream = io.StringIO()
        log.setup_logging(test_util.make_config(), stream)
        logging.getLogger("flarecert.test").warning("metadata not saved")
        logging.getLogger("flarecert.test").error("issuance failed")
        assert stream.getvalue() == "issuance failed\n"


class ColoredStreamHandlerTest(test_util.TempDirTestCase):
    """Tests for flarecert._internal.log.ColoredStreamHandler"""

    def setUp(self):
        super().setUp()
        self.stream = io.StringIO()
        self.stream.isatty = lambda: True
        self.logger = logging.getLogger("flarecert.colored")
        self.logger.setLevel(logging.DEBUG)
        self.handler = log.ColoredStreamHandler(self.stream)
        self.logger.addHandler(self.handler)

    def tearDown(self):
        self.logger.removeHandler(self.handler)
        super().tearDown()

    def test_format(self):
        msg = "I did a thing"
        self.logger.debug(msg)
        assert self.stream.getvalue() == "{0}\n".format(msg)

    def test_format_and_red_level(self):
        msg = "I did another thing"
        self.handler.red_level = logging.DEBUG
        self.logger.debug(msg)

        assert self.stream.getvalue() == "{0}{1}{2}\n".format(
            log.ANSI_SGR_RED, msg, log.ANSI_SGR_RESET)


class ExitWithErrorTest(test_util.TempDirTestCase):
    def test_exit_with_error(self):
        stream = io.StringIO()
        assert log.exit_with_error(errors.ConfigurationError("bad domain"), stream) == 1
        assert stream.getvalue() == "Error: bad domain\n"

    def test_defaults_to_stderr(self):
        with mock.patch("flarecert._internal.log.sys.stderr", new_callable=io.StringIO) as err:
            log.exit_with_error(errors.Error("boom"))
        assert err.getvalue() == "Error: boom\n"


if __name__ == "__main__":
    sys.exit(pytest.main(sys.argv[1:] + [__file__]))  # pragma: no cover
