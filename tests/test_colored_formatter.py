"""Tests for ColoredFormatter."""

import logging
from io import StringIO

import pytest

from discord_music_sessions.utils.logging import ColoredFormatter

RESET = "\033[0m"


def _make_record(level: int, message: str = "test") -> logging.LogRecord:
    return logging.LogRecord(
        name="test.logger",
        level=level,
        pathname="test.py",
        lineno=1,
        msg=message,
        args=(),
        exc_info=None,
    )


def _tty() -> StringIO:
    stream = StringIO()
    stream.isatty = lambda: True  # type: ignore[method-assign]
    return stream


@pytest.fixture(autouse=True)
def clean_color_env(monkeypatch):
    monkeypatch.delenv("NO_COLOR", raising=False)
    monkeypatch.delenv("FORCE_COLOR", raising=False)


class TestColoredFormatter:
    @pytest.mark.parametrize("level", list(ColoredFormatter.LEVEL_COLORS))
    def test_color_applied_per_level(self, level):
        fmt = ColoredFormatter("%(levelname)s | %(name)s | %(message)s", stream=_tty())

        output = fmt.format(_make_record(level))

        assert ColoredFormatter.LEVEL_COLORS[level] in output
        assert f"{ColoredFormatter.NAME_COLOR}test.logger{RESET}" in output

    def test_plain_when_stream_is_not_a_tty(self):
        fmt = ColoredFormatter("%(levelname)s | %(message)s", stream=StringIO())

        assert fmt.format(_make_record(logging.INFO)) == "INFO | test"

    def test_no_color_env_disables_colors(self, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "1")
        fmt = ColoredFormatter("%(levelname)s", stream=_tty())

        assert fmt.format(_make_record(logging.ERROR)) == "ERROR"

    def test_force_color_env_enables_colors(self, monkeypatch):
        monkeypatch.setenv("FORCE_COLOR", "1")
        fmt = ColoredFormatter("%(levelname)s", stream=StringIO())

        assert RESET in fmt.format(_make_record(logging.WARNING))

    def test_use_color_overrides_environment(self, monkeypatch):
        monkeypatch.setenv("FORCE_COLOR", "1")
        fmt = ColoredFormatter("%(levelname)s", use_color=False)

        assert fmt.format(_make_record(logging.WARNING)) == "WARNING"

    def test_original_record_is_untouched(self):
        fmt = ColoredFormatter("%(levelname)s", use_color=True)
        record = _make_record(logging.INFO)

        fmt.format(record)

        assert record.levelname == "INFO"
        assert record.name == "test.logger"
