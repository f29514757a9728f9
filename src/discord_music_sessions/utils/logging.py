"""Colored logging formatter for console output."""

from __future__ import annotations

import logging
import os
import sys
from typing import IO, Any


class ColoredFormatter(logging.Formatter):
    """Formatter that colors the level name and dims the logger name.

    Colors are used when ``FORCE_COLOR`` is set, and otherwise only when the
    target stream is a TTY and ``NO_COLOR`` is not set. ``use_color`` pins
    the decision for the formatter's lifetime.
    """

    LEVEL_COLORS: dict[int, str] = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[1;31m",
    }
    NAME_COLOR = "\033[2m"
    RESET = "\033[0m"

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        *,
        stream: IO[str] | None = None,
        use_color: bool | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(fmt, datefmt, **kwargs)
        self.stream = stream
        self.use_color = use_color

    def _colors_enabled(self) -> bool:
        if self.use_color is not None:
            return self.use_color
        if os.environ.get("FORCE_COLOR"):
            return True
        if os.environ.get("NO_COLOR") is not None:
            return False
        stream = self.stream or sys.stderr
        isatty = getattr(stream, "isatty", None)
        return bool(isatty and isatty())

    def format(self, record: logging.LogRecord) -> str:
        if not self._colors_enabled():
            return super().format(record)
        colored = logging.makeLogRecord(record.__dict__)
        level_color = self.LEVEL_COLORS.get(record.levelno, "")
        colored.levelname = f"{level_color}{record.levelname}{self.RESET}"
        colored.name = f"{self.NAME_COLOR}{record.name}{self.RESET}"
        return super().format(colored)
