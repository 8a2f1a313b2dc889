"""Console log formatting."""

from __future__ import annotations

import logging
import os
import sys
from typing import IO, ClassVar

PACKAGE_PREFIX = "voice_dj."


class ColoredFormatter(logging.Formatter):
    """Formatter that colours the level name and shortens package logger names.

    ``voice_dj.application.services.playback_controller`` is shown as
    ``application.services.playback_controller``. Colours are dropped when
    ``NO_COLOR`` is set or the stream is not a terminal.
    """

    COLORS: ClassVar[dict[int, str]] = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[1;31m",
    }
    RESET = "\033[0m"

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        style: str = "%",
        *,
        stream: IO[str] | None = None,
        shorten_names: bool = True,
    ) -> None:
        super().__init__(fmt, datefmt, style)  # type: ignore[arg-type]
        self._stream = stream
        self._shorten_names = shorten_names

    def _use_color(self) -> bool:
        if os.environ.get("NO_COLOR") is not None:
            return False
        stream = self._stream or sys.stderr
        return hasattr(stream, "isatty") and stream.isatty()

    def format(self, record: logging.LogRecord) -> str:
        use_color = self._use_color()
        shorten = self._shorten_names and record.name.startswith(PACKAGE_PREFIX)
        if use_color or shorten:
            record = logging.makeLogRecord(record.__dict__)
        if shorten:
            record.name = record.name[len(PACKAGE_PREFIX):]
        if use_color:
            color = self.COLORS.get(record.levelno, "")
            record.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(record)
