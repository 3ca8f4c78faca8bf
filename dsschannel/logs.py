"""Coloured, timestamped console logging."""

from __future__ import annotations

import sys
import time
from enum import Enum
from typing import Any, TextIO

_COLOR_RESET = "\033[0m"


class LogLevel(Enum):
    """Severity of a log line, with the terminal colour it is printed in."""

    DEBUG = "\033[36m"
    INFO = "\033[32m"
    WARN = "\033[33m"
    ERROR = "\033[31m"

    @property
    def color(self) -> str:
        return self.value


def log(level: LogLevel, message: str, *args: Any, stream: TextIO | None = None) -> None:
    """Print one log line; ``args`` are applied to ``message`` printf-style."""
    out = sys.stdout if stream is None else stream
    text = message % args if args else message
    stamp = time.strftime("%Y-%m-%d %X", time.localtime())
    out.write(f"{level.color}[{stamp}] [{level.name}]{_COLOR_RESET} {text}\n")
    out.flush()