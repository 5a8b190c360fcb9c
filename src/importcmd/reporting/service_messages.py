"""
Machine-readable output line format.

Progress, statistics and operation brackets are written as TeamCity-style
service messages, one per line:

    ##teamcity[buildStatisticValue key='import_duration' value='1520']
    ##teamcity[progressMessage 'Opening project']
"""

import sys
import threading
from typing import IO, Optional

_ESCAPES = {
    "|": "||",
    "'": "|'",
    "\n": "|n",
    "\r": "|r",
    "[": "|[",
    "]": "|]",
    "\u0085": "|x",
    "\u2028": "|l",
    "\u2029": "|p",
}


def escape_value(value: object) -> str:
    """Escape a value for use inside a quoted service message attribute."""
    return "".join(_ESCAPES.get(ch, ch) for ch in str(value))


def format_service_message(name: str, value: Optional[str] = None, /, **attributes) -> str:
    """
    Build one service message line without the trailing newline.

    Either a single unnamed ``value`` or named ``attributes`` are rendered;
    attributes whose value is None are skipped.
    """
    if value is not None:
        return f"##teamcity[{name} '{escape_value(value)}']"
    parts = [
        f"{key}='{escape_value(attr)}'"
        for key, attr in attributes.items()
        if attr is not None
    ]
    body = " ".join([name] + parts)
    return f"##teamcity[{body}]"


class ServiceMessageWriter:
    """
    Thread-safe line writer shared by the statistics sink and the reporter.

    Engine callbacks and the watchdog write from their own threads, so each
    line is written and flushed under a lock.
    """

    def __init__(self, stream: Optional[IO[str]] = None):
        self._stream = stream
        self._lock = threading.Lock()

    @property
    def stream(self) -> IO[str]:
        # Resolved lazily so test capture of sys.stdout is honoured.
        return self._stream if self._stream is not None else sys.stdout

    def write(self, name: str, value: Optional[str] = None, /, **attributes) -> str:
        line = format_service_message(name, value, **attributes)
        with self._lock:
            stream = self.stream
            stream.write(line + "\n")
            stream.flush()
        return line
