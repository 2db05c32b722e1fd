#!/usr/bin/env python3
"""
logcat.py

Log sources for QLS.

Both sources are plain iterators of text lines:

  - LogcatProcess : spawns "adb logcat" and yields its stdout lines until
                    the device stream ends.
  - read_lines    : replays a captured log file, or stdin for "-".
"""

from __future__ import annotations

import io
import logging
import subprocess
import sys
from pathlib import Path
from typing import Iterator, Optional, Union

from qls.errors import LogSourceError


LOG = logging.getLogger("qls.logcat")


class LogcatProcess:
    """
    "adb logcat" running as a child process.

    Iterating yields decoded lines (UTF-8, undecodable bytes replaced).
    close() stops the child; it also runs when used as a context manager.
    """

    def __init__(self, adb_bin: Union[str, Path]) -> None:
        self.cmd = [str(adb_bin), "logcat"]

        LOG.debug("Starting log source: %s", " ".join(self.cmd))
        try:
            self.proc = subprocess.Popen(
                self.cmd,
                stdout=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
            )
        except OSError as e:
            raise LogSourceError(f"Couldn't run logcat: {e}") from e

    def __iter__(self) -> Iterator[str]:
        yield from self.proc.stdout

    def close(self, timeout: float = 1.0) -> Optional[int]:
        if self.proc.poll() is None:
            self.proc.terminate()
            try:
                self.proc.wait(timeout=timeout)
            except subprocess.TimeoutExpired:
                self.proc.kill()
                self.proc.wait()
        if self.proc.stdout:
            self.proc.stdout.close()
        return self.proc.returncode

    def __enter__(self) -> "LogcatProcess":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def _iter_file(f) -> Iterator[str]:
    with f:
        yield from f


def read_lines(path: str) -> Iterator[str]:
    """
    Return an iterator over a captured log file, or over stdin when path
    is "-". The file is opened right away so a bad path fails at startup.

    Raises:
        LogSourceError: the file cannot be opened.
    """
    if path == "-":
        # sys.stdin decodes strictly under most locales.
        return iter(io.TextIOWrapper(sys.stdin.buffer, encoding="utf-8", errors="replace"))

    try:
        f = open(path, "r", encoding="utf-8", errors="replace")
    except OSError as e:
        raise LogSourceError(f"Couldn't open log file {path}: {e}") from e
    return _iter_file(f)


__all__ = [
    "LogcatProcess",
    "read_lines",
]
