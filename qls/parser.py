#!/usr/bin/env python3
"""
parser.py

Logcat line parser for QLS.

Responsibilities:
  - Decide whether a raw line belongs to the observed package.
  - Parse a "threadtime" logcat line into a ClassifiedLine:
      * timestamp  "MM-DD HH:MM:SS.mmm"
      * severity   from the single-letter code (V/D/I/W/E/F)
      * message    rest of the line (tag included)
  - Detect native crash-frame lines and extract their raw addresses
    from "#<N> <mode> <address> <rest>" sub-patterns.

Notes:
  - Nothing here raises for bad input. A line that does not fit is simply
    "no match" (None or an empty list).
  - Frame lines are NOT symbolized here. That is handled by symbolizer.py.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional


# ---------------------------------------------------------------------------
# Regexes
# ---------------------------------------------------------------------------

# Example:
#   06-01 12:00:00.000  1234  5678 F DEBUG   :       #00 pc 0000000000001a2b  libmain.so
#
# Any number of numeric fields (pid, tid, uid, ...) may sit between the
# timestamp and the severity letter.
LOGCAT_LINE_RE = re.compile(
    r"""
    ^\s*
    (?P<timestamp>\d{2}-\d{2}\s+\d{2}:\d{2}:\d{2}\.\d{3})
    \s+
    (?:\d+\s+)+                 # pid, tid, ...
    (?P<level>\w)               # single severity letter
    \s+
    (?P<message>.+?)
    \s*$
    """,
    re.VERBOSE,
)

# Frame sub-line inside a fatal message:
#   "#00 pc 0000000000001a2b  /data/app/.../libmain.so (offset 0x1000)"
#
# The address is the second token after '#<N>' and must be followed by
# something (the library path).
FRAME_ADDRESS_RE = re.compile(
    r"""
    \#(?P<index>\d+)
    \s+
    (?P<mode>\w+)               # 'pc', 'sp', ...
    \s+
    (?P<address>\S+)
    (?=\s+\S)
    """,
    re.VERBOSE,
)

# Literal marker that flags a fatal line as a native crash frame.
CRASH_FRAME_MARKER = "offset"


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

class Severity(Enum):
    """
    Logcat severity.

    Each member carries its logcat letter and the logging level used when
    a line of this severity is emitted.
    """
    VERBOSE = ("V", logging.DEBUG)
    DEBUG = ("D", logging.DEBUG)
    INFO = ("I", logging.INFO)
    WARN = ("W", logging.WARNING)
    ERROR = ("E", logging.ERROR)
    FATAL = ("F", logging.ERROR)

    def __init__(self, letter: str, log_level: int) -> None:
        self.letter = letter
        self.log_level = log_level


_SEVERITY_BY_LETTER: Dict[str, Severity] = {s.letter: s for s in Severity}
# 'S' (silent) is gated together with V/D.
_SEVERITY_BY_LETTER["S"] = Severity.VERBOSE


@dataclass(frozen=True)
class ClassifiedLine:
    """
    One logcat line after classification.

    Fields:
        timestamp: "MM-DD HH:MM:SS.mmm", or None when not available.
        severity:  Severity parsed from the letter code.
        message:   Remainder of the line (tag + text).
    """
    timestamp: Optional[str]
    severity: Severity
    message: str


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def severity_from_letter(letter: str) -> Optional[Severity]:
    return _SEVERITY_BY_LETTER.get(letter)


def matches_package(raw: str, target_package: str) -> bool:
    """
    Return True if the raw, unparsed line mentions target_package.

    The package name usually shows up in the tag or in a library path,
    which is why the whole line is searched rather than the message only.
    """
    return target_package in raw


def classify_line(raw: str) -> Optional[ClassifiedLine]:
    """
    Parse a single logcat line.

    Returns:
        ClassifiedLine if the line has the threadtime layout and a known
        severity letter; otherwise None.
    """
    m = LOGCAT_LINE_RE.match(raw.rstrip("\r\n"))
    if not m:
        return None

    severity = severity_from_letter(m.group("level"))
    if severity is None:
        return None

    return ClassifiedLine(
        timestamp=m.group("timestamp"),
        severity=severity,
        message=m.group("message"),
    )


def is_crash_frame(line: ClassifiedLine) -> bool:
    """
    Heuristic: a fatal line carrying the "offset" marker is a native
    crash frame worth symbolizing.
    """
    return line.severity is Severity.FATAL and CRASH_FRAME_MARKER in line.message


def extract_addresses(message: str) -> List[str]:
    """
    Extract raw address tokens from every "#<N> <mode> <address> <rest>"
    sub-pattern in message, in order of appearance.
    """
    return [m.group("address") for m in FRAME_ADDRESS_RE.finditer(message)]


__all__ = [
    "Severity",
    "ClassifiedLine",
    "LOGCAT_LINE_RE",
    "FRAME_ADDRESS_RE",
    "CRASH_FRAME_MARKER",
    "severity_from_letter",
    "matches_package",
    "classify_line",
    "is_crash_frame",
    "extract_addresses",
]
