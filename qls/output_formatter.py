#!/usr/bin/env python3
"""
output_formatter.py

Output policy and formatting utilities for QLS.

Responsibilities:
  - Decide, per classified line, whether it is emitted and whether its
    crash frames are symbolized (Decision).
  - Produce the text of emitted lines:
      * "<timestamp> <message>" or just "<message>"
      * "[Rust stacktrace] <symbol>" for resolved frames
      * "[Rust stacktrace] <address> (unresolved: ...)" once the resolver
        is gone

Rules:

1) Normal mode gates by verbosity:
       V/D  -> verbosity >= 3
       I    -> verbosity >= 2
       W    -> verbosity >= 1
       E/F  -> always

2) Raw-stacktrace mode emits nothing by itself. Only resolved symbol
   lines reach the output.

3) Symbolization is attempted for crash-frame lines only (fatal lines
   carrying the "offset" marker), in both modes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional

from qls.parser import ClassifiedLine, Severity, is_crash_frame


LOG = logging.getLogger("qls.output_formatter")

RUST_STACKTRACE_MARKER = "[Rust stacktrace]"

MIN_VERBOSITY = 0
MAX_VERBOSITY = 3

# Lowest verbosity at which a severity is shown in normal mode.
_MIN_VERBOSITY_FOR: Dict[Severity, int] = {
    Severity.VERBOSE: 3,
    Severity.DEBUG: 3,
    Severity.INFO: 2,
    Severity.WARN: 1,
    Severity.ERROR: 0,
    Severity.FATAL: 0,
}


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PipelineConfig:
    """
    Run-wide settings, fixed at startup.

    Fields:
        target_package:      package name searched in every raw line.
        verbosity:           0 (errors only) .. 3 (everything).
        raw_stacktrace_only: emit resolved frames only.
        include_timestamp:   prefix emitted lines with the logcat timestamp.
    """
    target_package: str
    verbosity: int = 0
    raw_stacktrace_only: bool = False
    include_timestamp: bool = False

    DEFAULT_PACKAGE = "co.realfit.agdkwinitwgpu"

    @classmethod
    def create(
        cls,
        target_package: Optional[str] = None,
        verbosity: Optional[int] = 0,
        raw_stacktrace_only: bool = False,
        include_timestamp: bool = False,
    ) -> "PipelineConfig":
        """
        Build a config, applying the package default and clamping an
        out-of-range verbosity to 0 (with a warning).
        """
        if not target_package:
            LOG.warning('No package name provided, using "%s"', cls.DEFAULT_PACKAGE)
            target_package = cls.DEFAULT_PACKAGE

        return cls(
            target_package=target_package,
            verbosity=normalize_verbosity(verbosity),
            raw_stacktrace_only=raw_stacktrace_only,
            include_timestamp=include_timestamp,
        )


@dataclass(frozen=True)
class Decision:
    emit: bool
    attempt_symbolize: bool
    formatted: Optional[str] = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def normalize_verbosity(verbosity: Optional[int]) -> int:
    if verbosity is None:
        return MIN_VERBOSITY
    if not MIN_VERBOSITY <= verbosity <= MAX_VERBOSITY:
        LOG.warning(
            "Log level should be in the range %d..%d, got %d; using %d",
            MIN_VERBOSITY,
            MAX_VERBOSITY,
            verbosity,
            MIN_VERBOSITY,
        )
        return MIN_VERBOSITY
    return verbosity


def level_for_verbosity(verbosity: int) -> int:
    """
    Logging level for QLS's own diagnostics at a given verbosity.

    Warnings (e.g. a dead resolver) are always shown.
    """
    if verbosity >= 3:
        return logging.DEBUG
    if verbosity >= 2:
        return logging.INFO
    return logging.WARNING


def format_line(line: ClassifiedLine, include_timestamp: bool) -> str:
    if include_timestamp and line.timestamp:
        return f"{line.timestamp} {line.message}"
    return line.message


def format_symbol_line(symbol: str) -> str:
    return f"{RUST_STACKTRACE_MARKER} {symbol}"


def format_unresolved_line(address: str) -> str:
    return f"{RUST_STACKTRACE_MARKER} {address} (unresolved: resolver unavailable)"


def should_emit(severity: Severity, verbosity: int) -> bool:
    return verbosity >= _MIN_VERBOSITY_FOR[severity]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def decide(line: ClassifiedLine, config: PipelineConfig) -> Decision:
    """
    Apply the output policy to one classified line.
    """
    attempt = is_crash_frame(line)

    if config.raw_stacktrace_only:
        return Decision(emit=False, attempt_symbolize=attempt)

    if not should_emit(line.severity, config.verbosity):
        return Decision(emit=False, attempt_symbolize=attempt)

    return Decision(
        emit=True,
        attempt_symbolize=attempt,
        formatted=format_line(line, config.include_timestamp),
    )


__all__ = [
    "RUST_STACKTRACE_MARKER",
    "PipelineConfig",
    "Decision",
    "normalize_verbosity",
    "level_for_verbosity",
    "format_line",
    "format_symbol_line",
    "format_unresolved_line",
    "should_emit",
    "decide",
]
