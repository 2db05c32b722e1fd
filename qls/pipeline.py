#!/usr/bin/env python3
"""
pipeline.py

Per-line control loop for QLS.

Responsibilities:
  - Consume an iterable of raw logcat lines, one at a time.
  - For each line: package filter -> classify -> output policy ->
    (crash frames only) address extraction -> resolver round-trips.
  - Hand every emitted line to a sink as an OutputLine.
  - Track the run state (IDLE -> STREAMING -> DRAINING -> TERMINATED)
    and close the resolver when the stream ends, whatever the reason.

A line is fully processed, including all of its resolver round-trips,
before the next one is read. That keeps address -> symbol pairs in order
without any extra sequencing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Optional, Protocol

from qls.errors import ResolverUnavailable
from qls.output_formatter import (
    PipelineConfig,
    decide,
    format_symbol_line,
    format_unresolved_line,
)
from qls.parser import Severity, classify_line, extract_addresses, matches_package


LOG = logging.getLogger("qls.pipeline")


class Symbolizer(Protocol):
    def resolve(self, address: str) -> str: ...

    def close(self, timeout: float = ...) -> Optional[int]: ...


class PipelineState(Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    DRAINING = "draining"
    TERMINATED = "terminated"


@dataclass(frozen=True)
class OutputLine:
    severity: Severity
    text: str


@dataclass
class PipelineStats:
    lines_read: int = 0
    lines_matched: int = 0
    lines_emitted: int = 0
    addresses_resolved: int = 0
    addresses_failed: int = 0


Sink = Callable[[OutputLine], None]


class Pipeline:
    """
    Wires the parser, the output policy and the resolver together.

    Args:
        config:     PipelineConfig for the whole run.
        symbolizer: object with resolve(address) and close(); normally an
                    Addr2LineProcess.
        sink:       callable receiving each emitted OutputLine.
    """

    def __init__(self, config: PipelineConfig, symbolizer: Symbolizer, sink: Sink) -> None:
        self.config = config
        self.symbolizer = symbolizer
        self.sink = sink
        self.state = PipelineState.IDLE
        self.stats = PipelineStats()
        self.resolver_available = True

    # ------------------------------------------------------------------
    # Emission
    # ------------------------------------------------------------------

    def _emit(self, severity: Severity, text: str) -> None:
        self.stats.lines_emitted += 1
        self.sink(OutputLine(severity, text))

    def _symbolize(self, message: str) -> None:
        for address in extract_addresses(message):
            if self.resolver_available:
                try:
                    symbol = self.symbolizer.resolve(address)
                except ResolverUnavailable as e:
                    LOG.warning("Resolver unavailable, frames will stay unresolved: %s", e)
                    self.resolver_available = False
                else:
                    self.stats.addresses_resolved += 1
                    self._emit(Severity.FATAL, format_symbol_line(symbol))
                    continue

            self.stats.addresses_failed += 1
            if not self.config.raw_stacktrace_only:
                self._emit(Severity.FATAL, format_unresolved_line(address))

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def process_line(self, raw: str) -> None:
        """
        Run one raw line through the pipeline.

        Non-matching lines are dropped silently.
        """
        if not matches_package(raw, self.config.target_package):
            return

        line = classify_line(raw)
        if line is None:
            return
        self.stats.lines_matched += 1

        decision = decide(line, self.config)
        if decision.emit and decision.formatted is not None:
            self._emit(line.severity, decision.formatted)
        if decision.attempt_symbolize:
            self._symbolize(line.message)

    def run(self, lines: Iterable[str]) -> PipelineStats:
        """
        Consume lines until the stream ends, then close the resolver.

        Any exception escaping the loop (including KeyboardInterrupt) still
        drains the pipeline before it propagates.
        """
        try:
            for raw in lines:
                if self.state is PipelineState.IDLE:
                    LOG.debug("First line received; streaming")
                    self.state = PipelineState.STREAMING
                self.stats.lines_read += 1
                self.process_line(raw)
        finally:
            self.state = PipelineState.DRAINING
            LOG.debug("Log stream ended; closing resolver")
            try:
                self.symbolizer.close()
            finally:
                self.state = PipelineState.TERMINATED

        LOG.info(
            "Lines read=%d, matched=%d, emitted=%d, resolved=%d, unresolved=%d",
            self.stats.lines_read,
            self.stats.lines_matched,
            self.stats.lines_emitted,
            self.stats.addresses_resolved,
            self.stats.addresses_failed,
        )
        return self.stats


__all__ = [
    "Pipeline",
    "PipelineState",
    "PipelineStats",
    "OutputLine",
    "Sink",
]
