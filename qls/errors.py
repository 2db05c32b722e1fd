#!/usr/bin/env python3
"""
errors.py

Exception hierarchy shared by the QLS modules.

Library code raises these; only main() turns them into exit codes.
"""

from __future__ import annotations


class QlsError(Exception):
    """Base class for every error raised by QLS."""


class ToolchainError(QlsError):
    """A required toolchain path could not be determined."""


class LogSourceError(QlsError):
    """The log capture command could not be started or read."""


class SymbolizerError(QlsError):
    """Base class for resolver subprocess failures."""


class ResolverSpawnError(SymbolizerError):
    """The resolver subprocess could not be started."""


class ResolverUnavailable(SymbolizerError):
    """The resolver exited or its pipes closed mid-conversation."""


__all__ = [
    "QlsError",
    "ToolchainError",
    "LogSourceError",
    "SymbolizerError",
    "ResolverSpawnError",
    "ResolverUnavailable",
]
