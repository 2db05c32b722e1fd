#!/usr/bin/env python3
"""
resolver.py

Responsible for resolving the toolchain paths QLS needs at startup:

  - adb        : <ANDROID_SDK_ROOT>/platform-tools/adb[.exe]
  - addr2line  : <ANDROID_NDK_HOME>/toolchains/llvm/prebuilt/<host>/bin/...
  - debug file : <cwd>/target/aarch64-linux-android/debug/libmain.so

Every path can be overridden explicitly. An environment variable is only
required when the path depending on it is not overridden; a missing one
raises ToolchainError.
"""

from __future__ import annotations

import logging
import os
import platform
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Mapping, Optional

from qls.errors import ToolchainError


LOG = logging.getLogger("qls.resolver")

SDK_ENV = "ANDROID_SDK_ROOT"
NDK_ENV = "ANDROID_NDK_HOME"

DEFAULT_DEBUG_FILE = Path("target") / "aarch64-linux-android" / "debug" / "libmain.so"

# Tried in order; the first one that exists wins. Recent NDKs only ship
# the llvm- variant.
ADDR2LINE_NAMES = ("llvm-addr2line", "aarch64-linux-android-addr2line")


@dataclass(frozen=True)
class ToolchainPaths:
    logcat: Optional[Path]
    addr2line: Path
    debug_file: Path


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _is_windows() -> bool:
    return sys.platform.startswith("win")


def _exe(name: str) -> str:
    return name + ".exe" if _is_windows() else name


def ndk_host_tag() -> str:
    """
    Return the NDK prebuilt host directory name, e.g. "linux-x86_64".

    NDK prebuilts are x86_64 on every host (Apple Silicon included).
    """
    if _is_windows():
        return "windows-x86_64"
    if sys.platform == "darwin":
        return "darwin-x86_64"
    machine = platform.machine().lower() or "x86_64"
    if machine in ("amd64", "x86_64", "aarch64", "arm64"):
        machine = "x86_64"
    return f"linux-{machine}"


def _require_env(env: Mapping[str, str], name: str) -> Path:
    value = env.get(name)
    if not value:
        raise ToolchainError(f"{name} env var not set")
    LOG.debug("%s = %s", name, value)
    return Path(value)


def adb_path(sdk_root: Path) -> Path:
    return sdk_root / "platform-tools" / _exe("adb")


def addr2line_candidates(ndk_home: Path) -> List[Path]:
    bin_dir = ndk_home / "toolchains" / "llvm" / "prebuilt" / ndk_host_tag() / "bin"
    return [bin_dir / _exe(name) for name in ADDR2LINE_NAMES]


def addr2line_path(ndk_home: Path) -> Path:
    candidates = addr2line_candidates(ndk_home)
    for c in candidates:
        if c.exists():
            return c
    LOG.warning("No addr2line found under %s; trying %s", ndk_home, candidates[0])
    return candidates[0]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def resolve_toolchain(
    env: Optional[Mapping[str, str]] = None,
    cwd: Optional[Path] = None,
    adb: Optional[str] = None,
    addr2line: Optional[str] = None,
    debug_file: Optional[str] = None,
    need_logcat: bool = True,
) -> ToolchainPaths:
    """
    Resolve the paths of adb, addr2line and the debug library.

    Args:
        env:        environment mapping (defaults to os.environ).
        cwd:        project root holding ./target (defaults to Path.cwd()).
        adb:        explicit adb path; skips ANDROID_SDK_ROOT.
        addr2line:  explicit addr2line path; skips ANDROID_NDK_HOME.
        debug_file: explicit debug library path.
        need_logcat: False when a captured log is replayed; adb is then
                     only resolved if given explicitly.

    Raises:
        ToolchainError: a required environment variable is not set.
    """
    if env is None:
        env = os.environ
    if cwd is None:
        cwd = Path.cwd()

    logcat: Optional[Path] = None
    if adb:
        logcat = Path(adb)
    elif need_logcat:
        logcat = adb_path(_require_env(env, SDK_ENV))
    LOG.debug("adb logcat: %s", logcat)

    a2l = Path(addr2line) if addr2line else addr2line_path(_require_env(env, NDK_ENV))
    LOG.debug("ndk addr2line: %s", a2l)

    debug = Path(debug_file) if debug_file else cwd / DEFAULT_DEBUG_FILE
    LOG.debug("Debug file to analyze: %s", debug)

    return ToolchainPaths(logcat=logcat, addr2line=a2l, debug_file=debug)


__all__ = [
    "ToolchainPaths",
    "SDK_ENV",
    "NDK_ENV",
    "DEFAULT_DEBUG_FILE",
    "ndk_host_tag",
    "adb_path",
    "addr2line_candidates",
    "addr2line_path",
    "resolve_toolchain",
]
