#!/usr/bin/env python3
"""
symbolizer.py

Persistent addr2line process for QLS.

Responsibilities:
  - Start addr2line once for the debug library and keep it running.
  - Resolve one address at a time over its stdin/stdout pipes:
      * write "<address>\\n"
      * read exactly one line back
  - Keep an in-memory cache of resolved addresses.
  - Turn any pipe failure into ResolverUnavailable, after which the
    process is considered dead for the rest of the run.
  - Close stdin and wait for the process on shutdown.

addr2line is started with "-f -p" (plus "-C" for demangling), so each
address produces exactly ONE line of output:

    my_function at src/lib.rs:42

Without "-p" it would print function and location on two lines and the
conversation would drift by one line per request.
"""

from __future__ import annotations

import logging
import subprocess
import threading
from pathlib import Path
from typing import Dict, List, Optional, Union

from qls.errors import ResolverSpawnError, ResolverUnavailable


LOG = logging.getLogger("qls.symbolizer")

PathLike = Union[str, Path]


def normalize_addr(addr: str) -> str:
    """
    Normalize an address string so that "0x1a2b" and "0000000000001A2B"
    share one cache entry.

    The format is "0x" + lowercase hex without leading zeros (except "0").
    """
    s = addr.strip()
    if not s:
        return ""
    if s[:2] in ("0x", "0X"):
        s = s[2:]
    s = s.lstrip("0") or "0"
    return "0x" + s.lower()


def build_addr2line_command(
    addr2line_bin: PathLike,
    elf_path: PathLike,
    demangle: bool = True,
) -> List[str]:
    cmd = [str(addr2line_bin), "-f"]
    if demangle:
        cmd.append("-C")
    cmd.extend(["-p", "-e", str(elf_path)])
    return cmd


class Addr2LineProcess:
    """
    Long-lived resolver subprocess speaking a one-line-in / one-line-out
    protocol.

    Only one request is ever in flight: resolve() holds an internal lock
    for the whole write/read round-trip.

    Can be used as a context manager; close() runs on every exit path.
    """

    def __init__(
        self,
        addr2line_bin: PathLike,
        elf_path: PathLike,
        demangle: bool = True,
        cmd: Optional[List[str]] = None,
    ) -> None:
        self.addr2line_bin = str(addr2line_bin)
        self.elf_path = str(elf_path)
        self.cmd = cmd if cmd is not None else build_addr2line_command(
            addr2line_bin, elf_path, demangle
        )

        self._lock = threading.Lock()
        self._cache: Dict[str, str] = {}
        self._alive = True
        self._returncode: Optional[int] = None
        self._closed = False

        LOG.debug("Starting resolver: %s", " ".join(self.cmd))
        try:
            self.proc = subprocess.Popen(
                self.cmd,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
            )
        except OSError as e:
            raise ResolverSpawnError(f"Couldn't run {self.cmd[0]}: {e}") from e

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def alive(self) -> bool:
        return self._alive

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    # ------------------------------------------------------------------
    # Protocol
    # ------------------------------------------------------------------

    def resolve(self, address: str) -> str:
        """
        Resolve a single address and return the symbol line without its
        trailing newline.

        Raises:
            ResolverUnavailable: the process has exited or a pipe closed.
        """
        with self._lock:
            if not self._alive:
                raise ResolverUnavailable("resolver is no longer running")

            key = normalize_addr(address)
            cached = self._cache.get(key)
            if cached is not None:
                return cached

            try:
                self.proc.stdin.write(address + "\n")
                self.proc.stdin.flush()
                line = self.proc.stdout.readline()
            except (OSError, ValueError) as e:
                self._alive = False
                raise ResolverUnavailable(f"resolver pipe failed: {e}") from e

            if not line:
                self._alive = False
                raise ResolverUnavailable(
                    f"resolver closed its output (exit code {self.proc.poll()})"
                )

            symbol = line.rstrip("\r\n")
            self._cache[key] = symbol
            return symbol

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    def close(self, timeout: float = 5.0) -> Optional[int]:
        """
        Close stdin and wait for the resolver to exit.

        If it does not exit within timeout seconds it is killed. A non-zero
        exit code is logged as a warning and returned; nothing is raised.
        """
        if self._closed:
            return self._returncode
        self._closed = True
        self._alive = False

        try:
            if self.proc.stdin:
                self.proc.stdin.close()
        except OSError as e:
            LOG.debug("Closing resolver stdin failed: %s", e)

        try:
            self._returncode = self.proc.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            LOG.warning("Resolver did not exit within %.1fs; killing it", timeout)
            self.proc.kill()
            self._returncode = self.proc.wait()

        if self.proc.stdout:
            self.proc.stdout.close()

        if self._returncode != 0:
            LOG.warning("Resolver exited with code %s", self._returncode)
        else:
            LOG.debug("Resolver exited cleanly")
        return self._returncode

    def __enter__(self) -> "Addr2LineProcess":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = [
    "Addr2LineProcess",
    "build_addr2line_command",
    "normalize_addr",
]
