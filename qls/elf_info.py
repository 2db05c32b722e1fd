#!/usr/bin/env python3
"""
elf_info.py

Startup diagnostics for the debug library handed to addr2line.

QLS never reads debug information itself. This module only checks that
the file is an ELF, pulls its GNU build-id (.note.gnu.build-id) and
reports whether DWARF sections are present, so a stale or stripped
library is noticed before the first crash instead of as a page of "??".
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from elftools.common.exceptions import ELFError
from elftools.elf.elffile import ELFFile


LOG = logging.getLogger("qls.elf_info")

ELF_MAGIC = b"\x7fELF"


@dataclass(frozen=True)
class ElfSummary:
    path: Path
    machine: str
    build_id: Optional[str]
    has_dwarf: bool


def is_elf(path: Path) -> bool:
    """Return True if file at path looks like an ELF (checks magic bytes)."""
    try:
        with path.open("rb") as f:
            return f.read(4) == ELF_MAGIC
    except OSError:
        return False


def _build_id_from_note(data: bytes) -> Optional[str]:
    """
    Decode the descriptor of a raw .note.gnu.build-id section.

    Layout: namesz(4) descsz(4) type(4) name(padded to 4) desc.
    """
    if len(data) < 16:
        return None

    namesz = int.from_bytes(data[0:4], "little")
    descsz = int.from_bytes(data[4:8], "little")

    name_end = 12 + namesz
    desc_off = (name_end + 3) & ~3
    if desc_off + descsz > len(data):
        return None

    desc = data[desc_off : desc_off + descsz]
    return desc.hex() if desc else None


def read_elf_summary(path: Path) -> Optional[ElfSummary]:
    """
    Read machine, GNU build-id and DWARF presence from an ELF.

    Returns None if the file cannot be read or is not a valid ELF.
    """
    if not is_elf(path):
        return None

    try:
        with path.open("rb") as f:
            elf = ELFFile(f)
            sec = elf.get_section_by_name(".note.gnu.build-id")
            build_id = _build_id_from_note(sec.data()) if sec is not None else None
            return ElfSummary(
                path=path,
                machine=elf.get_machine_arch(),
                build_id=build_id,
                has_dwarf=elf.has_dwarf_info(),
            )
    except (OSError, ELFError) as e:
        LOG.warning("pyelftools failed to read %s: %s", path, e)
        return None


def check_debug_file(path: Path) -> Optional[ElfSummary]:
    """
    Log what is known about the debug library; warn on anything that will
    make addr2line answer "??".
    """
    if not path.exists():
        LOG.warning("Debug file not found: %s (frames will resolve to ??)", path)
        return None

    summary = read_elf_summary(path)
    if summary is None:
        LOG.warning("Debug file is not a readable ELF: %s", path)
        return None

    LOG.info(
        "Debug file %s: arch=%s BuildId:%s",
        path,
        summary.machine,
        summary.build_id or "None",
    )
    if not summary.has_dwarf:
        LOG.warning("Debug file %s has no DWARF sections; file:line will be ??", path)
    return summary


__all__ = [
    "ElfSummary",
    "is_elf",
    "read_elf_summary",
    "check_debug_file",
]
