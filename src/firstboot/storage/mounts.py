# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/firstboot/storage/mounts.py

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator, List, Optional

from firstboot.utils.files import HostFiles

log = logging.getLogger("firstboot")


@dataclass(frozen=True)
class MountEntry:
    source: str
    mountpoint: str
    fstype: str
    options: str
    dump: int = 0
    passno: int = 2

    def render(self) -> str:
        return "\t".join(
            [self.source, self.mountpoint, self.fstype, self.options, str(self.dump), str(self.passno)]
        )

    @classmethod
    def parse(cls, line: str) -> Optional["MountEntry"]:
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            return None
        parts = stripped.split()
        if len(parts) < 4:
            return None
        dump = int(parts[4]) if len(parts) > 4 and parts[4].isdigit() else 0
        passno = int(parts[5]) if len(parts) > 5 and parts[5].isdigit() else 0
        return cls(parts[0], parts[1], parts[2], parts[3], dump, passno)

    def same_target(self, other: "MountEntry") -> bool:
        return self.source == other.source and self.mountpoint == other.mountpoint


@dataclass
class MountPlan:
    """Mount entries collected during provisioning, persisted once."""

    entries: List[MountEntry] = field(default_factory=list)

    def add(self, entry: MountEntry) -> MountEntry:
        self.entries.append(entry)
        return entry

    def __iter__(self) -> Iterator[MountEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)


class MountTable:
    """Read-modify-write access to /etc/fstab."""

    FLOPPY_DEVICE = re.compile(r"^/dev/fd\d+$")

    def __init__(self, path: Path, files: HostFiles):
        self.path = Path(path)
        self.files = files

    def lines(self) -> List[str]:
        return self.files.read_text(self.path).splitlines()

    def entries(self) -> List[MountEntry]:
        return [e for e in (MountEntry.parse(ln) for ln in self.lines()) if e is not None]

    def contains(self, entry: MountEntry) -> bool:
        return any(e.same_target(entry) for e in self.entries())

    def clean(self, drop_prefixes: Iterable[str]) -> None:
        """
        Drop floppy entries and entries touching *drop_prefixes* (they are
        re-created by this run), and turn field whitespace into tabs.
        """
        prefixes = [p.rstrip("/") for p in drop_prefixes]

        def _touches(e: MountEntry) -> bool:
            return any(
                f == p or f.startswith(p + "/")
                for p in prefixes
                for f in (e.source, e.mountpoint)
            )

        def _is_floppy(e: MountEntry) -> bool:
            return bool(self.FLOPPY_DEVICE.match(e.source)) or "floppy" in e.mountpoint

        out: List[str] = []
        for line in self.lines():
            if line.lstrip().startswith("#"):
                out.append(line)
                continue
            entry = MountEntry.parse(line)
            if entry is not None and (_is_floppy(entry) or _touches(entry)):
                continue
            out.append(re.sub(r"\s+", "\t", line.strip()) if line.strip() else line)

        self.files.write_text(self.path, "\n".join(out) + ("\n" if out else ""), mode=0o644)

    def apply(self, plan: MountPlan) -> List[MountEntry]:
        """
        Append plan entries that are not in the table yet.
        Returns what was appended.
        """
        added: List[MountEntry] = []
        for entry in plan:
            if self.contains(entry):
                log.info("fstab already has %s on %s", entry.source, entry.mountpoint)
                continue
            self.files.append_line(self.path, entry.render())
            added.append(entry)
        return added


def mountpoints_of(device: str, proc_mounts: Path, files: HostFiles) -> List[str]:
    """Where *device* is mounted, longest path first (safe unmount order)."""
    points = []
    for line in files.read_text(proc_mounts).splitlines():
        parts = line.split()
        if len(parts) >= 2 and parts[0] == device:
            points.append(parts[1])
    return sorted(points, key=len, reverse=True)
