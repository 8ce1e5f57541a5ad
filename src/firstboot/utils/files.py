# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/firstboot/utils/files.py

from __future__ import annotations

import logging
import os
import re
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable

log = logging.getLogger("firstboot")


@dataclass
class HostFiles:
    """
    All file-system mutations go through here so that dry runs and tests
    can see (or suppress) them in one place.
    """

    dry_run: bool = False

    def _skip(self, what: str, path) -> bool:
        if self.dry_run:
            log.info("dry-run: %s %s", what, path)
            return True
        return False

    # ------------------------- reads -------------------------

    @staticmethod
    def read_text(path: str | Path, default: str = "") -> str:
        p = Path(path)
        if not p.is_file():
            return default
        return p.read_text(encoding="utf-8", errors="replace")

    # ------------------------- writes ------------------------

    def write_text(self, path: str | Path, content: str, *, mode: int = 0o644) -> None:
        p = Path(path)
        if self._skip("write", p):
            return
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(content, encoding="utf-8")
        os.chmod(p, mode)
        self.set_root_owner(p)
        log.debug("wrote %s (%d bytes)", p, len(content))

    def write_bytes(self, path: str | Path, content: bytes, *, mode: int = 0o644) -> None:
        p = Path(path)
        if self._skip("write", p):
            return
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_bytes(content)
        os.chmod(p, mode)
        self.set_root_owner(p)
        log.debug("wrote %s (%d bytes)", p, len(content))

    def write_attribute(self, path: str | Path, value: str) -> None:
        """Write a kernel attribute (sysfs/procfs): no mkdir, no chmod."""
        p = Path(path)
        if self._skip("write", p):
            return
        with p.open("w", encoding="utf-8") as f:
            f.write(value)

    def create_exclusive(self, path: str | Path, content: str, *, mode: int = 0o644) -> None:
        """Create *path* atomically; FileExistsError if it already exists."""
        p = Path(path)
        if self._skip("create", p):
            return
        p.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(p, os.O_WRONLY | os.O_CREAT | os.O_EXCL, mode)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.chmod(p, mode)
        self.set_root_owner(p)

    def append_line(self, path: str | Path, line: str) -> bool:
        """
        Append a line (if not already present) to a file.
        Returns True when the file was changed.
        """
        p = Path(path)
        raw = self.read_text(p)
        if line in raw.splitlines():
            return False
        if self._skip("append", p):
            return True
        p.parent.mkdir(parents=True, exist_ok=True)
        with p.open("a", encoding="utf-8") as f:
            if raw and not raw.endswith("\n"):
                f.write("\n")
            f.write(line + "\n")
        return True

    def set_keys(self, path: str | Path, values: Dict[str, str], *, sep: str = ": ") -> None:
        """
        Rewrite ``key<sep>value`` lines in place, including commented-out
        ones; keys not present at all are appended.
        """
        p = Path(path)
        lines = self.read_text(p).splitlines()
        delim = sep.strip() or sep
        pending = dict(values)

        for i, line in enumerate(lines):
            for key in list(pending):
                if re.match(rf"^\s*#?\s*{re.escape(key)}\s*{re.escape(delim)}", line):
                    lines[i] = f"{key}{sep}{pending.pop(key)}"
                    break

        lines.extend(f"{k}{sep}{v}" for k, v in pending.items())
        self.write_text(p, "\n".join(lines) + "\n", mode=0o644)

    def remove_lines(self, path: str | Path, patterns: Iterable[str]) -> int:
        """Drop every line matching any regex in *patterns*; returns the count."""
        p = Path(path)
        if not p.is_file():
            return 0
        compiled = [re.compile(x) for x in patterns]
        lines = self.read_text(p).splitlines()
        kept = [ln for ln in lines if not any(c.search(ln) for c in compiled)]
        removed = len(lines) - len(kept)
        if removed:
            self.write_text(p, "\n".join(kept) + ("\n" if kept else ""), mode=0o644)
        return removed

    # ------------------------- directories -------------------

    def ensure_dir(self, path: str | Path, *, mode: int = 0o755) -> None:
        p = Path(path)
        if self._skip("mkdir", p):
            return
        p.mkdir(parents=True, exist_ok=True)
        os.chmod(p, mode)
        self.set_root_owner(p)

    def empty_dir(self, path: str | Path) -> None:
        """Remove everything below *path*, keeping the directory itself."""
        p = Path(path)
        if not p.is_dir() or self._skip("empty", p):
            return
        for child in p.iterdir():
            if child.is_dir() and not child.is_symlink():
                shutil.rmtree(child)
            else:
                child.unlink()

    def remove(self, path: str | Path) -> None:
        p = Path(path)
        if not (p.exists() or p.is_symlink()) or self._skip("remove", p):
            return
        if p.is_dir() and not p.is_symlink():
            shutil.rmtree(p)
        else:
            p.unlink()

    # ------------------------- ownership ---------------------

    def set_root_owner(self, path: str | Path) -> None:
        # Only root can chown; unprivileged runs (tests) keep their owner.
        if self.dry_run or not hasattr(os, "geteuid") or os.geteuid() != 0:
            return
        os.chown(path, 0, 0)

    def chmod(self, path: str | Path, mode: int) -> None:
        p = Path(path)
        if not p.exists() or self._skip("chmod", p):
            return
        os.chmod(p, mode)
        self.set_root_owner(p)

    def chmod_tree(self, root: str | Path, *, file_mode: int, dir_mode: int) -> None:
        top = Path(root)
        if not top.exists() or self._skip("chmod -R", top):
            return
        self.set_root_owner(top)
        os.chmod(top, dir_mode)
        for dirpath, dirnames, filenames in os.walk(top):
            for d in dirnames:
                full = os.path.join(dirpath, d)
                self.set_root_owner(full)
                os.chmod(full, dir_mode)
            for f in filenames:
                full = os.path.join(dirpath, f)
                if os.path.islink(full):
                    continue
                self.set_root_owner(full)
                os.chmod(full, file_mode)
