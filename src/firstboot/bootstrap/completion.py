# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/firstboot/bootstrap/completion.py

from __future__ import annotations

import logging
import os
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, Optional

from firstboot.errors import AlreadyBootstrappedError
from firstboot.utils.files import HostFiles

log = logging.getLogger("firstboot")


def marker_content(timestamp: int) -> str:
    human = time.strftime("%a %b %d %H:%M:%S UTC %Y", time.gmtime(timestamp))
    return f'TIMESTAMP={timestamp}\nDATE="{human}"\n'


def parse_marker(text: str) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for line in text.splitlines():
        key, sep, value = line.partition("=")
        if sep:
            out[key.strip()] = value.strip().strip('"')
    return out


class CompletionGuard:
    """
    Once-per-instance guard.

    The marker records a finished bootstrap. While a run is in progress a
    sibling lock file is held, so two concurrent invocations cannot both
    pass the check. Both files are created with O_EXCL.
    """

    def __init__(self, marker: Path, files: HostFiles, lock: Optional[Path] = None):
        self.marker = Path(marker)
        self.lock = Path(lock) if lock else self.marker.with_name(self.marker.name + ".lock")
        self.files = files

    def completed(self) -> bool:
        return self.marker.exists()

    def read(self) -> Optional[Dict[str, str]]:
        if not self.completed():
            return None
        return parse_marker(self.files.read_text(self.marker))

    def check(self) -> None:
        if self.completed():
            raise AlreadyBootstrappedError(
                f"Lock file {self.marker} exists, this instance has already been bootstrapped"
            )

    def claim(self) -> None:
        self.check()
        try:
            self.files.create_exclusive(self.lock, f"{os.getpid()}\n", mode=0o644)
        except FileExistsError as exc:
            raise AlreadyBootstrappedError(f"Another bootstrap holds {self.lock}") from exc

    def release(self) -> None:
        self.files.remove(self.lock)

    @contextmanager
    def held(self) -> Iterator["CompletionGuard"]:
        self.claim()
        try:
            yield self
        finally:
            self.release()

    def complete(self, timestamp: int) -> None:
        try:
            self.files.create_exclusive(self.marker, marker_content(timestamp), mode=0o644)
        except FileExistsError as exc:
            raise AlreadyBootstrappedError(f"Lock file {self.marker} appeared during the run") from exc
        log.info("bootstrap complete, wrote %s", self.marker)
