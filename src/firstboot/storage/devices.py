# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/firstboot/storage/devices.py

from __future__ import annotations

import glob
import logging
import os
import re
import stat
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from firstboot.errors import DeviceNotFoundError
from firstboot.execution.runner import CommandRunner
from firstboot.utils.files import HostFiles
from firstboot.utils.retry import RetryBudget, retry_until

log = logging.getLogger("firstboot")


@dataclass(frozen=True)
class BlockDevice:
    path: str                 # resolved device node, e.g. /dev/xvdb
    logical_name: str         # metadata mapping name, e.g. ephemeral0
    requested_name: str       # what the metadata said, e.g. sdb
    renamed: bool = False     # sd* -> xvd* fallback applied
    ordinal: int = 0          # position in the sorted set

    @property
    def name(self) -> str:
        return self.path.rsplit("/", 1)[-1]


class DeviceProbe:
    """Answers "is this a block device?" against the live /dev tree."""

    def __init__(self, dev_dir: Path = Path("/dev")):
        self.dev_dir = Path(dev_dir)

    def path_for(self, name: str) -> str:
        return str(self.dev_dir / name)

    def is_block_device(self, path: str) -> bool:
        try:
            return stat.S_ISBLK(os.stat(path).st_mode)
        except OSError:
            return False


def _strip_dev(name: str) -> str:
    name = name.strip()
    return name[len("/dev/"):] if name.startswith("/dev/") else name


def resolve_device(name: str, probe: DeviceProbe) -> Optional[Tuple[str, bool]]:
    """
    Map a metadata device name to an existing device node.

    Returns ``(path, renamed)`` or None. Tries the name as given first, then
    the Xen naming scheme (``sdb`` -> ``xvdb``).
    """
    name = _strip_dev(name)
    if not name:
        return None

    candidate = probe.path_for(name)
    if probe.is_block_device(candidate):
        return candidate, False

    alt = name.replace("sd", "xvd", 1)
    if alt != name:
        candidate = probe.path_for(alt)
        if probe.is_block_device(candidate):
            return candidate, True
    return None


def discover_ephemeral_devices(
    metadata,
    probe: DeviceProbe,
    *,
    pattern: str = r"^ephemeral\d+$",
) -> Tuple[BlockDevice, ...]:
    """
    Instance-store devices announced by the metadata service that really
    exist on this host, deduplicated by path and sorted by path.
    """
    rx = re.compile(pattern)
    found: dict[str, BlockDevice] = {}

    for logical in metadata.listing("block-device-mapping/"):
        if not rx.search(logical):
            continue

        requested = _strip_dev(metadata.get(f"block-device-mapping/{logical}"))
        resolved = resolve_device(requested, probe)
        if resolved is None:
            # The metadata service sometimes lists devices that are not attached.
            log.info("skipping %s (%s): no such block device", logical, requested or "-")
            continue

        path, renamed = resolved
        if path in found:
            log.debug("skipping %s: %s already claimed by %s", logical, path, found[path].logical_name)
            continue
        found[path] = BlockDevice(path=path, logical_name=logical, requested_name=requested, renamed=renamed)

    ordered = sorted(found.values(), key=lambda d: d.path)
    return tuple(replace(d, ordinal=i) for i, d in enumerate(ordered))


def wait_for_data_device(
    probe: DeviceProbe,
    candidates: Sequence[str],
    *,
    budget: RetryBudget,
    sleep: Callable[[float], None],
    on_retry: Callable[[int, float, object], None] | None = None,
) -> BlockDevice:
    """
    Poll for the first candidate that is a block device.
    Raises DeviceNotFoundError once the budget is spent.
    """
    paths = [probe.path_for(_strip_dev(c)) for c in candidates]

    def _attempt(_n: int) -> Optional[str]:
        for p in paths:
            if probe.is_block_device(p):
                return p
        return None

    outcome = retry_until(
        _attempt,
        budget=budget,
        predicate=lambda p: p is not None,
        sleep=sleep,
        on_retry=on_retry,
    )
    if not outcome.succeeded:
        raise DeviceNotFoundError(
            f"Unable to find device {paths[0]} after {outcome.attempts} attempts, volume not attached?"
        )

    return BlockDevice(
        path=outcome.value,
        logical_name="data",
        requested_name=_strip_dev(candidates[0]),
        renamed=outcome.value != paths[0],
    )


def pick_scheduler(available: str, preferred: Iterable[str]) -> Optional[str]:
    """
    ``available`` is the content of queue/scheduler, e.g. ``[mq-deadline] none``.
    Returns the first preferred scheduler the kernel offers.
    """
    offered = {tok.strip("[]") for tok in available.split()}
    for s in preferred:
        if s in offered:
            return s
    return None


def tune_device(
    device: BlockDevice,
    *,
    files: HostFiles,
    runner: CommandRunner,
    sys_block: Path,
    schedulers: Iterable[str],
    read_ahead: int,
) -> None:
    """I/O scheduler and read-ahead; failures are logged, never raised."""
    sched_file = Path(sys_block) / device.name / "queue" / "scheduler"
    choice = pick_scheduler(files.read_text(sched_file), schedulers)
    if choice:
        try:
            files.write_attribute(sched_file, choice)
        except OSError as exc:
            log.info("could not set scheduler %s on %s: %s", choice, device.path, exc)
    else:
        log.info("no preferred I/O scheduler offered for %s", device.path)

    # Unsupported on some virtual devices; tuning is optional.
    runner.best_effort(["blockdev", "--setra", str(read_ahead), device.path])


def rescan_scsi(files: HostFiles, pattern: str) -> int:
    """Ask every SCSI host to look for new devices."""
    count = 0
    for scan in sorted(glob.glob(pattern)):
        try:
            files.write_attribute(scan, "- - -")
            count += 1
        except OSError as exc:
            log.info("scsi rescan %s failed: %s", scan, exc)
    return count


def list_disks(runner: CommandRunner) -> List[str]:
    """Whole disks, minus optical drives and device-mapper nodes."""
    result = runner.probe(["lsblk", "-dno", "NAME"])
    if not result.ok:
        return []
    return [
        n.strip() for n in result.stdout.splitlines()
        if n.strip() and not re.match(r"^(sr|mapper)", n.strip())
    ]


def refresh_partitions(runner: CommandRunner, dev_dir: Path = Path("/dev")) -> None:
    for name in list_disks(runner):
        # Busy or partition-less disks refuse; nothing to refresh then.
        runner.best_effort(["blockdev", "--rereadpt", str(Path(dev_dir) / name)])
