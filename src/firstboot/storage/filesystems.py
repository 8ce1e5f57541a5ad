# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/firstboot/storage/filesystems.py

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Sequence

from firstboot.execution.result import Result
from firstboot.execution.runner import CommandResult, CommandRunner
from firstboot.utils.files import HostFiles

log = logging.getLogger("firstboot")

MDADM_CONF_HEADER = """\
DEVICE partitions
CREATE owner=root group=disk mode=0660 auto=yes
HOMEHOST <system>
MAILADDR root
"""


def runtime_options(options: str) -> str:
    """fstab options minus the ones only meaningful to the fstab reader."""
    kept = [o for o in options.split(",") if o and not o.startswith("comment=")]
    return ",".join(kept) or "defaults"


class Filesystems:
    """
    mkfs/mount/mdadm wrapper. Formatting and mounting are required
    operations (CommandError propagates); inspection and unmounting are not.
    """

    def __init__(self, runner: CommandRunner, files: HostFiles):
        self.runner = runner
        self.files = files

    # ------------------------- signatures -------------------------

    def wipe(self, devices: Sequence[str]) -> None:
        for dev in devices:
            self.runner.run(["wipefs", "-a", "-f", dev])

    # ------------------------- btrfs ------------------------------

    def make_btrfs(self, devices: Sequence[str], *, label: str) -> None:
        argv: List[str] = ["mkfs.btrfs", "-L", label]
        if len(devices) > 1:
            argv += ["-d", "raid0"]
        argv += ["-f", *devices]
        self.runner.run(argv)

    def show_btrfs(self, mountpoint: Path) -> CommandResult:
        return self.runner.probe(["btrfs", "filesystem", "show", str(mountpoint)])

    def balance_btrfs(self, mountpoint: Path) -> Result:
        # A balance that fails leaves a usable filesystem behind.
        return self.runner.best_effort(["btrfs", "balance", "start", "--full-balance", str(mountpoint)])

    # ------------------------- md stripe --------------------------

    def stop_array(self, raid_device: str) -> None:
        self.runner.best_effort(["mdadm", "--stop", raid_device])
        self.runner.best_effort(["mdadm", "--remove", raid_device])

    def create_stripe(
        self,
        devices: Sequence[str],
        *,
        raid_device: str,
        chunk_kb: int,
        read_ahead: int,
        mdadm_conf: Path,
    ) -> str:
        self.stop_array(raid_device)
        self.runner.run(
            [
                "mdadm", "--create", "--verbose", raid_device,
                "--level=stripe", f"--chunk={chunk_kb}",
                f"--raid-devices={len(devices)}", "--run", *devices,
            ]
        )
        self.runner.best_effort(["mdadm", "--readwrite", raid_device])
        self.runner.best_effort(["blockdev", "--setra", str(read_ahead), raid_device])

        scan = self.runner.probe(["mdadm", "--detail", "--scan"])
        self.files.write_text(mdadm_conf, MDADM_CONF_HEADER + scan.stdout, mode=0o644)

        # The array has to be assembled again from the initramfs on reboot.
        self.runner.run(["update-initramfs", "-u", "-k", "all"])
        return raid_device

    # ------------------------- ext4 / xfs -------------------------

    def make_ext4(self, device: str, *, label: str) -> None:
        self.runner.run(["mkfs.ext4", "-L", label, "-m", "0", "-O", "dir_index,sparse_super", device])

    def describe_ext4(self, device: str) -> CommandResult:
        return self.runner.probe(["tune2fs", "-l", device])

    def make_xfs(self, device: str, *, label: str) -> None:
        self.runner.run(["mkfs.xfs", "-q", "-L", label, "-f", device])

    def describe_xfs(self, mountpoint: Path) -> CommandResult:
        return self.runner.probe(["xfs_info", str(mountpoint)])

    # ------------------------- mounts -----------------------------

    def mount(self, source: str, target: Path, *, fstype: str, options: str) -> None:
        self.files.ensure_dir(target)
        self.runner.run(["mount", "-t", fstype, "-o", runtime_options(options), source, str(target)])

    def bind(self, source: Path, target: Path) -> None:
        self.files.ensure_dir(target)
        self.runner.run(["mount", "--bind", str(source), str(target)])

    def unmount(self, target: Path | str) -> Result:
        # Not mounted is the state we want anyway.
        return self.runner.best_effort(["umount", "-f", str(target)])

    def unmount_all(self, targets: Sequence[str]) -> None:
        for target in targets:
            log.info("unmounting %s", target)
            self.unmount(target)
