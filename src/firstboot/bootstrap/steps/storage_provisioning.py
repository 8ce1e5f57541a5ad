# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/firstboot/bootstrap/steps/storage_provisioning.py

from __future__ import annotations

import logging
from pathlib import Path
from typing import List

from firstboot.storage.mounts import MountEntry, mountpoints_of

from .base import BootstrapStep

log = logging.getLogger("firstboot")

SERVICE_LABEL = "/srv"
DATA_LABEL = "/data"


class StorageProvisioningStep(BootstrapStep):
    """
    Format and mount the discovered devices.

    With a container runtime the ephemeral set becomes one btrfs filesystem
    (striped when there is more than one device) that also hosts the
    runtime's data directory. Without one, several devices are striped with
    md and formatted ext4. A data volume always gets xfs.

    Every mount is recorded in the MountPlan; the mount table is written
    by a later step.
    """

    name = "storage-provisioning"

    def skip_reason(self, ctx, state):
        if not state.has_service_storage and not state.has_data_storage:
            return "no ephemeral or data devices"
        return None

    def run(self, ctx, tk, state) -> None:
        if state.has_service_storage:
            self._prepare_service(tk, state)
        if state.has_data_storage:
            self._prepare_data(tk, state)

        if state.has_service_storage:
            if state.runtime_present:
                self._provision_btrfs(tk, state)
            else:
                self._provision_ext4(tk, state)

        if state.has_data_storage:
            self._provision_xfs(tk, state)

    # ------------------------- preparation ------------------------

    def _reset_dir(self, tk, path: Path) -> None:
        """Unmounted, empty, root owned, 0755."""
        if path.is_dir():
            tk.filesystems.unmount(path)
            tk.files.empty_dir(path)
        tk.files.ensure_dir(path, mode=0o755)

    def _prepare_service(self, tk, state) -> None:
        s = tk.settings
        for d in (s.scratch_mount_point, s.service_mount_point):
            self._reset_dir(tk, d)

        paths = [d.path for d in state.ephemeral_devices]
        for dev in paths:
            tk.filesystems.unmount_all(mountpoints_of(dev, s.proc_mounts, tk.files))

        # /tmp moves onto the new filesystem below.
        tk.filesystems.unmount(s.tmp_dir)
        tk.filesystems.wipe(paths)

    def _prepare_data(self, tk, state) -> None:
        self._reset_dir(tk, tk.settings.data_mount_point)
        tk.filesystems.wipe([state.data_device.path])

    # ------------------------- service storage --------------------

    def _provision_btrfs(self, tk, state) -> None:
        s = tk.settings
        paths = [d.path for d in state.ephemeral_devices]

        tk.apt.ensure(s.btrfs_package)
        tk.filesystems.make_btrfs(paths, label=SERVICE_LABEL)

        self._mount(tk, state, MountEntry(paths[0], str(s.service_mount_point), "btrfs", s.mount_options.btrfs))
        tk.filesystems.show_btrfs(s.service_mount_point)
        if len(paths) > 1:
            # Spread existing chunks over every stripe member.
            tk.filesystems.balance_btrfs(s.service_mount_point)

        runtime_dir = s.service_mount_point / "docker"
        for d in (s.docker_data_dir, runtime_dir):
            self._reset_dir(tk, d)

        srv_tmp = self._relocate_tmp(tk)
        self._bind(tk, state, srv_tmp, s.tmp_dir)
        self._bind(tk, state, runtime_dir, s.docker_data_dir)
        state.service_fstype = "btrfs"

    def _provision_ext4(self, tk, state) -> None:
        s = tk.settings
        paths = [d.path for d in state.ephemeral_devices]

        device = paths[0]
        if len(paths) > 1:
            device = self._build_stripe(tk, paths)

        tk.filesystems.make_ext4(device, label=SERVICE_LABEL)
        self._mount(tk, state, MountEntry(device, str(s.service_mount_point), "ext4", s.mount_options.ext4))
        tk.filesystems.describe_ext4(device)

        srv_tmp = self._relocate_tmp(tk)
        self._bind(tk, state, srv_tmp, s.tmp_dir)
        state.service_fstype = "ext4"

    def _build_stripe(self, tk, paths: List[str]) -> str:
        s = tk.settings
        tk.apt.ensure(s.mdadm_package)

        # Nothing to monitor on a stripe.
        tk.services.stop("mdadm")
        tk.files.set_keys(s.mdadm_defaults, {"AUTOCHECK": "false", "START_DAEMON": "false"}, sep="=")
        tk.services.disable("mdadm")

        if tk.devices.is_block_device(s.raid_device):
            log.info("tearing down stale array %s", s.raid_device)
            tk.files.remove(s.mdadm_conf)
            tk.filesystems.stop_array(s.raid_device)
            tk.runner.best_effort(["mdadm", "--zero-superblock", *paths])

        return tk.filesystems.create_stripe(
            paths,
            raid_device=s.raid_device,
            chunk_kb=s.raid_chunk_kb,
            read_ahead=s.raid_read_ahead_sectors,
            mdadm_conf=s.mdadm_conf,
        )

    # ------------------------- data storage -----------------------

    def _provision_xfs(self, tk, state) -> None:
        s = tk.settings
        device = state.data_device.path

        tk.apt.ensure(s.xfs_package)
        tk.filesystems.make_xfs(device, label=DATA_LABEL)
        self._mount(tk, state, MountEntry(device, str(s.data_mount_point), "xfs", s.mount_options.xfs))
        tk.filesystems.describe_xfs(s.data_mount_point)

    # ------------------------- helpers ----------------------------

    def _mount(self, tk, state, entry: MountEntry) -> None:
        state.mount_plan.add(entry)
        tk.filesystems.mount(entry.source, Path(entry.mountpoint), fstype=entry.fstype, options=entry.options)

    def _bind(self, tk, state, source: Path, target: Path) -> None:
        state.mount_plan.add(MountEntry(str(source), str(target), "none", tk.settings.mount_options.bind))
        tk.filesystems.bind(source, target)

    def _relocate_tmp(self, tk) -> Path:
        """Copy /tmp onto service storage; returns the new location."""
        s = tk.settings
        srv_tmp = s.service_mount_point / "tmp"
        tk.files.ensure_dir(srv_tmp, mode=0o1777)

        # Staging in /var/tmp: /tmp itself is being emptied.
        tk.runner.run(["rsync", "-a", "-T", str(s.var_tmp_dir), f"{s.tmp_dir}/", str(srv_tmp)])
        tk.files.empty_dir(s.tmp_dir)
        tk.files.ensure_dir(s.tmp_dir, mode=0o1777)
        return srv_tmp
