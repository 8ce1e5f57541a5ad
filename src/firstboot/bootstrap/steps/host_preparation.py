# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/firstboot/bootstrap/steps/host_preparation.py

from __future__ import annotations

import logging
from pathlib import Path

from firstboot.storage.mounts import MountTable

from .base import BootstrapStep

log = logging.getLogger("firstboot")


def interfaces_file(settings) -> Path:
    if settings.network_interfaces_dir.is_dir():
        return settings.network_interfaces_dir / f"{settings.network_interface}.cfg"
    return settings.network_interfaces_file


class HostPreparationStep(BootstrapStep):
    """Network offload, stale agent state, mount table and package clean-up."""

    name = "host-preparation"

    def run(self, ctx, tk, state) -> None:
        s = tk.settings
        self._disable_offload(tk)

        tk.files.remove(s.minion_id_file)
        for d in s.salt_cache_dirs:
            tk.files.empty_dir(d)

        # /mnt and /srv entries are re-created by storage provisioning.
        MountTable(s.fstab, tk.files).clean([str(s.scratch_mount_point), str(s.service_mount_point)])

        tk.apt.purge(s.purge_packages)
        tk.apt.autoremove()
        tk.apt.clean()

        for path in s.stale_logs:
            if path.is_dir():
                tk.files.empty_dir(path)
            else:
                tk.files.remove(path)

    def _disable_offload(self, tk) -> None:
        iface = tk.settings.network_interface
        offload = ["ethtool", "-K", iface, "tso", "off", "gso", "off"]
        # Virtual NICs without offload support reject this.
        tk.runner.best_effort(offload)

        target = interfaces_file(tk.settings)
        if "ethtool" in tk.files.read_text(target):
            return
        tk.files.append_line(target, "post-up " + " ".join(offload))
        tk.files.set_root_owner(target)
