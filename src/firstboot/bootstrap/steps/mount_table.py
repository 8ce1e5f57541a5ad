# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/firstboot/bootstrap/steps/mount_table.py

from __future__ import annotations

import logging

from firstboot.storage.mounts import MountTable

from .base import BootstrapStep

log = logging.getLogger("firstboot")


class MountTablePersistenceStep(BootstrapStep):
    """Write the MountPlan once; entries already in the table are kept as is."""

    name = "mount-table"

    def run(self, ctx, tk, state) -> None:
        table = MountTable(tk.settings.fstab, tk.files)
        added = table.apply(state.mount_plan)
        log.info("mount table: %d of %d entries added", len(added), len(state.mount_plan))

        tk.files.chmod(tk.settings.fstab, 0o644)
        tk.runner.run(["mount", "-a"])
