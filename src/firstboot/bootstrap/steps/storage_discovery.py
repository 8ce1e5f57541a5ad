# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/firstboot/bootstrap/steps/storage_discovery.py

from __future__ import annotations

import logging

from firstboot.errors import DeviceNotFoundError
from firstboot.storage.devices import (
    discover_ephemeral_devices,
    refresh_partitions,
    rescan_scsi,
    tune_device,
    wait_for_data_device,
)
from .base import BootstrapStep

log = logging.getLogger("firstboot")


class StorageDiscoveryStep(BootstrapStep):
    name = "storage-discovery"

    def run(self, ctx, tk, state) -> None:
        s = tk.settings

        rescan_scsi(tk.files, s.scsi_host_glob)
        refresh_partitions(tk.runner, s.dev_dir)

        state.ephemeral_devices = discover_ephemeral_devices(tk.metadata, tk.devices, pattern=s.ephemeral_pattern)
        log.info(
            "ephemeral devices: %s",
            ", ".join(d.path for d in state.ephemeral_devices) or "none",
        )
        for dev in state.ephemeral_devices:
            tune_device(
                dev,
                files=tk.files,
                runner=tk.runner,
                sys_block=s.sys_block,
                schedulers=s.io_schedulers,
                read_ahead=s.read_ahead_sectors,
            )

        if not ctx.wait_for_volume:
            # A volume the operator did not ask for is never touched.
            log.info("data volume not requested, leaving any attached volume alone")
            state.data_device = None
            return

        try:
            state.data_device = wait_for_data_device(
                tk.devices,
                s.data_device_candidates,
                budget=tk.budget(s.volume_wait),
                sleep=tk.sleep,
                on_retry=tk.on_retry(self.name, "data volume"),
            )
            log.info("data volume: %s", state.data_device.path)
        except DeviceNotFoundError as exc:
            # Hosts without a data volume are normal; /data is simply not set up.
            log.warning("%s", exc)
            state.data_device = None
