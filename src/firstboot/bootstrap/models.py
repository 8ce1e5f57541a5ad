# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/firstboot/bootstrap/models.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from firstboot.storage.devices import BlockDevice
from firstboot.storage.mounts import MountPlan

OK = "OK"
SKIPPED = "SKIPPED"
FAILED = "FAILED"


@dataclass
class BootstrapState:
    """Facts produced by earlier steps and consumed by later ones."""

    local_ip: str = ""
    runtime_present: bool = False
    runtime_version: Optional[str] = None
    compose_version: Optional[str] = None
    ephemeral_devices: Tuple[BlockDevice, ...] = ()
    data_device: Optional[BlockDevice] = None
    service_fstype: Optional[str] = None      # "btrfs" | "ext4" once /srv is provisioned
    mount_plan: MountPlan = field(default_factory=MountPlan)
    probe_ok: Optional[bool] = None

    @property
    def has_service_storage(self) -> bool:
        return bool(self.ephemeral_devices)

    @property
    def has_data_storage(self) -> bool:
        return self.data_device is not None


@dataclass
class StepOutcome:
    name: str
    status: str                 # "OK" | "SKIPPED" | "FAILED"
    duration_ms: int = 0
    reason: Optional[str] = None
    error: Optional[str] = None


@dataclass
class BootstrapReport:
    outcomes: List[StepOutcome] = field(default_factory=list)
    error: Optional[str] = None

    def add(self, outcome: StepOutcome) -> None:
        self.outcomes.append(outcome)

    def count(self, status: str) -> int:
        return sum(1 for o in self.outcomes if o.status == status)

    @property
    def ok(self) -> bool:
        return self.error is None and self.count(FAILED) == 0

    def summary(self) -> str:
        return f"OK={self.count(OK)} SKIPPED={self.count(SKIPPED)} FAILED={self.count(FAILED)}"
