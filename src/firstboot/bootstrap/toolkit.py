# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/firstboot/bootstrap/toolkit.py

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from firstboot.cloud.metadata import MetadataClient
from firstboot.config.models import BootstrapSettings, RetrySettings
from firstboot.execution.runner import CommandRunner
from firstboot.observers.dispatcher import EventBus
from firstboot.observers.events import RetryAttempted, now_ts
from firstboot.salt.cli_runner import SaltCliRunner
from firstboot.storage.devices import DeviceProbe
from firstboot.storage.filesystems import Filesystems
from firstboot.system.network import PortProbe
from firstboot.system.packages import AptManager
from firstboot.system.services import ServiceManager
from firstboot.utils.files import HostFiles
from firstboot.utils.retry import Exhaustion, RetryBudget, linear_backoff

log = logging.getLogger("firstboot")


@dataclass
class HostToolkit:
    """
    Everything a step may touch on the host. Steps never reach for
    subprocess, sockets or HTTP directly; tests swap the pieces here.
    """

    settings: BootstrapSettings
    runner: CommandRunner
    files: HostFiles
    metadata: Any
    devices: DeviceProbe
    services: ServiceManager
    apt: AptManager
    salt: SaltCliRunner
    filesystems: Filesystems
    ports: PortProbe
    bus: EventBus = field(default_factory=EventBus)
    sleep: Callable[[float], None] = time.sleep
    event_ctx: Dict[str, Any] = field(default_factory=dict)

    def events(self) -> Dict[str, Any]:
        """Event context with a fresh timestamp."""
        return {"run_id": "-", "env": "-", "host": None, **self.event_ctx, "ts": now_ts()}

    def budget(self, policy: RetrySettings, on_exhaustion: Exhaustion = Exhaustion.CONTINUE) -> RetryBudget:
        return RetryBudget(
            attempts=policy.attempts,
            backoff=linear_backoff(policy.step_seconds, policy.cap_seconds),
            on_exhaustion=on_exhaustion,
            trailing_wait=policy.trailing_wait,
        )

    def on_retry(self, step: str, what: str) -> Callable[[int, float, Any], None]:
        def _notify(attempt: int, wait: float, _value: Any) -> None:
            log.info("%s: %s not ready (attempt %d), retrying in %.1fs", step, what, attempt, wait)
            self.bus.emit(RetryAttempted(step=step, what=what, attempt=attempt, wait_s=wait, **self.events()))

        return _notify


def build_toolkit(
    settings: BootstrapSettings,
    *,
    dry_run: bool = False,
    logger: Optional[logging.Logger] = None,
    bus: Optional[EventBus] = None,
    metadata: Any = None,
) -> HostToolkit:
    runner = CommandRunner(logger=logger, dry_run=dry_run, label="firstboot")
    files = HostFiles(dry_run=dry_run)
    if metadata is None:
        metadata = MetadataClient(
            base_url=settings.metadata_url,
            token_url=settings.metadata_token_url if settings.use_imdsv2 else None,
            timeout=settings.metadata_timeout,
        )
    return HostToolkit(
        settings=settings,
        runner=runner,
        files=files,
        metadata=metadata,
        devices=DeviceProbe(settings.dev_dir),
        services=ServiceManager(runner, settings.salt_unit_dirs),
        apt=AptManager(runner),
        salt=SaltCliRunner(runner),
        filesystems=Filesystems(runner, files),
        ports=PortProbe(timeout=settings.port_timeout),
        bus=bus or EventBus(),
    )
