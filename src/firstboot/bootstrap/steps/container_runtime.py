# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/firstboot/bootstrap/steps/container_runtime.py

from __future__ import annotations

import json
import logging
from typing import Any, Dict

from firstboot.errors import ConfigurationError
from firstboot.salt.config import parse_version

from .base import BootstrapStep

log = logging.getLogger("firstboot")

RUNTIME_SERVICE = "docker"


class ContainerRuntimeDetectionStep(BootstrapStep):
    """
    Find out whether the image ships a container runtime and get it out of
    the way of storage provisioning (it holds its data directory busy).
    """

    name = "container-runtime-detection"

    def run(self, ctx, tk, state) -> None:
        probe = tk.runner.probe(["docker", "--version"])
        if not probe.ok:
            log.info("no container runtime on this image")
            state.runtime_present = False
            return

        # Stopped either way; a runtime that was not running is fine.
        tk.services.stop(RUNTIME_SERVICE)

        if ctx.disable_container_runtime:
            for unit in tk.settings.docker_unit_files:
                tk.services.divert(unit)
            tk.services.disable(RUNTIME_SERVICE)
            log.info("container runtime disabled on request")
            state.runtime_present = False
            return

        state.runtime_present = True
        state.runtime_version = parse_version(probe.stdout)
        compose = tk.runner.probe(["docker-compose", "--version"])
        if compose.ok:
            state.compose_version = parse_version(compose.stdout)


def storage_driver_config(current: Dict[str, Any]) -> Dict[str, Any]:
    """Daemon settings with the btrfs storage driver; other keys kept."""
    updated = dict(current)
    updated["storage-driver"] = "btrfs"
    updated["ipv6"] = False
    return updated


class ContainerRuntimeIntegrationStep(BootstrapStep):
    name = "container-runtime-integration"

    def skip_reason(self, ctx, state):
        if not state.runtime_present:
            return "container runtime absent or disabled"
        if state.service_fstype != "btrfs":
            return "service storage is not btrfs"
        return None

    def run(self, ctx, tk, state) -> None:
        path = tk.settings.docker_daemon_json
        raw = tk.files.read_text(path).strip()
        try:
            current = json.loads(raw) if raw else {}
        except ValueError as exc:
            raise ConfigurationError(f"{path} is not valid JSON: {exc}") from exc
        if not isinstance(current, dict):
            raise ConfigurationError(f"{path} must hold a JSON object")

        if tk.services.running(RUNTIME_SERVICE):
            tk.services.stop(RUNTIME_SERVICE)

        tk.files.write_text(path, json.dumps(storage_driver_config(current), indent=2) + "\n", mode=0o644)
        # A runtime that fails to come back is visible in the agent run later.
        tk.services.restart(RUNTIME_SERVICE)
