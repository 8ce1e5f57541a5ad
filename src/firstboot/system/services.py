# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/firstboot/system/services.py

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List

from firstboot.errors import ServiceControlError
from firstboot.execution.result import Result
from firstboot.execution.runner import CommandRunner

log = logging.getLogger("firstboot")


class ServiceManager:
    """
    init-system control through `service`, which works for both upstart/sysv
    and systemd hosts.

    stop/restart never raise: the desired end state ("not running",
    "restarted") tolerates a service that was never started. start() raises
    only when asked to.
    """

    def __init__(self, runner: CommandRunner, unit_dirs: Iterable[Path] = ()):
        self.runner = runner
        self.unit_dirs: List[Path] = [Path(d) for d in unit_dirs]

    def installed(self, name: str) -> bool:
        for d in self.unit_dirs:
            for candidate in (d / f"{name}.conf", d / name, d / f"{name}.service"):
                if candidate.exists():
                    return True
        return False

    def _control(self, name: str, action: str) -> Result:
        result = self.runner.run(["service", name, action], check=False)
        if result.ok:
            return Result.success(result)
        err = ServiceControlError(f"service {name} {action} failed (rc={result.returncode})")
        log.info("%s", err)
        return Result.failure(err)

    def stop(self, name: str) -> Result:
        return self._control(name, "stop")

    def restart(self, name: str) -> Result:
        return self._control(name, "restart")

    def start(self, name: str, *, required: bool = False) -> Result:
        res = self._control(name, "start")
        if required and not res.ok:
            raise res.error
        return res

    def running(self, pattern: str) -> bool:
        return self.runner.probe(["pgrep", "-f", pattern]).ok

    def kill(self, pattern: str) -> Result:
        """Stop with extreme prejudice whatever still matches *pattern*."""
        if not self.running(pattern):
            return Result.success()
        return self.runner.best_effort(["pkill", "-9", "-f", pattern])

    def divert(self, unit_file: Path) -> None:
        self.runner.run(["dpkg-divert", "--rename", str(unit_file)])

    def disable(self, name: str) -> Result:
        return self.runner.best_effort(["update-rc.d", "-f", name, "disable"])
