# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/firstboot/system/packages.py

from __future__ import annotations

import logging
from typing import Iterable

from firstboot.errors import CommandError
from firstboot.execution.result import Result
from firstboot.execution.runner import CommandRunner
from firstboot.utils.retry import retry

log = logging.getLogger("firstboot")

APT_ENV = {
    "DEBIAN_FRONTEND": "noninteractive",
    "DEBIAN_PRIORITY": "critical",
    "DEBCONF_NONINTERACTIVE_SEEN": "true",
}


class AptManager:
    """apt/dpkg wrapper. Install failures propagate; clean-up is best effort."""

    def __init__(self, runner: CommandRunner):
        self.runner = runner

    def _apt(self, *args: str, check: bool = True):
        return self.runner.run(["apt-get", "-y", *args], check=check, env=APT_ENV)

    def is_installed(self, package: str) -> bool:
        return self.runner.probe(["dpkg", "-s", package]).ok

    @retry(retries=3, delay=5, retry_on=(CommandError,))
    def update(self) -> None:
        self._apt("update")

    def install(self, *packages: str, recommends: bool = True) -> None:
        args = ["install"]
        if not recommends:
            args.append("--no-install-recommends")
        self._apt(*args, *packages)

    def ensure(self, package: str) -> bool:
        """
        Install *package* when missing and pin it as manually installed.
        Returns True when something was installed.
        """
        if self.is_installed(package):
            return False
        log.info("installing %s", package)
        self.update()
        self.install(package, recommends=False)
        self.runner.run(["apt-mark", "manual", package])
        self.clean()
        return True

    def purge(self, packages: Iterable[str]) -> Result:
        # Packages may simply not be there on this image.
        return self.runner.best_effort(["apt-get", "-y", "purge", *packages], env=APT_ENV)

    def autoremove(self) -> Result:
        return self.runner.best_effort(["apt-get", "-y", "autoremove"], env=APT_ENV)

    def clean(self) -> Result:
        # A dirty package cache only costs disk space.
        return self.runner.best_effort(["apt-get", "-y", "clean"], env=APT_ENV)
