# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/firstboot/bootstrap/steps/agent_lifecycle.py

from __future__ import annotations

import logging

import requests

from firstboot.config.models import SaltRepository
from firstboot.errors import BootstrapError
from firstboot.utils.retry import retry

from .base import BootstrapStep

log = logging.getLogger("firstboot")

AGENT_SERVICES = ("salt-minion", "salt-master")


@retry(retries=3, delay=5, retry_on=(requests.RequestException,))
def fetch_signing_key(url: str, timeout: float = 30.0) -> str:
    r = requests.get(url, timeout=timeout)
    r.raise_for_status()
    return r.text


class AgentLifecycleStep(BootstrapStep):
    """
    Leave the configuration-management agent in a known state: nothing
    stale running, no old keys, current packages installed and started.
    """

    name = "agent-lifecycle"

    def run(self, ctx, tk, state) -> None:
        s = tk.settings
        tk.files.remove(s.minion_id_file)

        for svc in AGENT_SERVICES:
            if not tk.services.installed(svc):
                continue
            # Not running is fine; stragglers are killed below.
            tk.services.stop(svc)
            tk.services.kill(svc)
            # Keys of a previous identity must not survive.
            tk.files.empty_dir(s.salt_pki_dir)

        if s.salt_repository is not None:
            self._configure_repository(tk, s.salt_repository)

        packages = ["salt-minion"]
        if ctx.is_coordinator:
            packages.insert(0, "salt-master")

        tk.apt.update()
        tk.apt.install(*packages)

        if ctx.is_coordinator:
            tk.services.start("salt-master")
        tk.services.start("salt-minion")

        if ctx.is_coordinator:
            # The master applies its own states once before serving others.
            tk.salt.highstate()

    def _configure_repository(self, tk, repo: SaltRepository) -> None:
        if tk.files.dry_run:
            log.info("dry-run: salt repository %s", repo.sources_list)
            return
        try:
            key = fetch_signing_key(repo.key_url)
        except BootstrapError as exc:
            raise BootstrapError(f"Unable to fetch the salt signing key from {repo.key_url}") from exc

        tk.files.write_text(repo.keyring_path, key, mode=0o644)
        tk.files.write_text(repo.sources_list, repo.source_line + "\n", mode=0o644)
