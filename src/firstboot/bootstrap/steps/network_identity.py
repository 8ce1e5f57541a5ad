# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/firstboot/bootstrap/steps/network_identity.py

from __future__ import annotations

import logging
from typing import List

from firstboot.config.models import LOOPBACK, RunContext
from firstboot.errors import ConfigurationError

from .base import BootstrapStep

log = logging.getLogger("firstboot")

LOCALHOST_LINE = f"{LOOPBACK} localhost.localdomain localhost loopback"


def build_hosts_entries(ctx: RunContext, local_ip: str, alias: str = "salt") -> List[str]:
    """
    Lines of the hosts file, in order.

    The coordinator answers to the agent alias itself; workers get a static
    entry for the coordinator so they can reach it without DNS.
    """
    own = f"{local_ip} {ctx.fqdn} {ctx.hostname}"
    if ctx.is_coordinator:
        return [LOCALHOST_LINE, f"{own} {alias}"]

    if not ctx.coordinator_address:
        raise ConfigurationError("The 'SALT_MASTER_IP' environment variable has to be set")
    return [LOCALHOST_LINE, own, f"{ctx.coordinator_address} {alias}"]


class NetworkIdentityStep(BootstrapStep):
    name = "network-identity"

    def run(self, ctx, tk, state) -> None:
        s = tk.settings

        # A cached id would make the agent advertise the old name.
        tk.files.remove(s.minion_id_file)

        state.local_ip = tk.metadata.local_ipv4()
        if not state.local_ip:
            log.warning("metadata service returned no local IPv4 address")

        entries = build_hosts_entries(ctx, state.local_ip, s.coordinator_alias)
        tk.files.write_text(s.hosts_file, "\n".join(entries) + "\n", mode=0o644)

        tk.files.write_text(s.hostname_file, ctx.hostname + "\n", mode=0o644)
        for path, value in ((s.kernel_hostname, ctx.hostname), (s.kernel_domainname, ctx.full_domain)):
            try:
                tk.files.write_attribute(path, value)
            except OSError as exc:
                log.info("could not write %s: %s", path, exc)

        tk.runner.run(["hostname", "-F", str(s.hostname_file)])
        # Log lines should carry the new name from here on.
        tk.services.restart("rsyslog")
        log.info("host identity set to %s (%s)", ctx.fqdn, state.local_ip or "no address")
