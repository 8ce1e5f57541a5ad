# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/firstboot/bootstrap/steps/convergence.py

from __future__ import annotations

import logging

from firstboot.errors import DegenerateProbeResponseError, UnreachableCoordinatorError
from firstboot.utils.retry import Exhaustion, retry_until

from .base import BootstrapStep

log = logging.getLogger("firstboot")


class ConvergenceStep(BootstrapStep):
    """
    Make sure the coordinator is reachable, then hand the host over to the
    configuration-management agent.
    """

    name = "convergence"

    def run(self, ctx, tk, state) -> None:
        s = tk.settings
        self._wait_for_coordinator(ctx, tk)

        tk.files.write_text(s.minion_id_file, ctx.hostname + "\n", mode=0o644)

        try:
            tk.salt.publish_probe(ctx.hostname)
            state.probe_ok = True
        except DegenerateProbeResponseError as exc:
            # Usually the key is not accepted yet; a restart re-registers it.
            log.warning("%s, restarting the minion", exc)
            state.probe_ok = False
            tk.services.restart("salt-minion")
            tk.salt.highstate(debug=True)
        else:
            res = tk.salt.highstate()
            log.info("highstate %s", "finished" if res.ok else "reported a failure")

        if ctx.is_coordinator:
            self._clean_up_keys(tk)

    def _wait_for_coordinator(self, ctx, tk) -> None:
        s = tk.settings
        host = ctx.coordinator_host
        wanted = set(s.coordinator_ports)

        def _error(outcome):
            return UnreachableCoordinatorError(
                f"Unable to contact the Salt Master at {host} on ports "
                f"{', '.join(map(str, sorted(wanted)))} after {outcome.attempts} attempts"
            )

        # Both ports have to answer in the same round.
        retry_until(
            lambda _n: tk.ports.open_ports(host, s.coordinator_ports),
            budget=tk.budget(s.coordinator_retry, Exhaustion.ABORT),
            predicate=lambda open_ports: wanted.issubset(open_ports),
            sleep=tk.sleep,
            on_retry=tk.on_retry(self.name, f"coordinator {host}"),
            error_factory=_error,
        )
        log.info("coordinator %s is reachable", host)

    def _clean_up_keys(self, tk) -> None:
        s = tk.settings
        # Give minions that registered meanwhile a moment to settle.
        tk.sleep(s.settle_seconds)
        deleted = tk.salt.delete_matching(s.key_cleanup_pattern)
        if deleted:
            log.info("deleted stale keys: %s", ", ".join(deleted))
        tk.services.restart("salt-master")
        tk.services.restart("salt-minion")
