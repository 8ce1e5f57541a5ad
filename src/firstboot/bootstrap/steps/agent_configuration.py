# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/firstboot/bootstrap/steps/agent_configuration.py

from __future__ import annotations

import logging

from firstboot.salt.config import (
    Grains,
    VersionGrain,
    collect_ec2_grains,
    dump,
    keepalive_settings,
    master_config,
    mine_config,
    parse_os_release,
)

from .base import BootstrapStep

log = logging.getLogger("firstboot")


def build_grains(ctx, tk, state) -> Grains:
    s = tk.settings
    source_ami = parse_os_release(tk.files.read_text(s.os_release_ec2)).get("BUILDER_SOURCE_AMI")
    return Grains(
        **ctx.grains_identity(),
        ec2=collect_ec2_grains(tk.metadata, source_ami),
        docker=VersionGrain(version=state.runtime_version) if state.runtime_present and state.runtime_version else None,
        docker_compose=(
            VersionGrain(version=state.compose_version)
            if state.runtime_present and state.compose_version
            else None
        ),
    )


class AgentConfigurationStep(BootstrapStep):
    name = "agent-configuration"

    def run(self, ctx, tk, state) -> None:
        s = tk.settings
        minion_d = s.salt_dir / "minion.d"
        tk.files.ensure_dir(minion_d, mode=0o755)

        tk.files.write_text(
            minion_d / "mine.conf",
            dump(mine_config(s.mine_interval, s.mine_functions)),
            mode=0o644,
        )

        if ctx.is_coordinator:
            tk.files.write_text(
                s.salt_dir / "master",
                dump(master_config(str(s.service_mount_point))),
                mode=0o644,
            )
        else:
            # Workers never serve states.
            tk.services.stop("salt-master")

        grains = build_grains(ctx, tk, state)
        tk.files.write_text(s.salt_dir / "grains", grains.render(s.grains_prefix), mode=0o644)

        tk.files.set_keys(s.salt_dir / "minion", keepalive_settings(s.tcp_keepalive_idle))

        tk.files.chmod_tree(s.salt_dir, file_mode=0o644, dir_mode=0o755)
        tk.files.chmod_tree(s.salt_pki_dir, file_mode=0o600, dir_mode=0o700)
