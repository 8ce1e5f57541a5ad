# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/firstboot/bootstrap/steps/identity_tagging.py

from __future__ import annotations

import logging
from typing import List

from firstboot.cloud.aws_cli import AwsCliRunner
from firstboot.cloud.metadata import region_from_zone
from firstboot.utils.retry import retry_until

from .base import BootstrapStep

log = logging.getLogger("firstboot")


def hosted_zone_id(raw: str) -> str:
    """``arn:aws:route53:::hostedzone/Z123`` or ``/hostedzone/Z123`` -> ``Z123``."""
    return raw.rsplit("/", 1)[-1]


def route53_defaults(*, ttl: int, zone_id: str, instance_id: str, region: str) -> str:
    lines: List[str] = [
        f"TTL={ttl}",
        f"HOSTED_ZONE_ID={hosted_zone_id(zone_id)}",
        f"INSTANCE_ID={instance_id}",
        f"REGION={region}",
    ]
    return "\n".join(lines) + "\n"


class IdentityTaggingStep(BootstrapStep):
    """
    Auto-scaled instances inherit the group's Name tag; replace it with the
    host's FQDN and leave the details the DNS updater needs.
    """

    name = "identity-tagging"

    def skip_reason(self, ctx, state):
        if not ctx.auto_scaling_group:
            return "not an auto-scaling group member"
        return None

    def run(self, ctx, tk, state) -> None:
        s = tk.settings
        region = region_from_zone(tk.metadata.availability_zone())
        instance_id = ctx.instance_id or tk.metadata.instance_id()

        aws = AwsCliRunner(tk.runner, region=region or None)
        if aws.available():
            self._tag(ctx, tk, aws, instance_id)
        else:
            log.info("aws CLI not available, Name tag left unchanged")

        tk.files.write_text(
            s.route53_defaults,
            route53_defaults(
                ttl=s.route53_ttl,
                zone_id=ctx.hosted_zone_id or "",
                instance_id=instance_id,
                region=region,
            ),
            mode=0o644,
        )

    def _tag(self, ctx, tk, aws: AwsCliRunner, instance_id: str) -> None:
        def _attempt(_n: int) -> bool:
            # Tags propagate slowly; a fresh instance often reads back empty.
            if aws.describe_name_tag(instance_id) == ctx.fqdn:
                return True
            aws.set_name_tag(instance_id, ctx.fqdn)
            return False

        outcome = retry_until(
            _attempt,
            budget=tk.budget(tk.settings.tag_retry),
            sleep=tk.sleep,
            on_retry=tk.on_retry(self.name, "Name tag"),
        )
        if outcome.succeeded:
            log.info("Name tag is %s", ctx.fqdn)
        else:
            log.warning("Name tag not confirmed after %d attempts", outcome.attempts)
