# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/firstboot/cloud/aws_cli.py

from __future__ import annotations

from typing import List

from firstboot.execution.runner import CommandRunner


class AwsCliRunner:
    """
    A pragmatic wrapper around the `aws` CLI for the two EC2 tag calls
    the bootstrap needs. Testable by faking the CommandRunner.
    """

    def __init__(self, runner: CommandRunner, region: str | None = None):
        self.runner = runner
        self.region = region

    def _base(self) -> List[str]:
        return ["aws", "--color=off"]

    def _region(self) -> List[str]:
        return ["--region", self.region] if self.region else []

    def available(self) -> bool:
        return self.runner.probe(["aws", "--version"]).ok

    def describe_name_tag(self, instance_id: str) -> str:
        """Current value of the instance ``Name`` tag, "" when unset or unreadable."""
        argv = (
            self._base()
            + ["ec2", "describe-tags", "--query", "Tags[*].Value"]
            + ["--filters", f"Name=resource-id,Values={instance_id}", "Name=key,Values=Name"]
            + self._region()
            + ["--output", "text"]
        )
        result = self.runner.probe(argv)
        if not result.ok:
            return ""
        value = result.stdout.strip()
        return "" if value == "None" else value

    def set_name_tag(self, instance_id: str, value: str):
        argv = (
            self._base()
            + ["ec2", "create-tags", "--tags", f"Key=Name,Value={value}"]
            + ["--resources", instance_id]
            + self._region()
        )
        # Tag propagation is eventually consistent; the caller re-reads.
        return self.runner.best_effort(argv)
