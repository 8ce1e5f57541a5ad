# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/firstboot/salt/cli_runner.py

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List

from firstboot.errors import DegenerateProbeResponseError
from firstboot.execution.result import Result
from firstboot.execution.runner import CommandRunner

log = logging.getLogger("firstboot")


class SaltCliRunner:
    """
    Wrapper around salt-call / salt-key.

    Salt tools do not return useful exit codes for most of what we ask,
    so answers are judged by their (JSON) output.
    """

    def __init__(self, runner: CommandRunner):
        self.runner = runner

    def highstate(self, *, debug: bool = False) -> Result:
        argv = ["salt-call", "-l", "debug" if debug else "quiet", "state.highstate"]
        return self.runner.best_effort(argv)

    def publish_probe(self, minion_id: str) -> Dict[str, Any]:
        """
        Ask the master, through ourselves, for our own id.

        Raises DegenerateProbeResponseError when the answer is empty,
        unparseable or ``{"local": {}}``: the minion is not (yet) talking
        to the master.
        """
        result = self.runner.probe(
            ["salt-call", "-l", "quiet", "--output=json", "publish.publish", minion_id, "grains.get", "id"]
        )
        raw = result.stdout.strip()
        if not raw:
            raise DegenerateProbeResponseError(f"empty publish response for {minion_id}")
        try:
            data = json.loads(raw)
        except ValueError as exc:
            raise DegenerateProbeResponseError(f"unparseable publish response: {raw[:200]}") from exc

        if not isinstance(data, dict) or not data.get("local"):
            raise DegenerateProbeResponseError(f"no minions answered the publish for {minion_id}")
        return data

    def list_keys(self) -> List[str]:
        result = self.runner.probe(["salt-key", "-L", "--out=json"])
        if not result.ok:
            return []
        try:
            data = json.loads(result.stdout or "{}")
        except ValueError:
            log.info("salt-key returned non-JSON output, ignoring")
            return []
        keys: List[str] = []
        for bucket in data.values():
            if isinstance(bucket, list):
                keys.extend(bucket)
        return keys

    def delete_key(self, key: str) -> Result:
        return self.runner.best_effort(["salt-key", "-y", "-d", key])

    def delete_matching(self, pattern: str) -> List[str]:
        """Delete keys registered under a bad host name; returns the deleted ones."""
        rx = re.compile(pattern)
        deleted = []
        for key in self.list_keys():
            if rx.search(key) and self.delete_key(key).ok:
                deleted.append(key)
        return deleted
