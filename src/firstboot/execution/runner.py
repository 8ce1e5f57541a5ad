# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/firstboot/execution/runner.py

from __future__ import annotations

import logging
import os
import subprocess
import time
from dataclasses import dataclass
from typing import Optional, Sequence, Union

from firstboot.errors import CommandError
from firstboot.execution.result import Result

Cmd = Sequence[Union[str, "os.PathLike[str]"]]

log = logging.getLogger("firstboot")


@dataclass(frozen=True)
class CommandResult:
    argv: list
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


@dataclass
class CommandRunner:
    """
    Runs local commands with logging.

    - run():         mutating command; skipped under dry_run
    - probe():       read-only inspection; always executed, never raises
    - best_effort(): mutating command whose failure is returned, not raised
    """

    logger: Optional[logging.Logger] = None
    dry_run: bool = False
    label: Optional[str] = None
    timeout: Optional[float] = None

    def _log(self, msg: str, *args) -> None:
        (self.logger or log).debug(msg, *args)

    def _execute(
        self,
        cmd: Cmd,
        *,
        input: Optional[str] = None,
        env: Optional[dict] = None,
        timeout: Optional[float] = None,
    ) -> CommandResult:
        argv = [str(c) for c in cmd]
        label = self.label or "cmd"

        self._log("[%s] $ %s", label, " ".join(argv))
        start = time.time()

        full_env = None
        if env:
            full_env = dict(os.environ)
            full_env.update(env)

        try:
            cp = subprocess.run(
                argv,
                input=input,
                capture_output=True,
                text=True,
                check=False,
                env=full_env,
                timeout=timeout or self.timeout,
            )
        except FileNotFoundError:
            self._log("[%s] not found: %s", label, argv[0])
            return CommandResult(argv=argv, returncode=127, stderr=f"{argv[0]}: command not found")
        except subprocess.TimeoutExpired:
            self._log("[%s] timed out: %s", label, " ".join(argv))
            return CommandResult(argv=argv, returncode=124, stderr="timed out")

        duration = time.time() - start
        if cp.stdout:
            self._log("[%s][stdout]\n%s", label, cp.stdout.rstrip())
        if cp.stderr:
            self._log("[%s][stderr]\n%s", label, cp.stderr.rstrip())
        self._log("[%s][exit %s] (%.2fs)", label, cp.returncode, duration)

        return CommandResult(
            argv=argv,
            returncode=cp.returncode,
            stdout=cp.stdout or "",
            stderr=cp.stderr or "",
        )

    def run(
        self,
        cmd: Cmd,
        *,
        check: bool = True,
        input: Optional[str] = None,
        env: Optional[dict] = None,
        timeout: Optional[float] = None,
    ) -> CommandResult:
        if self.dry_run:
            self._log("[%s] dry-run: skipped %s", self.label or "cmd", " ".join(map(str, cmd)))
            return CommandResult(argv=[str(c) for c in cmd], returncode=0)

        result = self._execute(cmd, input=input, env=env, timeout=timeout)
        if check and not result.ok:
            raise CommandError(result.argv, result.returncode, result.stderr)
        return result

    def probe(self, cmd: Cmd, *, timeout: Optional[float] = None) -> CommandResult:
        return self._execute(cmd, timeout=timeout)

    def best_effort(self, cmd: Cmd, **kwargs) -> Result:
        result = self.run(cmd, check=False, **kwargs)
        if result.ok:
            return Result.success(result)
        err = CommandError(result.argv, result.returncode, result.stderr)
        (self.logger or log).info("ignored failure: %s", err)
        return Result(ok=False, value=result, error=err)
