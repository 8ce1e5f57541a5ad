# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/firstboot/bootstrap/orchestrator.py

from __future__ import annotations

import logging
import time
import uuid
from typing import List, Optional

from firstboot.config.models import RunContext
from firstboot.observers.events import (
    BootstrapStarted,
    BootstrapSummary,
    StepFailed,
    StepSkipped,
    StepStarted,
    StepSucceeded,
)

from .completion import CompletionGuard
from .models import FAILED, OK, SKIPPED, BootstrapReport, BootstrapState, StepOutcome
from .steps import default_steps
from .steps.base import BootstrapStep
from .toolkit import HostToolkit

log = logging.getLogger("firstboot")


class BootstrapOrchestrator:
    """
    Runs the steps strictly in order, once per instance.

    The first exception out of a step aborts the run: later steps do not
    run and no completion marker is written. Degradations a step can live
    with are handled inside the step.
    """

    def __init__(self, tk: HostToolkit, steps: Optional[List[BootstrapStep]] = None):
        self.tk = tk
        self.steps = steps if steps is not None else default_steps()
        self.guard = CompletionGuard(tk.settings.lock_file, tk.files, tk.settings.completion_lock)

    def run(self, ctx: RunContext) -> BootstrapReport:
        tk = self.tk
        self.guard.check()

        tk.event_ctx.setdefault("run_id", str(uuid.uuid4()))
        tk.event_ctx.update({"env": ctx.environment, "host": ctx.fqdn})

        report = BootstrapReport()
        state = BootstrapState()
        tk.bus.emit(BootstrapStarted(steps=[s.name for s in self.steps], **tk.events()))
        log.info("bootstrapping %s (role=%s)", ctx.fqdn, ctx.role)

        try:
            with self.guard.held():
                for step in self.steps:
                    self._run_step(step, ctx, state, report)
                self.guard.complete(ctx.started_at)
        except Exception as exc:
            report.error = str(exc)
            self._summary(report, "FAILED")
            raise

        self._summary(report, "OK")
        return report

    def _run_step(self, step: BootstrapStep, ctx, state: BootstrapState, report: BootstrapReport) -> None:
        tk = self.tk
        tk.bus.emit(StepStarted(step=step.name, **tk.events()))

        reason = step.skip_reason(ctx, state)
        if reason:
            log.info("[%s] skipped: %s", step.name, reason)
            report.add(StepOutcome(name=step.name, status=SKIPPED, reason=reason))
            tk.bus.emit(StepSkipped(step=step.name, reason=reason, **tk.events()))
            return

        t0 = time.time()
        try:
            step.run(ctx, tk, state)
        except Exception as exc:
            duration_ms = int((time.time() - t0) * 1000)
            log.error("[%s] failed: %s", step.name, exc)
            report.add(StepOutcome(name=step.name, status=FAILED, duration_ms=duration_ms, error=str(exc)))
            tk.bus.emit(StepFailed(step=step.name, error=str(exc), duration_ms=duration_ms, **tk.events()))
            raise

        duration_ms = int((time.time() - t0) * 1000)
        report.add(StepOutcome(name=step.name, status=OK, duration_ms=duration_ms))
        tk.bus.emit(StepSucceeded(step=step.name, duration_ms=duration_ms, **tk.events()))

    def _summary(self, report: BootstrapReport, status: str) -> None:
        log.info("bootstrap %s: %s", status, report.summary())
        self.tk.bus.emit(
            BootstrapSummary(
                ok=report.count(OK),
                skipped=report.count(SKIPPED),
                failed=report.count(FAILED),
                status=status,
                error=report.error,
                **self.tk.events(),
            )
        )
