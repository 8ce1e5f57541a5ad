# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/firstboot/observers/console.py
from .events import BaseEvent, StepStarted, StepSucceeded, StepSkipped, StepFailed, BootstrapSummary

_MARKS = {
    StepStarted: "..",
    StepSucceeded: "ok",
    StepSkipped: "--",
    StepFailed: "!!",
}


class ConsoleObserver:
    """Prints a one-line progress view of the step pipeline."""

    def notify(self, event: BaseEvent) -> None:
        if isinstance(event, BootstrapSummary):
            print(f"[{event.ts}] summary ok={event.ok} skipped={event.skipped} "
                  f"failed={event.failed} status={event.status}")
            return
        mark = _MARKS.get(type(event))
        if mark is None:
            return
        d = event.dict()
        extra = ", ".join(f"{x}={y}" for x, y in d.items()
                          if x not in ("ts", "run_id", "env", "host", "step") and y not in (None, ""))
        line = f"[{d['ts']}] [{mark}] {d['step']}"
        if extra:
            line += f" ({extra})"
        print(line)
