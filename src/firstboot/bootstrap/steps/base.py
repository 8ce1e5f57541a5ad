# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/firstboot/bootstrap/steps/base.py

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from firstboot.bootstrap.models import BootstrapState
from firstboot.bootstrap.toolkit import HostToolkit
from firstboot.config.models import RunContext


class BootstrapStep(ABC):
    """
    One stage of the first-boot pipeline.

    Steps read the RunContext, record what they learn in BootstrapState and
    act on the host only through the HostToolkit. Exceptions that escape
    run() abort the whole bootstrap.
    """

    name: str = "step"

    def skip_reason(self, ctx: RunContext, state: BootstrapState) -> Optional[str]:
        """Why this step does not apply to this host, or None to run it."""
        return None

    @abstractmethod
    def run(self, ctx: RunContext, tk: HostToolkit, state: BootstrapState) -> None:
        raise NotImplementedError
