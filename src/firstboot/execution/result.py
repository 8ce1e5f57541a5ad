# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/firstboot/execution/result.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from firstboot.errors import BootstrapError


@dataclass(frozen=True)
class Result:
    """
    Outcome of an operation whose failure the caller may choose to ignore.

    Callers that discard a failed Result do so explicitly, next to a note
    on why the failure is acceptable at that point.
    """

    ok: bool
    value: Any = None
    error: Optional[BootstrapError] = None

    @classmethod
    def success(cls, value: Any = None) -> "Result":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: BootstrapError) -> "Result":
        return cls(ok=False, error=error)

    def unwrap(self) -> Any:
        if not self.ok:
            raise self.error
        return self.value
