# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import time
import functools
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Generic, Optional, TypeVar

from firstboot.errors import BootstrapError

T = TypeVar("T")


class RetryError(BootstrapError):
    pass


def retry(
    *,
    retries: int,
    delay: int,
    retry_on: tuple[type[Exception], ...] = (Exception,),
    on_retry: Callable[[int, Exception], None] | None = None,
    sleep: Callable[[float], None] = time.sleep,
):
    """
    Retry decorator for idempotent operations.

    retries: number of attempts
    delay: seconds between attempts
    retry_on: exception types to retry
    on_retry: callback(attempt, exception)
    """

    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            last_exc = None
            for attempt in range(1, retries + 1):
                try:
                    return fn(*args, **kwargs)
                except retry_on as exc:
                    last_exc = exc
                    if on_retry:
                        on_retry(attempt, exc)
                    if attempt == retries:
                        break
                    sleep(delay)
            raise RetryError(f"{fn.__name__} failed after {retries} retries") from last_exc
        return wrapper
    return decorator


class Exhaustion(str, Enum):
    CONTINUE = "continue"   # give up quietly, caller runs degraded
    ABORT = "abort"         # raise, the whole run stops


def linear_backoff(step: float = 1.0, cap: Optional[float] = None) -> Callable[[int], float]:
    """Wait ``step * attempt`` seconds after a failed attempt, optionally capped."""

    def _backoff(attempt: int) -> float:
        wait = step * attempt
        if cap is not None:
            wait = min(wait, cap)
        return wait

    return _backoff


@dataclass(frozen=True)
class RetryBudget:
    attempts: int
    backoff: Callable[[int], float]
    on_exhaustion: Exhaustion = Exhaustion.CONTINUE
    # also wait out the backoff after the last failed attempt
    trailing_wait: bool = False

    def total_wait(self) -> float:
        """Worst-case sleep time, not counting the attempts themselves."""
        last = self.attempts + 1 if self.trailing_wait else self.attempts
        return sum(self.backoff(n) for n in range(1, last))


@dataclass
class RetryOutcome(Generic[T]):
    succeeded: bool
    attempts: int
    value: Optional[T] = None
    waited: float = 0.0


def retry_until(
    attempt_fn: Callable[[int], T],
    *,
    budget: RetryBudget,
    predicate: Callable[[T], bool] = bool,
    sleep: Callable[[float], None] = time.sleep,
    on_retry: Callable[[int, float, Any], None] | None = None,
    error_factory: Callable[[RetryOutcome], Exception] | None = None,
) -> RetryOutcome[T]:
    """
    Call ``attempt_fn(n)`` until ``predicate`` accepts its value or the budget
    runs out. Sleeps ``budget.backoff(n)`` between attempts; after the last
    one only when ``budget.trailing_wait`` is set.

    On exhaustion the outcome is returned (``Exhaustion.CONTINUE``) or
    ``error_factory(outcome)`` is raised (``Exhaustion.ABORT``).
    """
    if budget.attempts < 1:
        raise ValueError("retry budget needs at least one attempt")

    waited = 0.0
    value: Optional[T] = None
    for attempt in range(1, budget.attempts + 1):
        value = attempt_fn(attempt)
        if predicate(value):
            return RetryOutcome(succeeded=True, attempts=attempt, value=value, waited=waited)
        wait = budget.backoff(attempt)
        if attempt == budget.attempts:
            if budget.trailing_wait:
                sleep(wait)
                waited += wait
            break
        if on_retry:
            on_retry(attempt, wait, value)
        sleep(wait)
        waited += wait

    outcome = RetryOutcome(succeeded=False, attempts=budget.attempts, value=value, waited=waited)
    if budget.on_exhaustion == Exhaustion.ABORT:
        if error_factory:
            raise error_factory(outcome)
        raise RetryError(f"gave up after {budget.attempts} attempts")
    return outcome
