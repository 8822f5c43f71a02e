#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Fixed-count, fixed-delay retry policy for compounding steps."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, TypeVar

from constants import MAX_RETRIES, RETRY_DELAY_SECONDS
from logging_config import get_logger
from terminate import TerminateSignal
from tx_errors import (
    FatalConfigError,
    PostponeCycle,
    StepAborted,
    TransactionError,
    classify_error,
)

T = TypeVar("T")

logger = get_logger(__name__)


class StepOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED_RETRYABLE = "failed_retryable"
    FAILED_FATAL = "failed_fatal"
    POSTPONED = "postponed"
    ABORTED = "aborted"


@dataclass
class RetryConfig:
    """Retry budget shared by every step of a cycle."""

    max_retries: int = MAX_RETRIES
    delay_seconds: float = RETRY_DELAY_SECONDS

    def __post_init__(self) -> None:
        self.max_retries = max(1, int(self.max_retries))
        self.delay_seconds = max(0.0, float(self.delay_seconds))


@dataclass
class StepRecord:
    label: str
    outcome: StepOutcome
    attempts: int
    error: Optional[str] = None


@dataclass
class StepRunner:
    """
    Runs pipeline steps with the cycle's retry budget.

    Each failed attempt of a counted step adds its transactions to
    ``txn_count``; the attempt counter resets after every success. The
    step aborts once ``max_retries`` attempts have failed or termination
    was requested. ``PostponeCycle`` and ``FatalConfigError`` propagate
    untouched and never consume retry budget.
    """

    config: RetryConfig
    terminate: TerminateSignal
    txn_count: int = 0
    retry_attempt: int = 0
    history: List[StepRecord] = field(default_factory=list)

    def run(
        self,
        label: str,
        func: Callable[[], T],
        *,
        txns_per_attempt: int = 1,
        counted: bool = True,
    ) -> T:
        charge = txns_per_attempt if counted else 0
        while True:
            if self.terminate.is_set():
                self._record(label, StepOutcome.ABORTED)
                raise StepAborted(label, terminated=True, attempts=self.retry_attempt)
            try:
                result = func()
            except PostponeCycle as exc:
                self._record(label, StepOutcome.POSTPONED, str(exc))
                raise
            except FatalConfigError as exc:
                self._record(label, StepOutcome.FAILED_FATAL, str(exc))
                raise
            except Exception as exc:
                error = exc if isinstance(exc, TransactionError) else classify_error(str(exc))
                self.txn_count += charge
                self.retry_attempt += 1
                logger.warning(
                    "%s failed: %s (%s)", label, exc, type(error).__name__,
                    exc_info=not isinstance(exc, TransactionError),
                )
                if self.retry_attempt >= self.config.max_retries:
                    self._record(label, StepOutcome.ABORTED, str(exc))
                    raise StepAborted(label, terminated=False, attempts=self.retry_attempt) from exc
                self._record(label, StepOutcome.FAILED_RETRYABLE, str(exc))
                logger.info("Retrying... (%d/%d)", self.retry_attempt, self.config.max_retries)
                if self.terminate.wait(self.config.delay_seconds):
                    self._record(label, StepOutcome.ABORTED)
                    raise StepAborted(label, terminated=True, attempts=self.retry_attempt) from exc
                continue

            self.txn_count += charge
            self.retry_attempt = 0
            self._record(label, StepOutcome.SUCCEEDED)
            return result

    def _record(self, label: str, outcome: StepOutcome, error: Optional[str] = None) -> None:
        self.history.append(
            StepRecord(label=label, outcome=outcome, attempts=self.retry_attempt, error=error)
        )


def retry_until_success(
    label: str,
    func: Callable[[], T],
    terminate: TerminateSignal,
    *,
    delay_seconds: float = RETRY_DELAY_SECONDS,
) -> Optional[T]:
    """
    Call ``func`` until it returns, sleeping ``delay_seconds`` between failures.

    Used for reads that must eventually succeed (gas estimate, yield
    recompute). Returns None only when termination was requested.
    """
    while not terminate.is_set():
        try:
            return func()
        except FatalConfigError:
            raise
        except Exception as exc:
            logger.warning("%s failed: %s", label, exc)
        if terminate.wait(delay_seconds):
            break
    return None
