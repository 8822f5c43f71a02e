#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Cooperative termination signal shared by the scheduler and pipeline.

A running step is never interrupted. Every suspension point (retry delay,
idle tick) waits on the signal instead of ``time.sleep`` so a SIGINT/SIGTERM
wakes it immediately and no new retry starts afterwards.
"""

from __future__ import annotations

import signal
import threading
import time
from typing import Iterable, Optional

from logging_config import get_logger

logger = get_logger(__name__)


class TerminateSignal:
    """Process-wide stop flag with interruptible waits."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self.reason: Optional[str] = None
        self.requested_at: Optional[float] = None

    def is_set(self) -> bool:
        return self._event.is_set()

    def set(self, reason: str = "manual") -> None:
        if self._event.is_set():
            return
        self.reason = reason
        self.requested_at = time.time()
        self._event.set()
        logger.warning("Termination requested (%s), finishing current step", reason)

    def wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; return True if termination was requested."""
        if seconds <= 0:
            return self._event.is_set()
        return self._event.wait(seconds)

    def install_handlers(
        self,
        signals: Iterable[int] = (signal.SIGINT, signal.SIGTERM),
    ) -> None:
        """Route the given OS signals to :meth:`set` (main thread only)."""
        for signum in signals:
            signal.signal(signum, self._handle)

    def _handle(self, signum, _frame) -> None:
        self.set(signal.Signals(signum).name)

    def status(self) -> dict:
        return {
            "terminating": self.is_set(),
            "reason": self.reason,
            "requested_at": self.requested_at,
        }
