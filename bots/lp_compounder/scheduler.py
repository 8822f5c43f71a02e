#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Compounding scheduler: when to run the next cycle.

The loop alternates between RUNNING (one orchestrator cycle) and IDLE. While
idle it re-quotes gas and re-runs the yield model every few minutes, then
starts the next cycle at ``last_compound + interval - floor(last_duration)``.
The last compound time and duration survive restarts through the
``state_<name>`` record, so a restart inside the interval does not compound
again.
"""

from __future__ import annotations

import math
import time
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from constants import IDLE_RECOMPUTE_SECONDS, IDLE_TICK_SECONDS
from cycle_state import CycleState, load_record, save_record
from farms import Farm
from logging_config import get_logger
from notify import TelegramNotifier, build_cycle_message
from orchestrator import CompoundingOrchestrator, CycleReport, CycleStatus
from retry_policy import retry_until_success
from snapshot import SchedulerSnapshot, SnapshotBoard
from terminate import TerminateSignal
from yield_model import YieldEstimate

logger = get_logger(__name__)


class SchedulerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    TERMINATING = "terminating"


def _fmt(ts: Optional[float]) -> str:
    if ts is None:
        return "-"
    return datetime.fromtimestamp(ts).isoformat(sep=" ", timespec="seconds")


def next_run_time(last_compound: float, interval_seconds: int, last_duration: float) -> float:
    return last_compound + interval_seconds - math.floor(last_duration)


class Scheduler:
    def __init__(
        self,
        orchestrator: CompoundingOrchestrator,
        farm: Farm,
        state_file: Path,
        terminate: TerminateSignal,
        *,
        board: Optional[SnapshotBoard] = None,
        notifier: Optional[TelegramNotifier] = None,
        instance_name: str = "",
        clock: Callable[[], float] = time.time,
        monotonic: Callable[[], float] = time.monotonic,
        recompute_seconds: float = IDLE_RECOMPUTE_SECONDS,
        tick_seconds: float = IDLE_TICK_SECONDS,
    ):
        self.orchestrator = orchestrator
        self.farm = farm
        self.state_file = state_file
        self.terminate = terminate
        self.board = board
        self.notifier = notifier
        self.instance_name = instance_name
        self._clock = clock
        self._monotonic = monotonic
        self.recompute_seconds = recompute_seconds
        self.tick_seconds = tick_seconds

        self.phase = SchedulerState.IDLE
        self.next_run_at: Optional[float] = None
        self.estimate: Optional[YieldEstimate] = None
        self.last_report: Optional[CycleReport] = None

    @property
    def cycle_state(self) -> CycleState:
        return self.orchestrator.state

    def start(self) -> bool:
        """Restore the persisted record; return True if it marks a past compound."""
        record = load_record(self.state_file)
        restored = self.cycle_state.restore(record)
        if restored:
            logger.info(
                "Restored last compound at %s (duration %.1fs)",
                _fmt(self.cycle_state.last_compound_timestamp),
                self.cycle_state.last_process_duration,
            )
        else:
            logger.info("No previous compound recorded, compounding now")
        self._publish()
        return restored

    def run_cycle(self) -> CycleReport:
        """Run one orchestrator cycle, time it and persist the record."""
        self.phase = SchedulerState.RUNNING
        self._publish()
        started = self._clock()
        report = self.orchestrator.run_cycle()
        duration = max(0.0, self._clock() - started)
        self.last_report = report

        if report.status is CycleStatus.TERMINATED and report.txn_count == 0:
            logger.info("Cycle terminated before any transaction, state not updated")
        else:
            self.cycle_state.last_compound_timestamp = started
            self.cycle_state.last_process_duration = duration
            save_record(self.state_file, self.cycle_state.to_record())
        # Force a fresh estimate before the next run time is trusted
        self.next_run_at = None

        self.phase = SchedulerState.TERMINATING if self.terminate.is_set() else SchedulerState.IDLE
        self._publish()
        self._notify(report)
        return report

    def recompute(self) -> bool:
        """Re-quote gas and re-run the yield model; False only on termination."""
        gas_cost = self.orchestrator.estimate_gas_cost()
        if gas_cost is None:
            return False
        # The next cycle reserves gas against this quote
        self.cycle_state.estimated_gas_cost_per_txn = gas_cost
        gas_per_cycle = self.cycle_state.gas_reserve()
        estimate = retry_until_success(
            "Calculate optimal APY",
            lambda: self.farm.calculate_optimal_apy(gas_per_cycle),
            self.terminate,
            delay_seconds=self.orchestrator.retry.delay_seconds,
        )
        if estimate is None:
            return False
        self.estimate = estimate

        last = self.cycle_state.last_compound_timestamp
        if last is None:
            last = self._clock()
        self.next_run_at = next_run_time(
            last, estimate.next_interval_seconds, self.cycle_state.last_process_duration
        )
        logger.info("Next compound at %s", _fmt(self.next_run_at))
        self._publish()
        return True

    def idle(self) -> bool:
        """Wait for the next run time; False when termination was requested."""
        self.phase = SchedulerState.IDLE
        last_check: Optional[float] = None
        while not self.terminate.is_set():
            now_mono = self._monotonic()
            if last_check is None or now_mono - last_check >= self.recompute_seconds:
                last_check = now_mono
                if not self.recompute():
                    break
            if self.next_run_at is not None and self._clock() >= self.next_run_at:
                return True
            if self.terminate.wait(self.tick_seconds):
                break
        self.phase = SchedulerState.TERMINATING
        self._publish()
        return False

    def run_forever(self) -> None:
        if not self.start():
            self.run_cycle()
        while not self.terminate.is_set():
            if not self.idle():
                break
            self.run_cycle()
        self.phase = SchedulerState.TERMINATING
        self._publish()
        logger.info("Scheduler stopped")

    def run_once(self) -> CycleReport:
        """Restore state, run a single cycle now and return its report."""
        self.start()
        report = self.run_cycle()
        self.phase = SchedulerState.TERMINATING
        self._publish()
        return report

    def _publish(self) -> None:
        if self.board is None:
            return
        state = self.cycle_state
        self.board.publish_scheduler(
            SchedulerSnapshot(
                state=self.phase.value,
                last_compound_at=state.last_compound_timestamp,
                last_duration_seconds=state.last_process_duration,
                next_run_at=self.next_run_at,
                gas_cost_per_txn=state.estimated_gas_cost_per_txn,
                txn_count=state.last_process_txn_count,
                last_status=self.last_report.status.value if self.last_report else None,
            )
        )

    def _notify(self, report: CycleReport) -> None:
        if self.notifier is None:
            return
        self.notifier.send(
            build_cycle_message(self.instance_name, self.farm.settings.farm.farm_type, report)
        )
