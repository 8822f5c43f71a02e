#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""One compounding cycle: harvest -> approve -> gas top-up -> fee -> LP -> deposit.

Steps run strictly in order through a :class:`StepRunner` sharing one retry
budget. Nothing is rolled back: value moved by an earlier step stays where it
is when a later step fails, and the next cycle starts from chain balances.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from chain import format_native
from constants import REWARD_EPSILON
from cycle_state import CycleState
from farms import Farm, RewardCheck
from logging_config import get_logger
from retry_policy import RetryConfig, StepRecord, StepRunner, retry_until_success
from router import PoolRouter
from terminate import TerminateSignal
from token_asset import ERC20Token
from tx_errors import FatalConfigError, PostponeCycle, StepAborted

logger = get_logger(__name__)


class CycleStatus(str, Enum):
    COMPLETED = "completed"
    INCOMPLETE = "incomplete"
    POSTPONED = "postponed"
    TERMINATED = "terminated"


@dataclass
class CycleReport:
    status: CycleStatus = CycleStatus.INCOMPLETE
    started_at: float = field(default_factory=time.time)
    finished_at: Optional[float] = None
    txn_count: int = 0
    gas_cost_per_txn: int = 0
    harvested: int = 0
    gas_top_up_reward: int = 0
    dev_fee: int = 0
    lp_added: int = 0
    deposited: int = 0
    reason: Optional[str] = None
    steps: List[StepRecord] = field(default_factory=list)

    @property
    def duration_seconds(self) -> float:
        return (self.finished_at or time.time()) - self.started_at

    def summary(self) -> str:
        parts = [f"status={self.status.value}", f"txns={self.txn_count}"]
        if self.deposited:
            parts.append(f"deposited={self.deposited}")
        if self.reason:
            parts.append(f"reason={self.reason}")
        return " ".join(parts)


class CompoundingOrchestrator:
    def __init__(
        self,
        farm: Farm,
        router: PoolRouter,
        reward: ERC20Token,
        state: CycleState,
        terminate: TerminateSignal,
        *,
        retry: Optional[RetryConfig] = None,
        dev_fee_address: str,
        dev_fee_percent: Decimal,
        gas_symbol: str = "ETH",
    ):
        self.farm = farm
        self.router = router
        self.reward = reward
        self.state = state
        self.terminate = terminate
        self.retry = retry or RetryConfig()
        self.dev_fee_address = dev_fee_address
        self.dev_fee_permille = int(dev_fee_percent * 10)
        self.gas_symbol = gas_symbol

    def estimate_gas_cost(self) -> Optional[int]:
        """Per-transaction gas cost, retried until it succeeds or termination."""
        return retry_until_success(
            "Estimate gas cost per txn",
            self.router.estimate_gas_cost,
            self.terminate,
            delay_seconds=self.retry.delay_seconds,
        )

    def dev_fee_amount(self, reward_amount: int) -> int:
        return reward_amount * self.dev_fee_permille // 1000

    def _send_dev_fee(self, reward_amount: int) -> int:
        fee = self.dev_fee_amount(reward_amount)
        if fee <= 0:
            return 0
        logger.info("Sending %s%% dev fee: %s", Decimal(self.dev_fee_permille) / 10, self.reward.format(fee))
        return self.reward.transfer(self.dev_fee_address, fee)

    def _checked_reward(self, gas_reserve: int) -> RewardCheck:
        check = self.farm.check_reward(gas_reserve)
        if check.postponed:
            raise PostponeCycle("Gas is greater than reward")
        return check

    def run_cycle(self) -> CycleReport:
        """Run one compound cycle and report how it ended.

        The per-txn gas quote is always carried into the state for the next
        reserve. The transaction count is only carried over when the cycle
        submitted something: a cycle that aborts before its first transaction
        keeps the previous count, so the next reserve never drops to zero.
        """
        report = CycleReport()
        runner = StepRunner(config=self.retry, terminate=self.terminate)
        logger.info("Compound process started")

        gas_cost = self.estimate_gas_cost()
        if gas_cost is None:
            report.status = CycleStatus.TERMINATED
            report.reason = "terminated while estimating gas"
            report.finished_at = time.time()
            return report
        if self.state.estimated_gas_cost_per_txn == 0:
            self.state.estimated_gas_cost_per_txn = gas_cost
        report.gas_cost_per_txn = gas_cost
        gas_reserve = self.state.gas_reserve()

        try:
            runner.run("check reward", lambda: self._checked_reward(gas_reserve), counted=False)

            reward = runner.run("harvest", self.farm.harvest)
            report.harvested = reward

            for spender in self.router.spenders():
                runner.run(
                    f"approve reward for {spender}",
                    lambda s=spender, amount=reward: self.reward.ensure_allowance(s, amount),
                )

            top_up = runner.run("top up gas", lambda: self.router.top_up_gas(gas_reserve))
            report.gas_top_up_reward = top_up.reward_spent
            reward -= top_up.reward_spent
            if reward <= REWARD_EPSILON:
                report.reason = "no reward left after gas top-up"
                return report

            fee = runner.run("dev fee", lambda amount=reward: self._send_dev_fee(amount))
            report.dev_fee = fee
            reward -= fee

            lp_amount = self.router.swap_reward_to_lp(reward, runner)
            report.lp_added = lp_amount

            report.deposited = runner.run("deposit LP", lambda: self.farm.deposit_lp(lp_amount))
            report.status = CycleStatus.COMPLETED
        except PostponeCycle as exc:
            report.status = CycleStatus.POSTPONED
            report.reason = str(exc)
            if runner.txn_count == 0:
                runner.txn_count = self.router.default_txn_count
        except StepAborted as exc:
            report.status = CycleStatus.TERMINATED if exc.terminated else CycleStatus.INCOMPLETE
            report.reason = str(exc)
        except FatalConfigError:
            raise
        except Exception as exc:
            logger.exception("Compound process failed: %s", exc)
            report.status = CycleStatus.INCOMPLETE
            report.reason = f"{type(exc).__name__}: {exc}"
        finally:
            # The next cycle sizes its gas reserve from this one
            self.state.estimated_gas_cost_per_txn = gas_cost
            if runner.txn_count > 0:
                self.state.last_process_txn_count = runner.txn_count
            report.txn_count = runner.txn_count
            report.steps = list(runner.history)
            report.finished_at = time.time()
            self._log_outcome(report)
        return report

    def _log_outcome(self, report: CycleReport) -> None:
        if report.status is CycleStatus.COMPLETED:
            logger.info("Compound process completed")
        elif report.status is CycleStatus.POSTPONED:
            logger.info("Compound process postponed: %s", report.reason)
        elif report.status is CycleStatus.TERMINATED:
            logger.warning("Compound process incomplete due to termination")
        else:
            logger.warning("Compound process incomplete: %s", report.reason)
        logger.info(
            "Txn count %d, gas per txn %s, duration %.1fs",
            report.txn_count,
            format_native(report.gas_cost_per_txn, self.gas_symbol),
            report.duration_seconds,
        )
