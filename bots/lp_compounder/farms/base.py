#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Farm interface plus the harvest/deposit/valuation routines shared by all variants."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Tuple, final

from web3 import Web3
from web3.contract.contract import ContractFunction

from chain import ChainClient
from config import CompounderSettings
from constants import REWARD_EPSILON, WEI_PER_ETHER
from logging_config import get_logger
from router import PoolRouter
from snapshot import Position, SnapshotBoard, TokenValue
from token_asset import ERC20Token
from tx_errors import PostponeCycle, TransactionError, TransferEventMissingError
from yield_model import (
    YieldEstimate,
    compute_apr,
    offset_value_per_lp,
    optimal_compounding,
    underlying_split,
    value_per_lp,
)

logger = get_logger(__name__)


def parse_farm_symbols(farm_type: str) -> Tuple[str, str, str]:
    """``"WFTM-TOMB_TSHARE"`` -> ``("WFTM", "TOMB", "TSHARE")``."""
    pair, _, reward = farm_type.partition("_")
    token_a, _, token_b = pair.partition("-")
    return token_a, token_b, reward


@dataclass(frozen=True)
class RewardCheck:
    pending: int
    reward_in_native: int
    gas_reserve: int

    @property
    def postponed(self) -> bool:
        return self.pending == 0 or self.reward_in_native - self.gas_reserve <= REWARD_EPSILON


class Farm(ABC):
    """One staking contract; subclasses only describe its ABI shape."""

    farm_type: str = ""
    abi: list = []

    def __init__(
        self,
        chain: ChainClient,
        settings: CompounderSettings,
        router: PoolRouter,
        board: Optional[SnapshotBoard] = None,
    ):
        self.chain = chain
        self.settings = settings
        self.router = router
        self.board = board
        self.pool_id = settings.farm.pool_id
        self.process_all_rewards = settings.farm.process_all_rewards
        self.address = Web3.to_checksum_address(settings.farm.farm_contract)
        self.contract = chain.contract(self.address, self.abi)
        self.reward: ERC20Token = router.reward
        self.token_a: ERC20Token = router.token_a
        self.token_b: ERC20Token = router.token_b
        self.lp: ERC20Token = router.lp

    # --- variant surface -------------------------------------------------

    @abstractmethod
    def pending_reward(self) -> int:
        """Reward accrued for the wallet, base units."""

    @abstractmethod
    def harvest_call(self) -> ContractFunction:
        """Contract call that pays out pending reward without withdrawing LP."""

    @abstractmethod
    def deposit_call(self, amount: int) -> ContractFunction:
        """Contract call that stakes ``amount`` LP."""

    @abstractmethod
    def reward_per_second(self) -> Decimal:
        """Farm-wide emission, reward base units per second."""

    @abstractmethod
    def alloc_point(self) -> int:
        """Weight of this pool."""

    @abstractmethod
    def total_alloc_point(self) -> int:
        """Sum of all pool weights."""

    @abstractmethod
    def user_info(self) -> int:
        """LP amount the wallet has staked, base units."""

    # --- shared pipeline steps ---------------------------------------------

    @final
    def check_reward(self, gas_reserve: int) -> RewardCheck:
        """Compare pending reward, valued in native units, with the gas reserve."""
        pending = self.pending_reward()
        reward_in_native = self.router.quote(pending, self.reward.address, self.router.weth)
        check = RewardCheck(pending=pending, reward_in_native=reward_in_native, gas_reserve=gas_reserve)
        logger.info(
            "Pending reward %s (%s native), gas reserve %s",
            self.reward.format(pending), _native_units(reward_in_native), _native_units(gas_reserve),
        )
        if check.postponed:
            logger.info("Gas is greater than reward, postponing...")
        return check

    @final
    def harvest(self) -> int:
        """Harvest and return the realized reward amount from Transfer events."""
        result = self.chain.send(self.harvest_call(), "harvest")
        harvested = result.received_by(self.chain.address, self.reward.address)
        balance = self.reward.balance_of()
        if harvested == 0:
            raise TransferEventMissingError("Harvest: reward Transfer event not found", tx_hash=result.tx_hash)
        if harvested > balance:
            raise TransactionError(
                f"Harvest: event amount {harvested} exceeds wallet balance {balance}",
                tx_hash=result.tx_hash,
            )
        if self.process_all_rewards:
            harvested = balance
        logger.info("Harvested %s", self.reward.format(harvested))
        return harvested

    @final
    def deposit_lp(self, amount: int) -> int:
        """Stake LP; postpones when there is nothing to deposit."""
        if self.process_all_rewards:
            amount = self.lp.balance_of()
        if amount <= 0:
            raise PostponeCycle("No LP to deposit")
        self.lp.ensure_allowance(self.address, amount)
        result = self.chain.send(self.deposit_call(amount), f"deposit {self.lp.format(amount)}")
        deposited = result.sent_from(self.chain.address, self.lp.address)
        if deposited == 0:
            raise TransferEventMissingError("Deposit: LP Transfer event not found", tx_hash=result.tx_hash)
        logger.info("Deposited %s into farm", self.lp.format(deposited))
        return deposited

    # --- valuation ---------------------------------------------------------

    def _native_price(self, token: ERC20Token) -> Decimal:
        if token.is_address(self.router.weth):
            return Decimal(1)
        out = self.router.quote(token.unit(), token.address, self.router.weth)
        return Decimal(out) / Decimal(WEI_PER_ETHER)

    def _fiat_price(self) -> Decimal:
        usd = self.settings.usd_contract
        if not usd:
            return Decimal(0)
        out = self.router.quote(WEI_PER_ETHER, self.router.weth, usd)
        return Decimal(out) / (Decimal(10) ** self.settings.usd_decimals)

    @final
    def calculate_optimal_apy(self, gas_cost_per_cycle: int) -> YieldEstimate:
        """
        Value the position from chain reads and search the optimal compounding rate.

        Publishes a fresh :class:`Position` and the resulting estimate on the
        snapshot board when one is attached.

        Raises:
            YieldCalculationError: APR <= 0, nothing deposited or gas dominates
        """
        native = self.settings.gas_symbol
        symbol_a, symbol_b, symbol_reward = parse_farm_symbols(self.settings.farm.farm_type)
        pool = self.settings.liquidity_pool

        fiat = self._fiat_price()
        price_reward = self._native_price(self.reward)
        price_a = self._native_price(self.token_a)
        price_b = self._native_price(self.token_b)

        reserve_a = self.token_a.to_units(self.token_a.balance_of(self.lp.address))
        reserve_b = self.token_b.to_units(self.token_b.balance_of(self.lp.address))
        supply = self.lp.to_units(self.lp.total_supply())

        lp_value = value_per_lp(reserve_a, price_a, reserve_b, price_b, supply)
        lp_offset_value = offset_value_per_lp(
            reserve_a, price_a, pool.token_a_offset,
            reserve_b, price_b, pool.token_b_offset,
            supply,
        )

        deposit_lp = self.lp.to_units(self.user_info())
        deposit_value = deposit_lp * lp_value
        under_a, under_b = underlying_split(deposit_lp, reserve_a, reserve_b, supply)
        farm_lp_value = self.lp.to_units(self.lp.balance_of(self.address)) * lp_value

        reward_per_second = self.reward_per_second() / Decimal(self.reward.unit())
        apr = compute_apr(
            Decimal(self.alloc_point()),
            Decimal(self.total_alloc_point()),
            reward_per_second,
            farm_lp_value,
            price_reward,
            lp_value,
            lp_offset_value,
        )

        pending = self.reward.to_units(self.pending_reward())
        position = Position(
            deposit=TokenValue.of(deposit_lp, f"{symbol_a}-{symbol_b} LP", lp_value, native, fiat),
            underlying_a=TokenValue.of(under_a, symbol_a, price_a, native, fiat),
            underlying_b=TokenValue.of(under_b, symbol_b, price_b, native, fiat),
            pending_reward=TokenValue.of(pending, symbol_reward, price_reward, native, fiat),
            reward_unit=TokenValue.of(Decimal(1), symbol_reward, price_reward, native, fiat),
            token_a_unit=TokenValue.of(Decimal(1), symbol_a, price_a, native, fiat),
            token_b_unit=TokenValue.of(Decimal(1), symbol_b, price_b, native, fiat),
        )
        if self.board is not None:
            self.board.publish_position(position)

        gas_native = Decimal(gas_cost_per_cycle) / Decimal(WEI_PER_ETHER)
        estimate = optimal_compounding(apr, gas_native, deposit_value)
        if self.board is not None:
            self.board.publish_estimate(estimate)
        logger.info(
            "APR %.4f%%, optimal APY %.4f%% at %d compounds/year (every %ds), deposit %s %s",
            apr, estimate.optimal_apy, estimate.optimal_compounds_per_year,
            estimate.next_interval_seconds, f"{deposit_value:.6f}", native,
        )
        return estimate


def _native_units(amount_wei: int) -> str:
    return f"{Decimal(amount_wei) / Decimal(WEI_PER_ETHER):.10f}"
