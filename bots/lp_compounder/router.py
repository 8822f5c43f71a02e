#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Uniswap v2 style router: quoting, gas top-up and reward-to-LP conversion.

Two strategies, fixed per instance by :func:`build_router`:

* :class:`PoolRouter` swaps half the reward into each pool token and adds
  liquidity (through the TOMB tax office when one is configured).
* :class:`ZapRouter` performs one atomic ``zapInToken`` call.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Tuple

from web3 import Web3

from abi_min import TAX_OFFICE_ABI, UNISWAP_V2_ROUTER_ABI, ZAP_ABI
from chain import ChainClient, TxResult, format_native, same_address
from config import CompounderSettings
from constants import (
    BURN_ADDRESS,
    DEFAULT_TXN_COUNT,
    EXIT_FARM_MISCONFIGURED,
    LIQUIDITY_MIN_PERCENT,
    TAX_FREE_DESIRED_PERCENT,
    TAX_FREE_TXN_COUNT,
    TAX_FREE_TXNS_PER_ATTEMPT,
    TOMB_TOKEN,
    ZAP_TXN_COUNT,
    ZAP_TXNS_PER_ATTEMPT,
)
from logging_config import get_logger
from retry_policy import StepRunner
from token_asset import ERC20Token
from tx_errors import FatalConfigError, TransactionError, TransferEventMissingError

logger = get_logger(__name__)


def quote_path(token_in: str, token_out: str, weth: str) -> List[str]:
    """Route through the wrapped native asset unless an endpoint already is it."""
    if same_address(token_in, weth) or same_address(token_out, weth):
        return [token_in, token_out]
    return [token_in, weth, token_out]


def min_out(amount: int, slippage: Decimal) -> int:
    """``amount x (100 - slippage)%`` with slippage kept to one decimal place."""
    permille = int((Decimal(100) - slippage) * 10)
    return amount * permille // 1000


@dataclass
class TopUpResult:
    reward_spent: int
    native_received: int
    tx_hash: Optional[str] = None


class PoolRouter:
    """Swap-then-add-liquidity strategy."""

    default_txn_count = DEFAULT_TXN_COUNT

    def __init__(
        self,
        chain: ChainClient,
        settings: CompounderSettings,
        reward: ERC20Token,
        token_a: ERC20Token,
        token_b: ERC20Token,
        lp: ERC20Token,
    ):
        pool = settings.liquidity_pool
        self.chain = chain
        self.reward = reward
        self.token_a = token_a
        self.token_b = token_b
        self.lp = lp
        self.weth = Web3.to_checksum_address(settings.weth_contract)
        self.slippage = pool.slippage
        self.process_all_rewards = settings.farm.process_all_rewards
        self.address = Web3.to_checksum_address(pool.router)
        self.contract = chain.contract(self.address, UNISWAP_V2_ROUTER_ABI)

        self.tax_office = None
        if pool.tax_free:
            if not token_b.is_address(TOMB_TOKEN):
                raise FatalConfigError(
                    "Tax free liquidity is only valid for TOMB pairs (token_b must be TOMB)",
                    exit_code=EXIT_FARM_MISCONFIGURED,
                )
            self.tax_office = chain.contract(pool.tax_free, TAX_OFFICE_ABI)
            self.default_txn_count = TAX_FREE_TXN_COUNT

    # --- quoting -----------------------------------------------------------

    def quote(self, amount_in: int, token_in: str, token_out: str) -> int:
        if amount_in <= 0:
            return 0
        if same_address(token_in, token_out):
            return amount_in
        path = quote_path(token_in, token_out, self.weth)
        amounts = self.contract.functions.getAmountsOut(amount_in, path).call()
        return int(amounts[-1])

    def spenders(self) -> List[str]:
        """Contracts that must be allowed to pull the harvested reward."""
        return [self.address]

    def estimate_gas_cost(self) -> int:
        """Gas price x gas of a reference native->reward swap of half the native balance."""
        gas_price = self.chain.gas_price()
        fn = self.contract.functions.swapExactETHForTokens(
            0,
            [self.weth, self.reward.address],
            self.chain.address,
            self.chain.deadline(),
        )
        gas = self.chain.estimate_gas(fn, value=self.chain.native_balance() // 2)
        cost = gas * gas_price
        if cost <= 0:
            raise TransactionError("Estimate gas cost per txn returned zero")
        logger.info("Estimated gas cost per txn: %s", format_native(cost, self.chain.gas_symbol))
        return cost

    # --- gas top-up ----------------------------------------------------------

    def top_up_gas(self, gas_amount: int) -> TopUpResult:
        """
        Swap enough reward for ``gas_amount`` native (minus slippage).

        The reward outflow is read from the wallet's Transfer events and the
        native leg from the wrapped-native burn (or the WETH hop into the
        router); without a native leg the step fails.
        """
        logger.info("Remaining gas: %s", format_native(self.chain.native_balance(), self.chain.gas_symbol))
        if gas_amount <= 0:
            logger.info("No gas reserve to top up")
            return TopUpResult(reward_spent=0, native_received=0)

        reward_to_swap = self.quote(gas_amount, self.weth, self.reward.address)
        fn = self.contract.functions.swapExactTokensForETH(
            reward_to_swap,
            min_out(gas_amount, self.slippage),
            [self.reward.address, self.weth],
            self.chain.address,
            self.chain.deadline(),
        )
        result = self.chain.send(fn, "top up gas")
        spent = result.sent_from(self.chain.address)
        native = result.received_by(BURN_ADDRESS) or result.received_by(self.address, self.weth)
        if native == 0:
            raise TransferEventMissingError("Top up gas: Transfer event not found", tx_hash=result.tx_hash)
        logger.info(
            "Topped up gas of %s with %s",
            format_native(native, self.chain.gas_symbol), self.reward.format(spent),
        )
        return TopUpResult(reward_spent=spent, native_received=native, tx_hash=result.tx_hash)

    # --- reward -> LP ----------------------------------------------------------

    def swap_reward_to_token(self, amount: int, token: ERC20Token) -> int:
        path = quote_path(self.reward.address, token.address, self.weth)
        expected = self.quote(amount, self.reward.address, token.address)
        logger.info("Swapping %s to %s (expected %s)", self.reward.format(amount), token.symbol, token.format(expected))
        fn = self.contract.functions.swapExactTokensForTokens(
            amount,
            min_out(expected, self.slippage),
            path,
            self.chain.address,
            self.chain.deadline(),
        )
        result = self.chain.send(fn, f"swap reward to {token.symbol}")
        received = result.received_by(self.chain.address, token.address)
        if received == 0:
            raise TransferEventMissingError(
                f"Swap reward to {token.symbol}: Transfer event not found", tx_hash=result.tx_hash
            )
        logger.info("Received %s", token.format(received))
        return received

    def rebalance_from_balances(self) -> Tuple[int, int]:
        """Use whole wallet balances, capped so both sides match in value."""
        balance_a = self.token_a.balance_of()
        balance_b = self.token_b.balance_of()
        b_for_all_a = self.quote(balance_a, self.token_a.address, self.token_b.address)
        a_for_all_b = self.quote(balance_b, self.token_b.address, self.token_a.address)
        if a_for_all_b > balance_a:
            return balance_a, b_for_all_a
        return a_for_all_b, balance_b

    def add_liquidity(self, amount_a: int, amount_b: int) -> int:
        logger.info("Adding LP with %s and %s...", self.token_a.format(amount_a), self.token_b.format(amount_b))
        if self.tax_office is not None:
            result = self._add_liquidity_tax_free(amount_a, amount_b)
        else:
            fn = self.contract.functions.addLiquidity(
                self.token_a.address,
                self.token_b.address,
                amount_a,
                amount_b,
                amount_a * LIQUIDITY_MIN_PERCENT // 100,
                amount_b * LIQUIDITY_MIN_PERCENT // 100,
                self.chain.address,
                self.chain.deadline(),
            )
            result = self.chain.send(fn, "add liquidity")
        return self._lp_received(result)

    def _add_liquidity_tax_free(self, amount_a: int, amount_b: int) -> TxResult:
        if not self.token_b.is_address(TOMB_TOKEN):
            raise FatalConfigError("Tax free LP is only valid for TOMB Finance", exit_code=EXIT_FARM_MISCONFIGURED)
        # token_b is TOMB, token_a is the paired token
        fn = self.tax_office.functions.addLiquidityTaxFree(
            self.token_a.address,
            amount_b * TAX_FREE_DESIRED_PERCENT // 100,
            amount_a * TAX_FREE_DESIRED_PERCENT // 100,
            amount_b * LIQUIDITY_MIN_PERCENT // 100,
            amount_a * LIQUIDITY_MIN_PERCENT // 100,
        )
        return self.chain.send(fn, "add liquidity tax free")

    def _lp_received(self, result: TxResult) -> int:
        lp_amount = result.received_by(self.chain.address, self.lp.address)
        if lp_amount == 0:
            raise TransferEventMissingError("Add liquidity: LP Transfer event not found", tx_hash=result.tx_hash)
        logger.info("Added %s", self.lp.format(lp_amount))
        return lp_amount

    def _liquidity_spender(self) -> str:
        return self.tax_office.address if self.tax_office is not None else self.address

    def swap_reward_to_lp(self, reward_amount: int, runner: StepRunner) -> int:
        """Split the reward across both pool tokens and add liquidity."""
        half = reward_amount // 2
        amounts = []
        for token in (self.token_a, self.token_b):
            if token.is_address(self.reward.address):
                amounts.append(half)
                continue
            amounts.append(
                runner.run(f"swap reward to {token.symbol}", lambda t=token: self.swap_reward_to_token(half, t))
            )
        amount_a, amount_b = amounts

        if self.process_all_rewards:
            amount_a, amount_b = runner.run("rebalance pool tokens", self.rebalance_from_balances, counted=False)

        spender = self._liquidity_spender()
        runner.run(f"approve {self.token_a.symbol}", lambda: self.token_a.ensure_allowance(spender, amount_a))
        runner.run(f"approve {self.token_b.symbol}", lambda: self.token_b.ensure_allowance(spender, amount_b))

        txns = TAX_FREE_TXNS_PER_ATTEMPT if self.tax_office is not None else 1
        return runner.run("add liquidity", lambda: self.add_liquidity(amount_a, amount_b), txns_per_attempt=txns)


class ZapRouter(PoolRouter):
    """Atomic swap-and-supply through a zap contract."""

    default_txn_count = ZAP_TXN_COUNT

    def __init__(self, chain: ChainClient, settings: CompounderSettings, *args, **kwargs):
        super().__init__(chain, settings, *args, **kwargs)
        self.zap_address = Web3.to_checksum_address(settings.liquidity_pool.zap)
        self.zap = chain.contract(self.zap_address, ZAP_ABI)
        self.default_txn_count = ZAP_TXN_COUNT

    def spenders(self) -> List[str]:
        return [self.address, self.zap_address]

    def zap_in(self, reward_amount: int) -> int:
        logger.info("Zapping %s into LP...", self.reward.format(reward_amount))
        fn = self.zap.functions.zapInToken(
            self.reward.address,
            reward_amount,
            self.lp.address,
            self.address,
            self.chain.address,
        )
        return self._lp_received(self.chain.send(fn, "zap reward to LP"))

    def swap_reward_to_lp(self, reward_amount: int, runner: StepRunner) -> int:
        return runner.run("zap reward to LP", lambda: self.zap_in(reward_amount), txns_per_attempt=ZAP_TXNS_PER_ATTEMPT)


def build_router(
    chain: ChainClient,
    settings: CompounderSettings,
    reward: ERC20Token,
    token_a: ERC20Token,
    token_b: ERC20Token,
    lp: ERC20Token,
) -> PoolRouter:
    cls = ZapRouter if settings.liquidity_pool.zap else PoolRouter
    return cls(chain, settings, reward, token_a, token_b, lp)

