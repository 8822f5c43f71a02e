#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Router quoting, gas top-up and reward-to-LP strategies against a fake chain."""

import sys
from decimal import Decimal
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Add the current directory to the path
sys.path.insert(0, str(Path(__file__).parent))

from config import CompounderSettings
from constants import BURN_ADDRESS, DEFAULT_TXN_COUNT, TAX_FREE_TXN_COUNT, ZAP_TXN_COUNT
from retry_policy import RetryConfig, StepRunner
from router import PoolRouter, ZapRouter, build_router, min_out, quote_path
from terminate import TerminateSignal
from token_asset import ERC20Token
from tx_errors import FatalConfigError, TransactionError, TransferEventMissingError


def _settings(cfg, tmp_path):
    return CompounderSettings.from_dict(cfg, base_dir=tmp_path).normalized()


def _router(chain, settings):
    pool = settings.liquidity_pool
    reward = ERC20Token(chain, settings.farm.reward_contract, 18, "TSHARE")
    token_a = ERC20Token(chain, pool.token_a, 18, "WFTM")
    token_b = ERC20Token(chain, pool.token_b, 18, "TOMB")
    lp = ERC20Token(chain, pool.lp, 18, "LP")
    return build_router(chain, settings, reward, token_a, token_b, lp)


def _runner():
    return StepRunner(config=RetryConfig(max_retries=3, delay_seconds=0), terminate=TerminateSignal())


def _quotes(router, fn):
    """Route getAmountsOut(amount, path) through ``fn(amount, path) -> out``."""
    def get_amounts_out(amount, path):
        call = MagicMock()
        call.call.return_value = [amount, fn(amount, path)]
        return call

    router.contract.functions.getAmountsOut.side_effect = get_amounts_out


def test_quote_path_routes_through_native():
    assert quote_path("A", "B", "W") == ["A", "W", "B"]
    assert quote_path("W", "B", "W") == ["W", "B"]
    assert quote_path("a", "w", "W") == ["a", "w"]


def test_min_out_uses_one_decimal_of_slippage():
    assert min_out(1000, Decimal("1.0")) == 990
    assert min_out(1000, Decimal("0.5")) == 995
    assert min_out(1000, Decimal("0.15")) == 998
    assert min_out(10**18, Decimal("3")) == 97 * 10**16


def test_quote(fake_chain, settings):
    router = _router(fake_chain, settings)
    _quotes(router, lambda amount, path: amount * 3)

    assert router.quote(0, router.reward.address, router.token_b.address) == 0
    assert router.quote(7, router.reward.address, router.reward.address) == 7
    assert router.quote(100, router.reward.address, router.token_b.address) == 300

    args = router.contract.functions.getAmountsOut.call_args[0]
    assert args[1] == [router.reward.address, router.weth, router.token_b.address]
    print("✓ Quote routed via wrapped native")


def test_strategy_selection(addr, fake_chain, sample_config, tmp_path):
    plain = _router(fake_chain, _settings(sample_config, tmp_path))
    assert type(plain) is PoolRouter
    assert plain.default_txn_count == DEFAULT_TXN_COUNT
    assert plain.spenders() == [plain.address]

    sample_config["liquidity_pool"]["tax_free"] = addr.TAX_OFFICE
    tax_free = _router(fake_chain, _settings(sample_config, tmp_path))
    assert tax_free.default_txn_count == TAX_FREE_TXN_COUNT
    assert tax_free._liquidity_spender().lower() == addr.TAX_OFFICE

    sample_config["liquidity_pool"]["tax_free"] = ""
    sample_config["liquidity_pool"]["zap"] = addr.ZAP
    zap = _router(fake_chain, _settings(sample_config, tmp_path))
    assert isinstance(zap, ZapRouter)
    assert zap.default_txn_count == ZAP_TXN_COUNT
    assert [s.lower() for s in zap.spenders()] == [addr.ROUTER, addr.ZAP]


def test_tax_free_requires_tomb_pair(addr, fake_chain, sample_config, tmp_path):
    sample_config["liquidity_pool"]["token_b"] = addr.OTHER
    sample_config["liquidity_pool"]["tax_free"] = addr.TAX_OFFICE
    with pytest.raises(FatalConfigError) as excinfo:
        _router(fake_chain, _settings(sample_config, tmp_path))
    assert excinfo.value.exit_code == 4


def test_estimate_gas_cost(fake_chain, settings):
    router = _router(fake_chain, settings)
    assert router.estimate_gas_cost() == 150_000 * 10**9

    fake_chain.estimate_gas = lambda fn, value=0: 0
    with pytest.raises(TransactionError):
        router.estimate_gas_cost()


def test_top_up_gas_reads_native_leg(addr, fake_chain, settings):
    router = _router(fake_chain, settings)
    _quotes(router, lambda amount, path: 500)
    gas = 10**16
    fake_chain.queue(
        (router.reward.address, fake_chain.address, addr.LP, 500),
        (addr.WFTM, addr.LP, addr.ROUTER, gas),
        (addr.WFTM, addr.ROUTER, BURN_ADDRESS, gas),
    )

    result = router.top_up_gas(gas)
    assert result.reward_spent == 500
    assert result.native_received == gas

    args = router.contract.functions.swapExactTokensForETH.call_args[0]
    assert args[0] == 500
    assert args[1] == gas * 990 // 1000
    assert args[2] == [router.reward.address, router.weth]


def test_top_up_gas_without_native_leg_fails(addr, fake_chain, settings):
    router = _router(fake_chain, settings)
    _quotes(router, lambda amount, path: 500)
    fake_chain.queue((router.reward.address, fake_chain.address, addr.LP, 500))

    with pytest.raises(TransferEventMissingError):
        router.top_up_gas(10**16)


def test_top_up_gas_nothing_to_reserve(fake_chain, settings):
    router = _router(fake_chain, settings)
    result = router.top_up_gas(0)
    assert result.reward_spent == 0
    assert fake_chain.sent == []


def test_swap_reward_to_lp_two_swaps_then_add(addr, fake_chain, settings):
    router = _router(fake_chain, settings)
    _quotes(router, lambda amount, path: 40)
    fake_chain.functions(router.token_a.address).allowance.return_value.call.return_value = 0
    fake_chain.functions(router.token_b.address).allowance.return_value.call.return_value = 10**30

    wallet = fake_chain.address
    fake_chain.queue((router.token_a.address, addr.LP, wallet, 40))
    fake_chain.queue((router.token_b.address, addr.LP, wallet, 40))
    fake_chain.queue()  # approve token A
    fake_chain.queue((router.lp.address, BURN_ADDRESS, wallet, 77))

    runner = _runner()
    assert router.swap_reward_to_lp(1000, runner) == 77

    assert fake_chain.sent[0] == "swap reward to WFTM"
    assert fake_chain.sent[1] == "swap reward to TOMB"
    assert fake_chain.sent[2].startswith("approve WFTM")
    assert fake_chain.sent[3] == "add liquidity"

    swap_args = router.contract.functions.swapExactTokensForTokens.call_args_list[0][0]
    assert swap_args[0] == 500
    assert swap_args[1] == 39

    add_args = router.contract.functions.addLiquidity.call_args[0]
    assert add_args[2:6] == (40, 40, 20, 20)
    # two swaps, two approvals (one skipped on-chain), add liquidity
    assert runner.txn_count == 5
    print(f"✓ Reward converted to LP with {runner.txn_count} steps")


def test_reward_in_pair_is_not_swapped(addr, fake_chain, sample_config, tmp_path):
    sample_config["farm"]["reward_contract"] = addr.TOMB
    settings = _settings(sample_config, tmp_path)
    router = _router(fake_chain, settings)
    _quotes(router, lambda amount, path: 40)
    fake_chain.functions(router.token_a.address).allowance.return_value.call.return_value = 10**30
    fake_chain.functions(router.token_b.address).allowance.return_value.call.return_value = 10**30

    wallet = fake_chain.address
    fake_chain.queue((router.token_a.address, addr.LP, wallet, 40))
    fake_chain.queue((router.lp.address, BURN_ADDRESS, wallet, 11))

    assert router.swap_reward_to_lp(1000, _runner()) == 11
    assert fake_chain.sent == ["swap reward to WFTM", "add liquidity"]
    add_args = router.contract.functions.addLiquidity.call_args[0]
    assert add_args[2:4] == (40, 500)


def test_tax_free_add_liquidity_argument_order(addr, fake_chain, sample_config, tmp_path):
    sample_config["liquidity_pool"]["tax_free"] = addr.TAX_OFFICE
    router = _router(fake_chain, _settings(sample_config, tmp_path))
    fake_chain.queue((router.lp.address, BURN_ADDRESS, fake_chain.address, 5))

    assert router.add_liquidity(1000, 2000) == 5
    args = fake_chain.functions(addr.TAX_OFFICE).addLiquidityTaxFree.call_args[0]
    # token, TOMB desired, token desired, TOMB min, token min
    assert args[0] == router.token_a.address
    assert args[1:] == (1900, 950, 1000, 500)


def test_tax_free_swap_reward_to_lp_counts_two_for_add(addr, fake_chain, sample_config, tmp_path):
    sample_config["liquidity_pool"]["tax_free"] = addr.TAX_OFFICE
    router = _router(fake_chain, _settings(sample_config, tmp_path))
    _quotes(router, lambda amount, path: 40)
    fake_chain.functions(router.token_a.address).allowance.return_value.call.return_value = 10**30
    fake_chain.functions(router.token_b.address).allowance.return_value.call.return_value = 10**30

    wallet = fake_chain.address
    fake_chain.queue((router.token_a.address, addr.LP, wallet, 40))
    fake_chain.queue((router.token_b.address, addr.LP, wallet, 40))
    fake_chain.queue((router.lp.address, BURN_ADDRESS, wallet, 13))

    runner = _runner()
    assert router.swap_reward_to_lp(1000, runner) == 13
    assert fake_chain.sent[-1] == "add liquidity tax free"
    # two swaps, two approvals, tax-free add liquidity counted as two
    assert runner.txn_count == 6


def test_zap_counts_three_transactions(addr, fake_chain, sample_config, tmp_path):
    sample_config["liquidity_pool"]["zap"] = addr.ZAP
    router = _router(fake_chain, _settings(sample_config, tmp_path))
    fake_chain.queue((router.lp.address, BURN_ADDRESS, fake_chain.address, 99))

    runner = _runner()
    assert router.swap_reward_to_lp(1000, runner) == 99
    assert runner.txn_count == 3

    args = fake_chain.functions(addr.ZAP).zapInToken.call_args[0]
    assert args == (router.reward.address, 1000, router.lp.address, router.address, fake_chain.address)


def test_rebalance_caps_to_matching_value(fake_chain, settings):
    router = _router(fake_chain, settings)
    a, b = router.token_a.address, router.token_b.address
    fake_chain.functions(a).balanceOf.return_value.call.return_value = 100
    fake_chain.functions(b).balanceOf.return_value.call.return_value = 100

    _quotes(router, lambda amount, path: amount * 2 if path[0] == a else amount // 2)
    assert router.rebalance_from_balances() == (50, 100)

    _quotes(router, lambda amount, path: amount // 2 if path[0] == a else amount * 2)
    assert router.rebalance_from_balances() == (100, 50)


def test_verify_pair(addr, fake_chain):
    from factory import verify_pair

    get_pair = fake_chain.functions(addr.FACTORY).getPair
    get_pair.return_value.call.return_value = addr.LP.upper().replace("0X", "0x")
    verify_pair(fake_chain, addr.FACTORY, addr.WFTM, addr.TOMB, addr.LP)

    get_pair.return_value.call.return_value = addr.OTHER
    with pytest.raises(FatalConfigError) as excinfo:
        verify_pair(fake_chain, addr.FACTORY, addr.WFTM, addr.TOMB, addr.LP)
    assert excinfo.value.exit_code == 4

    get_pair.return_value.call.side_effect = ConnectionError("rpc down")
    with pytest.raises(FatalConfigError) as excinfo:
        verify_pair(fake_chain, addr.FACTORY, addr.WFTM, addr.TOMB, addr.LP)
    assert excinfo.value.exit_code == 5
