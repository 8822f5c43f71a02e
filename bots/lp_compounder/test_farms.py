#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Farm registry, shared harvest/deposit routines and valuation."""

import sys
from decimal import Decimal
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from web3 import Web3

# Add the current directory to the path
sys.path.insert(0, str(Path(__file__).parent))

from farms import FARM_TYPES, MomaFarm, RewardCheck, TombFarm, YelFarm, build_farm, get_farm_class, parse_farm_symbols
from snapshot import SnapshotBoard
from token_asset import ERC20Token
from tx_errors import FatalConfigError, PostponeCycle, TransactionError, TransferEventMissingError

E18 = 10**18


def _balances(chain, token, table):
    """Make ``token.balanceOf(owner)`` answer from ``{owner_lower: amount}``."""
    def balance_of(owner):
        call = MagicMock()
        call.call.return_value = table.get(owner.lower(), 0)
        return call

    chain.functions(token).balanceOf.side_effect = balance_of


def _router(chain, settings):
    pool = settings.liquidity_pool
    router = MagicMock()
    router.weth = Web3.to_checksum_address(settings.weth_contract)
    router.reward = ERC20Token(chain, settings.farm.reward_contract, 18, "TSHARE")
    router.token_a = ERC20Token(chain, pool.token_a, 18, "WFTM")
    router.token_b = ERC20Token(chain, pool.token_b, 18, "TOMB")
    router.lp = ERC20Token(chain, pool.lp, 18, "LP")

    def quote(amount, token_in, token_out):
        if router.reward.is_address(token_in):
            return amount // 2
        if router.token_b.is_address(token_in):
            return amount * 2
        return amount

    router.quote.side_effect = quote
    return router


@pytest.fixture
def tomb_farm(fake_chain, settings):
    return TombFarm(fake_chain, settings, _router(fake_chain, settings))


def test_registry_covers_all_farm_types():
    assert set(FARM_TYPES) == {"WFTM-YEL_YEL", "WFTM-TOMB_TSHARE", "WBNB-MOMA_MOMA"}
    assert get_farm_class("WFTM-YEL_YEL") is YelFarm
    assert get_farm_class("WFTM-TOMB_TSHARE") is TombFarm
    assert get_farm_class("WBNB-MOMA_MOMA") is MomaFarm


def test_unknown_farm_type_is_fatal():
    with pytest.raises(FatalConfigError) as excinfo:
        get_farm_class("WETH-FOO_BAR")
    assert excinfo.value.exit_code == 4


def test_build_farm_dispatches_on_settings(fake_chain, sample_config, tmp_path):
    from config import CompounderSettings

    sample_config["farm"]["farm_type"] = "WFTM-YEL_YEL"
    settings = CompounderSettings.from_dict(sample_config, base_dir=tmp_path).normalized()
    farm = build_farm(fake_chain, settings, _router(fake_chain, settings))
    assert isinstance(farm, YelFarm)


def test_parse_farm_symbols():
    assert parse_farm_symbols("WFTM-TOMB_TSHARE") == ("WFTM", "TOMB", "TSHARE")
    assert parse_farm_symbols("WBNB-MOMA_MOMA") == ("WBNB", "MOMA", "MOMA")


def test_reward_check_postpone_rule():
    assert RewardCheck(pending=0, reward_in_native=10, gas_reserve=0).postponed
    assert RewardCheck(pending=5, reward_in_native=100, gas_reserve=99).postponed
    assert not RewardCheck(pending=5, reward_in_native=100, gas_reserve=98).postponed


def test_check_reward_quotes_pending_into_native(tomb_farm, fake_chain, addr):
    fake_chain.functions(addr.FARM).pendingShare.return_value.call.return_value = 4 * E18
    check = tomb_farm.check_reward(gas_reserve=E18)

    assert check.pending == 4 * E18
    assert check.reward_in_native == 2 * E18
    assert not check.postponed

    assert tomb_farm.check_reward(gas_reserve=3 * E18).postponed


def test_harvest_uses_transfer_events(tomb_farm, fake_chain, addr):
    _balances(fake_chain, addr.TSHARE, {fake_chain.address.lower(): 1000})
    fake_chain.queue((addr.TSHARE, addr.FARM, fake_chain.address, 300))

    assert tomb_farm.harvest() == 300
    fake_chain.functions(addr.FARM).withdraw.assert_called_with(0, 0)
    print("✓ Harvest realized from Transfer events")


def test_harvest_process_all_uses_balance(tomb_farm, fake_chain, addr):
    tomb_farm.process_all_rewards = True
    _balances(fake_chain, addr.TSHARE, {fake_chain.address.lower(): 1000})
    fake_chain.queue((addr.TSHARE, addr.FARM, fake_chain.address, 300))

    assert tomb_farm.harvest() == 1000


def test_harvest_failures(tomb_farm, fake_chain, addr):
    _balances(fake_chain, addr.TSHARE, {fake_chain.address.lower(): 100})

    fake_chain.queue()
    with pytest.raises(TransferEventMissingError):
        tomb_farm.harvest()

    fake_chain.queue((addr.TSHARE, addr.FARM, fake_chain.address, 300))
    with pytest.raises(TransactionError):
        tomb_farm.harvest()


def test_deposit_lp(tomb_farm, fake_chain, addr):
    fake_chain.functions(addr.LP).allowance.return_value.call.return_value = 10**30
    fake_chain.queue((addr.LP, fake_chain.address, addr.FARM, 50))

    assert tomb_farm.deposit_lp(50) == 50
    fake_chain.functions(addr.FARM).deposit.assert_called_with(0, 50)


def test_deposit_nothing_postpones(tomb_farm, fake_chain):
    with pytest.raises(PostponeCycle):
        tomb_farm.deposit_lp(0)
    assert fake_chain.sent == []


def test_deposit_process_all_uses_lp_balance(tomb_farm, fake_chain, addr):
    tomb_farm.process_all_rewards = True
    _balances(fake_chain, addr.LP, {fake_chain.address.lower(): 70})
    fake_chain.functions(addr.LP).allowance.return_value.call.return_value = 10**30
    fake_chain.queue((addr.LP, fake_chain.address, addr.FARM, 70))

    assert tomb_farm.deposit_lp(5) == 70


def test_moma_per_block_emission(fake_chain, settings, addr):
    farm = MomaFarm(fake_chain, settings, _router(fake_chain, settings))
    functions = fake_chain.functions(addr.FARM)
    functions.getMultiplier.return_value.call.return_value = 2 * 10**12
    functions.rewardPerBlock.return_value.call.return_value = 3 * E18

    assert farm.reward_per_second() == Decimal(2 * E18)
    functions.getMultiplier.assert_called_with(999, 1000)
    assert farm.alloc_point() == farm.total_alloc_point() == 1


def test_yel_alloc_point_index(fake_chain, settings, addr):
    farm = YelFarm(fake_chain, settings, _router(fake_chain, settings))
    fake_chain.functions(addr.FARM).poolInfo.return_value.call.return_value = (addr.LP, 0, 0, 0, 40)
    assert farm.alloc_point() == 40


def test_calculate_optimal_apy(fake_chain, settings, addr):
    board = SnapshotBoard("test")
    farm = TombFarm(fake_chain, settings, _router(fake_chain, settings), board)
    functions = fake_chain.functions(addr.FARM)
    functions.tSharePerSecond.return_value.call.return_value = 10**13
    functions.poolInfo.return_value.call.return_value = (addr.LP, 1, 0, 0, True, 0)
    functions.totalAllocPoint.return_value.call.return_value = 2
    functions.userInfo.return_value.call.return_value = (10 * E18, 0)
    functions.pendingShare.return_value.call.return_value = 2 * E18

    _balances(fake_chain, addr.WFTM, {addr.LP: 1000 * E18})
    _balances(fake_chain, addr.TOMB, {addr.LP: 500 * E18})
    _balances(fake_chain, addr.LP, {addr.FARM: 50 * E18})
    fake_chain.functions(addr.LP).totalSupply.return_value.call.return_value = 100 * E18

    estimate = farm.calculate_optimal_apy(10**17)

    assert estimate.apr == Decimal("7.884")
    assert estimate.optimal_compounds_per_year == 3
    assert board.estimate == estimate

    position = board.position
    assert position.deposit.chain_value.value == Decimal(200)
    assert position.underlying_a.value.value == Decimal(100)
    assert position.underlying_b.value.value == Decimal(50)
    assert position.pending_reward.chain_value.value == Decimal(1)
    # no fiat contract configured
    assert position.deposit.fiat_value.value == 0
    print(f"✓ APR {estimate.apr}% -> {estimate.optimal_compounds_per_year} compounds/year")
