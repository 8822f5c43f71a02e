#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""TOMB Finance TShareRewardPool (per-second emission, pool id)."""

from __future__ import annotations

from decimal import Decimal

from web3.contract.contract import ContractFunction

from abi_min import TOMB_REWARD_POOL_ABI
from .base import Farm


class TombFarm(Farm):
    farm_type = "WFTM-TOMB_TSHARE"
    abi = TOMB_REWARD_POOL_ABI

    def pending_reward(self) -> int:
        return self.contract.functions.pendingShare(self.pool_id, self.chain.address).call()

    def harvest_call(self) -> ContractFunction:
        return self.contract.functions.withdraw(self.pool_id, 0)

    def deposit_call(self, amount: int) -> ContractFunction:
        return self.contract.functions.deposit(self.pool_id, amount)

    def reward_per_second(self) -> Decimal:
        return Decimal(self.contract.functions.tSharePerSecond().call())

    def alloc_point(self) -> int:
        info = self.contract.functions.poolInfo(self.pool_id).call()
        return int(info[1])

    def total_alloc_point(self) -> int:
        return self.contract.functions.totalAllocPoint().call()

    def user_info(self) -> int:
        amount, _reward_debt = self.contract.functions.userInfo(self.pool_id, self.chain.address).call()
        return amount
