#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""YEL Finance MasterChef (per-second emission, pool id)."""

from __future__ import annotations

from decimal import Decimal

from web3.contract.contract import ContractFunction

from abi_min import YEL_MASTERCHEF_ABI
from .base import Farm


class YelFarm(Farm):
    farm_type = "WFTM-YEL_YEL"
    abi = YEL_MASTERCHEF_ABI

    def pending_reward(self) -> int:
        return self.contract.functions.pendingYel(self.pool_id, self.chain.address).call()

    def harvest_call(self) -> ContractFunction:
        return self.contract.functions.withdraw(self.pool_id, 0)

    def deposit_call(self, amount: int) -> ContractFunction:
        return self.contract.functions.deposit(self.pool_id, amount)

    def reward_per_second(self) -> Decimal:
        return Decimal(self.contract.functions.yelPerSecond().call())

    def alloc_point(self) -> int:
        # (stakingToken, stakingTokenTotalAmount, accYelPerShare, lastRewardTime, allocPoint)
        info = self.contract.functions.poolInfo(self.pool_id).call()
        return int(info[4])

    def total_alloc_point(self) -> int:
        return self.contract.functions.totalAllocPoint().call()

    def user_info(self) -> int:
        amount, _reward_debt = self.contract.functions.userInfo(self.pool_id, self.chain.address).call()
        return amount
