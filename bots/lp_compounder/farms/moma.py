#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""MOMA single-pool farm (per-block emission, no pool id)."""

from __future__ import annotations

from decimal import Decimal

from web3.contract.contract import ContractFunction

from abi_min import MOMA_FARM_ABI
from constants import BLOCK_TIME_SECONDS
from .base import Farm

# getMultiplier returns a 1e12 fixed-point factor
MULTIPLIER_SCALE = Decimal(10) ** 12


class MomaFarm(Farm):
    farm_type = "WBNB-MOMA_MOMA"
    abi = MOMA_FARM_ABI

    def pending_reward(self) -> int:
        return self.contract.functions.pendingReward(self.chain.address).call()

    def harvest_call(self) -> ContractFunction:
        return self.contract.functions.withdraw(0)

    def deposit_call(self, amount: int) -> ContractFunction:
        return self.contract.functions.deposit(amount)

    def reward_per_second(self) -> Decimal:
        block = self.chain.block_number()
        multiplier = self.contract.functions.getMultiplier(block - 1, block).call()
        per_block = self.contract.functions.rewardPerBlock().call()
        return Decimal(per_block) / BLOCK_TIME_SECONDS * Decimal(multiplier) / MULTIPLIER_SCALE

    def alloc_point(self) -> int:
        return 1

    def total_alloc_point(self) -> int:
        return 1

    def user_info(self) -> int:
        amount, _reward_debt = self.contract.functions.userInfo(self.chain.address).call()
        return amount
