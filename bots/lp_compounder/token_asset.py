#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""ERC-20 adapter: balance, allowance, approve and transfer."""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from web3 import Web3

from abi_min import ERC20_ABI
from chain import ChainClient, TxResult, same_address
from constants import APPROVE_FACTOR, APPROVE_SKIP_FACTOR
from logging_config import get_logger
from tx_errors import TransferEventMissingError

logger = get_logger(__name__)


class ERC20Token:
    def __init__(self, chain: ChainClient, address: str, decimals: int = 18, symbol: str = ""):
        self.chain = chain
        self.address = Web3.to_checksum_address(address)
        self.decimals = decimals
        self.symbol = symbol or self.address[:8]
        self.contract = chain.contract(self.address, ERC20_ABI)

    def __repr__(self) -> str:
        return f"ERC20Token({self.symbol}, {self.address})"

    def is_address(self, other: Optional[str]) -> bool:
        return same_address(self.address, other)

    def to_units(self, amount: int) -> Decimal:
        return Decimal(amount) / (Decimal(10) ** self.decimals)

    def unit(self) -> int:
        return 10 ** self.decimals

    def format(self, amount: int) -> str:
        return f"{self.to_units(amount):.10f} {self.symbol}"

    def balance_of(self, owner: Optional[str] = None) -> int:
        return self.contract.functions.balanceOf(owner or self.chain.address).call()

    def allowance(self, spender: str, owner: Optional[str] = None) -> int:
        return self.contract.functions.allowance(owner or self.chain.address, spender).call()

    def total_supply(self) -> int:
        return self.contract.functions.totalSupply().call()

    def approve(self, spender: str, amount: int) -> TxResult:
        fn = self.contract.functions.approve(Web3.to_checksum_address(spender), amount)
        return self.chain.send(fn, f"approve {self.symbol} for {spender}")

    def ensure_allowance(self, spender: str, amount: int) -> Optional[TxResult]:
        """Approve ``5 x amount`` unless the allowance already covers ``2 x amount``."""
        current = self.allowance(spender)
        if current > amount * APPROVE_SKIP_FACTOR:
            logger.info("Allowance of %s for %s sufficient, skipping approve", self.symbol, spender)
            return None
        return self.approve(spender, amount * APPROVE_FACTOR)

    def transfer(self, to: str, amount: int) -> int:
        """Transfer and return the amount that left the wallet per Transfer events."""
        label = f"transfer {self.format(amount)} to {to}"
        result = self.chain.send(self.contract.functions.transfer(Web3.to_checksum_address(to), amount), label)
        sent = result.sent_from(self.chain.address, self.address)
        if sent == 0:
            raise TransferEventMissingError(f"{label}: Transfer event not found", tx_hash=result.tx_hash)
        return sent
