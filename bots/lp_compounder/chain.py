#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Chain access for one compounder instance.

Wraps a web3 connection and the instance signer: gas price policy, local
nonce tracking, transaction signing, bounded receipt waits and Transfer
event decoding. All amounts are integer base units.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

from eth_account import Account
from eth_keys.exceptions import ValidationError as KeyValidationError
from web3 import HTTPProvider, Web3
from web3.contract.contract import Contract, ContractFunction
from web3.exceptions import TimeExhausted
from web3.logs import DISCARD
from web3.middleware import ExtraDataToPOAMiddleware

from abi_min import ERC20_ABI
from config import CompounderSettings, GasPricePolicy
from constants import (
    EXIT_WALLET_MISMATCH,
    GAS_LIMIT_MULTIPLIER,
    RECEIPT_POLL_SECONDS,
    WEI_PER_ETHER,
)
from logging_config import get_logger
from tx_errors import (
    FatalConfigError,
    ReceiptFailedError,
    TimeoutError,
    TransactionError,
    classify_error,
)

logger = get_logger(__name__)


def make_web3(rpc_url: str, timeout: float) -> Web3:
    provider = HTTPProvider(rpc_url, request_kwargs={"timeout": timeout})
    w3 = Web3(provider)
    # BSC/Fantom style chains return oversized extraData
    w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
    return w3


def contract(w3: Web3, address: str, abi) -> Contract:
    return w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)


def same_address(left: Optional[str], right: Optional[str]) -> bool:
    if not left or not right:
        return False
    return left.lower() == right.lower()


def format_native(amount_wei: int, symbol: str = "") -> str:
    value = Decimal(amount_wei) / Decimal(WEI_PER_ETHER)
    return f"{value:.10f} {symbol}".rstrip()


@dataclass(frozen=True)
class Transfer:
    token: str
    sender: str
    recipient: str
    value: int


@dataclass
class TxResult:
    label: str
    tx_hash: str
    gas_used: int
    gas_price: int
    transfers: List[Transfer] = field(default_factory=list)

    @property
    def gas_cost(self) -> int:
        return self.gas_used * self.gas_price

    def sent_from(self, address: str, token: Optional[str] = None) -> int:
        return sum(
            t.value for t in self.transfers
            if same_address(t.sender, address) and (token is None or same_address(t.token, token))
        )

    def received_by(self, address: str, token: Optional[str] = None) -> int:
        return sum(
            t.value for t in self.transfers
            if same_address(t.recipient, address) and (token is None or same_address(t.token, token))
        )


class ChainClient:
    """Signer-bound helper shared by every adapter of the instance."""

    def __init__(
        self,
        w3: Web3,
        account,
        *,
        gas_policy: GasPricePolicy,
        rpc_timeout: float,
        gas_symbol: str = "ETH",
    ):
        self.w3 = w3
        self.account = account
        self.address = Web3.to_checksum_address(account.address)
        self.gas_policy = gas_policy
        self.rpc_timeout = rpc_timeout
        self.gas_symbol = gas_symbol
        self._local_nonce: Optional[int] = None
        self._chain_id: Optional[int] = None
        self._transfer_decoder = self.w3.eth.contract(abi=ERC20_ABI).events.Transfer()

    @classmethod
    def from_settings(cls, settings: CompounderSettings) -> "ChainClient":
        """Connect and bind the signer; exits with code 3 on a malformed key or key/address mismatch."""
        try:
            account = Account.from_key(settings.wallet.private_key())
        except (ValueError, KeyValidationError) as exc:
            raise FatalConfigError(
                f"Private key in {settings.wallet.private_key_env} is not a valid key: {type(exc).__name__}",
                exit_code=EXIT_WALLET_MISMATCH,
            ) from exc
        if not same_address(account.address, settings.wallet.address):
            raise FatalConfigError(
                f"Private key does not match wallet {settings.wallet.address}",
                exit_code=EXIT_WALLET_MISMATCH,
            )
        w3 = make_web3(settings.rpc_url, settings.rpc_timeout)
        return cls(
            w3,
            account,
            gas_policy=settings.gas_price_policy(),
            rpc_timeout=settings.rpc_timeout,
            gas_symbol=settings.gas_symbol,
        )

    @property
    def chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = self.w3.eth.chain_id
        return self._chain_id

    def contract(self, address: str, abi) -> Contract:
        return contract(self.w3, address, abi)

    def gas_price(self) -> int:
        return self.gas_policy.resolve(self.w3.eth.gas_price)

    def native_balance(self) -> int:
        return self.w3.eth.get_balance(self.address)

    def block_number(self) -> int:
        return self.w3.eth.block_number

    def deadline(self) -> int:
        return int(time.time()) + int(self.rpc_timeout)

    def _next_nonce(self) -> int:
        network_nonce = self.w3.eth.get_transaction_count(self.address, "pending")
        if self._local_nonce is None or network_nonce > self._local_nonce:
            self._local_nonce = network_nonce
        else:
            self._local_nonce += 1
        return self._local_nonce

    def estimate_gas(self, fn: ContractFunction, value: int = 0) -> int:
        return fn.estimate_gas({"from": self.address, "value": value})

    def send(self, fn: ContractFunction, label: str, *, value: int = 0) -> TxResult:
        """
        Sign, submit and wait for ``fn``; raise unless the receipt succeeded.

        Raises:
            TransactionError: classified RPC failure before submission
            TimeoutError: no receipt within the RPC timeout
            ReceiptFailedError: receipt status 0
        """
        gas_price = self.gas_price()
        try:
            gas_limit = int(Decimal(self.estimate_gas(fn, value)) * GAS_LIMIT_MULTIPLIER)
            tx = fn.build_transaction(
                {
                    "chainId": self.chain_id,
                    "from": self.address,
                    "nonce": self._next_nonce(),
                    "gas": gas_limit,
                    "gasPrice": gas_price,
                    "value": value,
                }
            )
            signed = self.account.sign_transaction(tx)
            tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction).to_0x_hex()
        except TransactionError:
            self._local_nonce = None
            raise
        except Exception as exc:
            self._local_nonce = None
            raise classify_error(str(exc)) from exc

        logger.info("%s sent: %s", label, tx_hash)
        return self.wait(tx_hash, label, gas_price)

    def wait(self, tx_hash: str, label: str, gas_price: int) -> TxResult:
        try:
            receipt = self.w3.eth.wait_for_transaction_receipt(
                tx_hash,
                timeout=self.rpc_timeout,
                poll_latency=RECEIPT_POLL_SECONDS,
            )
        except TimeExhausted as exc:
            self._local_nonce = None
            raise TimeoutError(f"{label}: no receipt after {self.rpc_timeout}s", tx_hash=tx_hash) from exc

        effective_price = receipt.get("effectiveGasPrice") or gas_price
        result = TxResult(
            label=label,
            tx_hash=tx_hash,
            gas_used=receipt["gasUsed"],
            gas_price=effective_price,
            transfers=self.decode_transfers(receipt),
        )
        if receipt["status"] != 1:
            logger.error(
                "Failed: %s (gas: %s, txn ID: %s)",
                label, format_native(result.gas_cost, self.gas_symbol), tx_hash,
            )
            raise ReceiptFailedError(f"{label} reverted on-chain", tx_hash=tx_hash)
        logger.info(
            "Success: %s (gas: %s, txn ID: %s)",
            label, format_native(result.gas_cost, self.gas_symbol), tx_hash,
        )
        return result

    def decode_transfers(self, receipt) -> List[Transfer]:
        events = self._transfer_decoder.process_receipt(receipt, errors=DISCARD)
        return [
            Transfer(
                token=event["address"],
                sender=event["args"]["from"],
                recipient=event["args"]["to"],
                value=int(event["args"]["value"]),
            )
            for event in events
        ]

