#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Error taxonomy for compounding steps and revert decoding.

Three families matter to the pipeline:

* ``TransactionError`` and subclasses: retryable remote failures.
* ``PostponeCycle``: not a failure, the cycle stops and waits for a later run.
* ``FatalConfigError``: the instance is misconfigured, the process exits with
  ``exit_code`` after flushing logs.
"""

from __future__ import annotations

from typing import Optional

from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError

from constants import EXIT_FARM_MISCONFIGURED


class TransactionError(Exception):
    """Base class for transaction-related errors."""

    def __init__(self, message: str, tx_hash: Optional[str] = None):
        super().__init__(message)
        self.tx_hash = tx_hash


class NonceError(TransactionError):
    """Nonce-related errors (nonce too low, replacement underpriced, etc.)."""


class GasError(TransactionError):
    """Gas-related errors (insufficient funds, gas limit exceeded, etc.)."""


class RevertError(TransactionError):
    """Transaction reverted with a reason."""

    def __init__(self, message: str, reason: Optional[str] = None, tx_hash: Optional[str] = None):
        super().__init__(message, tx_hash)
        self.reason = reason


class SlippageError(RevertError):
    """Router output fell below the requested minimum."""


class InsufficientLiquidityError(RevertError):
    """Pair reserves cannot satisfy the swap or mint."""


class TimeoutError(TransactionError):
    """Transaction confirmation timeout."""


class ReceiptFailedError(TransactionError):
    """Transaction was mined with status 0."""


class TransferEventMissingError(TransactionError):
    """Receipt succeeded but the expected Transfer event was not emitted."""


class StepAborted(Exception):
    """A step ran out of retries or the terminate signal was raised."""

    def __init__(self, step: str, *, terminated: bool, attempts: int):
        cause = "termination" if terminated else f"{attempts} failed attempts"
        super().__init__(f"{step} aborted after {cause}")
        self.step = step
        self.terminated = terminated
        self.attempts = attempts


class PostponeCycle(Exception):
    """Current conditions make the step uneconomical or impossible."""


class YieldCalculationError(Exception):
    """Yield inputs are unusable (APR <= 0, no deposit, gas dominates)."""


class FatalConfigError(Exception):
    """Misconfiguration that must stop the process."""

    def __init__(self, message: str, exit_code: int = EXIT_FARM_MISCONFIGURED):
        super().__init__(message)
        self.exit_code = exit_code


_PANIC_REASONS = {
    0x00: "Generic panic",
    0x01: "Assertion failed",
    0x11: "Arithmetic overflow/underflow",
    0x12: "Division by zero",
    0x21: "Invalid enum value",
    0x22: "Invalid storage access",
    0x31: "Pop from empty array",
    0x32: "Array index out of bounds",
    0x41: "Out of memory",
    0x51: "Invalid internal function",
}


def decode_revert_reason(error_data: Optional[str]) -> Optional[str]:
    """
    Decode ``Error(string)`` and ``Panic(uint256)`` payloads.

    Args:
        error_data: Hex-encoded revert data (with or without 0x prefix)

    Returns:
        Human readable reason or None when the payload is not recognised
    """
    if not error_data or not isinstance(error_data, str):
        return None

    data = error_data[2:] if error_data.startswith("0x") else error_data
    selector, payload = data[:8], data[8:]
    try:
        raw = bytes.fromhex(payload)
        if selector == "08c379a0":
            (reason,) = abi_decode(["string"], raw)
            return reason
        if selector == "4e487b71":
            (code,) = abi_decode(["uint256"], raw)
            return _PANIC_REASONS.get(code, f"Panic code: 0x{code:02x}")
    except (ValueError, DecodingError):
        return None
    return None


def classify_error(error_message: str, error_data: Optional[str] = None) -> TransactionError:
    """
    Map a raw RPC/web3 error message onto the transaction error hierarchy.

    Args:
        error_message: Error message from exception
        error_data: Optional revert data for reason decoding

    Returns:
        Classified TransactionError subclass
    """
    message_lower = error_message.lower()

    if any(phrase in message_lower for phrase in (
        "nonce too low",
        "nonce has already been used",
        "replacement transaction underpriced",
    )):
        return NonceError(error_message)

    if any(phrase in message_lower for phrase in (
        "insufficient funds",
        "gas required exceeds allowance",
        "intrinsic gas too low",
        "transaction underpriced",
    )):
        return GasError(error_message)

    reason = decode_revert_reason(error_data) if error_data else None

    if any(phrase in message_lower for phrase in (
        "insufficient_output_amount",
        "insufficient output",
        "insufficient_a_amount",
        "insufficient_b_amount",
        "slippage",
    )):
        return SlippageError(error_message, reason=reason)

    if any(phrase in message_lower for phrase in (
        "insufficient_liquidity",
        "insufficient liquidity",
    )):
        return InsufficientLiquidityError(error_message, reason=reason)

    if "revert" in message_lower:
        return RevertError(error_message, reason=reason)

    if "timeout" in message_lower or "timed out" in message_lower:
        return TimeoutError(error_message)

    return TransactionError(error_message)
