#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Input validation helpers for compounder settings."""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from typing import Optional

from web3 import Web3

_INSTANCE_NAME = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,63}$")


def validate_ethereum_address(address: str) -> bool:
    """Return True for a well-formed 20-byte hex address.

    Mixed-case input must carry a valid checksum; all-lower or all-upper
    input is accepted and normalised by :func:`normalize_address`.

    Examples:
        >>> validate_ethereum_address("0x6c021ae822bea943b2e66552bde1d2696a53fbb7")
        True
        >>> validate_ethereum_address("0x1234")
        False
    """
    if not address or not isinstance(address, str):
        return False
    return bool(Web3.is_address(address))


def normalize_address(address: str) -> str:
    return Web3.to_checksum_address(address)


def validate_instance_name(name: str) -> bool:
    """Instance names become file names (state, log, lock, snapshot)."""
    if not name or not isinstance(name, str):
        return False
    return bool(_INSTANCE_NAME.match(name))


def validate_percentage(
    value: float | int | Decimal | str,
    *,
    minimum: Decimal = Decimal("0"),
    maximum: Decimal = Decimal("100"),
) -> bool:
    """Validate a percentage against inclusive bounds."""
    try:
        decimal_value = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        return False
    if not decimal_value.is_finite():
        return False
    return minimum <= decimal_value <= maximum


def validate_non_negative(value: float | int | Decimal | str, max_value: Optional[Decimal] = None) -> bool:
    try:
        decimal_value = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        return False
    if not decimal_value.is_finite() or decimal_value < 0:
        return False
    if max_value is not None and decimal_value > max_value:
        return False
    return True


def validate_decimals(value: object) -> bool:
    """ERC-20 decimals fit in a uint8; realistic tokens stay within 0-36."""
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= 36


def sanitize_string_for_log(text: object, max_length: int = 1000) -> str:
    """Strip control characters and truncate before logging remote payloads."""
    if not isinstance(text, str):
        text = str(text)
    sanitized = "".join(c for c in text if c.isprintable() or c in "\n\t")
    if len(sanitized) > max_length:
        sanitized = sanitized[:max_length] + "...(truncated)"
    return sanitized
