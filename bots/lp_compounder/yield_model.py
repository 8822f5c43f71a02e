#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Yield model: APR from farm emissions and the optimal compounding rate.

Pure Decimal math, no chain access. Amounts passed in are already in token
units (base units divided by 10**decimals); prices are in chain-native units.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, localcontext
from typing import Tuple

from constants import DECIMAL_PRECISION, MAX_COMPOUNDS_PER_YEAR, SECONDS_PER_YEAR
from tx_errors import YieldCalculationError

ZERO = Decimal(0)
ONE = Decimal(1)
HUNDRED = Decimal(100)


@dataclass(frozen=True)
class YieldEstimate:
    apr: Decimal
    optimal_apy: Decimal
    optimal_compounds_per_year: int
    next_interval_seconds: int


def compound_apy(apr: Decimal, n: int) -> Decimal:
    """APY in percent for ``apr`` (percent) compounded ``n`` times a year."""
    if n <= 0:
        return ZERO
    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        return HUNDRED * ((ONE + apr / (HUNDRED * n)) ** n - ONE)


def net_apy(apr: Decimal, n: int, gas_cost_per_cycle: Decimal, deposit_value: Decimal) -> Decimal:
    """Compounded APY minus ``n`` cycles of gas as a percentage of the deposit."""
    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        return compound_apy(apr, n) - HUNDRED * n * gas_cost_per_cycle / deposit_value


def optimal_compounding(
    apr: Decimal,
    gas_cost_per_cycle: Decimal,
    deposit_value: Decimal,
    *,
    max_compounds: int = MAX_COMPOUNDS_PER_YEAR,
) -> YieldEstimate:
    """
    Smallest ``n`` after which net APY stops improving.

    Net APY is concave in ``n`` once gas is subtracted, so the first
    non-improving step marks the global maximum. ``max_compounds`` bounds
    the search when gas is negligible.

    Raises:
        YieldCalculationError: APR or deposit not positive, or gas outweighs
            even a single compound
    """
    if apr <= 0:
        raise YieldCalculationError(f"APR must be positive, got {apr}")
    if deposit_value <= 0:
        raise YieldCalculationError("No deposit value to compound")
    if gas_cost_per_cycle < 0:
        raise YieldCalculationError(f"Gas cost cannot be negative, got {gas_cost_per_cycle}")

    best_n = 0
    best_value = ZERO
    n = 1
    while n <= max_compounds:
        value = net_apy(apr, n, gas_cost_per_cycle, deposit_value)
        if value <= best_value:
            break
        best_n, best_value = n, value
        n += 1

    if best_n == 0:
        raise YieldCalculationError("Gas cost exceeds yield at every compounding frequency")

    return YieldEstimate(
        apr=apr,
        optimal_apy=best_value,
        optimal_compounds_per_year=best_n,
        next_interval_seconds=SECONDS_PER_YEAR // best_n,
    )


def apply_offset(price: Decimal, offset_percent: Decimal) -> Decimal:
    """Scale ``price`` by ``(100 + offset)%``; negative offsets discount."""
    return price * (HUNDRED + offset_percent) / HUNDRED


def value_per_lp(
    reserve_a: Decimal,
    price_a: Decimal,
    reserve_b: Decimal,
    price_b: Decimal,
    total_supply: Decimal,
) -> Decimal:
    """Native value of one LP token from the pair's reserves."""
    if total_supply <= 0:
        raise YieldCalculationError("LP total supply is zero")
    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        return (reserve_a * price_a + reserve_b * price_b) / total_supply


def offset_value_per_lp(
    reserve_a: Decimal,
    price_a: Decimal,
    offset_a: Decimal,
    reserve_b: Decimal,
    price_b: Decimal,
    offset_b: Decimal,
    total_supply: Decimal,
) -> Decimal:
    return value_per_lp(
        reserve_a,
        apply_offset(price_a, offset_a),
        reserve_b,
        apply_offset(price_b, offset_b),
        total_supply,
    )


def underlying_split(
    deposit_lp: Decimal,
    reserve_a: Decimal,
    reserve_b: Decimal,
    total_supply: Decimal,
) -> Tuple[Decimal, Decimal]:
    """Token A and B amounts represented by ``deposit_lp`` LP tokens."""
    if total_supply <= 0:
        return ZERO, ZERO
    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        share = deposit_lp / total_supply
        return reserve_a * share, reserve_b * share


def compute_apr(
    alloc_point: Decimal,
    total_alloc_point: Decimal,
    reward_per_second: Decimal,
    farm_lp_value: Decimal,
    reward_price: Decimal,
    lp_value: Decimal,
    lp_offset_value: Decimal,
) -> Decimal:
    """
    APR (percent) of the pool's share of farm emissions.

    Args:
        alloc_point: Pool weight
        total_alloc_point: Sum of all pool weights
        reward_per_second: Farm emission in reward token units per second
        farm_lp_value: Native value of all LP staked in the farm
        reward_price: Native value of one reward token
        lp_value: Native value of one LP token
        lp_offset_value: Offset-adjusted native value of one LP token

    Raises:
        YieldCalculationError: degenerate inputs or APR <= 0
    """
    if total_alloc_point <= 0:
        raise YieldCalculationError("Total alloc point is zero")
    if farm_lp_value <= 0 or lp_value <= 0:
        raise YieldCalculationError("Farm holds no valued liquidity")
    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        pool_share = alloc_point / total_alloc_point
        yearly_reward = pool_share * reward_per_second * SECONDS_PER_YEAR
        apr = yearly_reward / farm_lp_value * HUNDRED * reward_price * (lp_offset_value / lp_value)
    if apr <= 0:
        raise YieldCalculationError(f"APR computed as {apr}")
    return apr
