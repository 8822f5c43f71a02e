#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Startup check that the configured LP token is the factory's pair."""

from __future__ import annotations

from abi_min import UNISWAP_V2_FACTORY_ABI
from chain import ChainClient, same_address
from constants import EXIT_FARM_MISCONFIGURED, EXIT_PAIR_CHECK_FAILED
from logging_config import get_logger
from tx_errors import FatalConfigError

logger = get_logger(__name__)


def get_pair(chain: ChainClient, factory: str, token_a: str, token_b: str) -> str:
    fn = chain.contract(factory, UNISWAP_V2_FACTORY_ABI).functions.getPair(token_a, token_b)
    return fn.call()


def verify_pair(chain: ChainClient, factory: str, token_a: str, token_b: str, lp: str) -> None:
    """
    Raise FatalConfigError unless ``getPair(token_a, token_b) == lp``.

    Exit code 4 on mismatch, 5 when the factory cannot be queried.
    """
    try:
        pair = get_pair(chain, factory, token_a, token_b)
    except Exception as exc:
        raise FatalConfigError(
            f"Pair check failed against factory {factory}: {exc}",
            exit_code=EXIT_PAIR_CHECK_FAILED,
        ) from exc
    if not same_address(pair, lp):
        raise FatalConfigError(
            f"LP {lp} is not the pair of {token_a}/{token_b} (factory returned {pair})",
            exit_code=EXIT_FARM_MISCONFIGURED,
        )
    logger.info("LP %s matches factory pair", lp)
