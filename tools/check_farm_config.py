#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Sanity check for a compounder instance config.

Resolves the config like the bot does, then performs read-only on-chain
introspection (pair address, token metadata, reward quotes) without a
private key and without moving funds.

Usage: python tools/check_farm_config.py [path/to/config.json]
"""

from __future__ import annotations

import sys
from pathlib import Path

from dotenv import load_dotenv
from web3 import Web3

BOT_DIR = Path(__file__).resolve().parents[1] / "bots" / "lp_compounder"
sys.path.insert(0, str(BOT_DIR))

from abi_min import ERC20_ABI, UNISWAP_V2_FACTORY_ABI, UNISWAP_V2_ROUTER_ABI  # noqa: E402
from chain import contract, make_web3, same_address  # noqa: E402
from config import DEFAULT_CONFIG_PATH, CompounderSettings  # noqa: E402
from farms import get_farm_class, parse_farm_symbols  # noqa: E402
from router import quote_path  # noqa: E402
from tx_errors import FatalConfigError  # noqa: E402


def check_token(w3: Web3, label: str, address: str, expected_decimals: int) -> bool:
    try:
        token = contract(w3, address, ERC20_ABI)
        symbol = token.functions.symbol().call()
        decimals = token.functions.decimals().call()
    except Exception as exc:
        print(f"  !! Unable to read {label} metadata: {exc}")
        return False
    print(f"  {label:<7} {symbol} decimals={decimals} ({address})")
    if decimals != expected_decimals:
        print(f"  !! Configured decimals {expected_decimals} differ from on-chain {decimals}")
        return False
    return True


def check_pair(w3: Web3, settings: CompounderSettings) -> bool:
    pool = settings.liquidity_pool
    try:
        pair = contract(w3, pool.factory, UNISWAP_V2_FACTORY_ABI).functions.getPair(
            pool.token_a, pool.token_b
        ).call()
    except Exception as exc:
        print(f"  !! Unable to query factory: {exc}")
        return False
    print(f"  factory.getPair() = {pair}")
    print(f"  cfg.lp            = {pool.lp}")
    if not same_address(pair, pool.lp):
        print("  !! Configured LP is not the factory pair")
        return False
    return True


def check_quotes(w3: Web3, settings: CompounderSettings) -> bool:
    pool = settings.liquidity_pool
    router = contract(w3, pool.router, UNISWAP_V2_ROUTER_ABI)
    reward = settings.farm.reward_contract
    one = 10 ** settings.farm.reward_decimals
    ok = True
    for label, token in (("token_a", pool.token_a), ("token_b", pool.token_b)):
        if same_address(token, reward):
            print(f"  {label}: reward token itself")
            continue
        path = quote_path(reward, token, settings.weth_contract)
        try:
            amounts = router.functions.getAmountsOut(one, path).call()
        except Exception as exc:
            print(f"  !! Quote reward -> {label} failed: {exc}")
            ok = False
            continue
        print(f"  1 reward -> {label}: {amounts[-1]} (hops={len(path) - 1})")
        if amounts[-1] == 0:
            ok = False
    return ok


def main(argv=None) -> int:
    load_dotenv()
    args = list(sys.argv[1:] if argv is None else argv)
    config_path = Path(args[0]) if args else DEFAULT_CONFIG_PATH
    try:
        settings = CompounderSettings.load(config_path)
        farm_class = get_farm_class(settings.farm.farm_type)
    except FatalConfigError as exc:
        print(f"Config error (exit {exc.exit_code}): {exc}")
        return exc.exit_code

    symbol_a, symbol_b, symbol_reward = parse_farm_symbols(settings.farm.farm_type)
    print(f"[{settings.name}] farm={settings.farm.farm_type} ({farm_class.__name__})")
    print(f"  pair {symbol_a}/{symbol_b}, reward {symbol_reward}, pool_id={settings.farm.pool_id}")

    w3 = make_web3(settings.rpc_url, settings.rpc_timeout)
    print(f"  chainId={w3.eth.chain_id} block={w3.eth.block_number}")

    pool = settings.liquidity_pool
    ok = True
    print("\nTokens")
    ok &= check_token(w3, "token_a", pool.token_a, pool.token_a_decimals)
    ok &= check_token(w3, "token_b", pool.token_b, pool.token_b_decimals)
    ok &= check_token(w3, "lp", pool.lp, pool.lp_decimals)
    ok &= check_token(w3, "reward", settings.farm.reward_contract, settings.farm.reward_decimals)
    print("\nPair")
    ok &= check_pair(w3, settings)
    print("\nRouter quotes")
    ok &= check_quotes(w3, settings)

    print("\nResult:", "OK" if ok else "ISSUES FOUND")
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
