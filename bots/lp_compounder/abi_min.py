#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Minimal ABIs for the contracts the compounder talks to."""

from __future__ import annotations

from typing import Dict, List, Sequence, Tuple

Param = Tuple[str, str]


def _params(items: Sequence[Param]) -> List[Dict[str, str]]:
    return [{"name": name, "type": typ} for name, typ in items]


def _fn(
    name: str,
    inputs: Sequence[Param] = (),
    outputs: Sequence[Param] = (),
    mutability: str = "view",
) -> Dict[str, object]:
    return {
        "type": "function",
        "name": name,
        "inputs": _params(inputs),
        "outputs": _params(outputs),
        "stateMutability": mutability,
    }


TRANSFER_EVENT = {
    "anonymous": False,
    "inputs": [
        {"indexed": True, "name": "from", "type": "address"},
        {"indexed": True, "name": "to", "type": "address"},
        {"indexed": False, "name": "value", "type": "uint256"},
    ],
    "name": "Transfer",
    "type": "event",
}

ERC20_ABI = [
    _fn("balanceOf", [("owner", "address")], [("", "uint256")]),
    _fn("allowance", [("owner", "address"), ("spender", "address")], [("", "uint256")]),
    _fn("totalSupply", [], [("", "uint256")]),
    _fn("decimals", [], [("", "uint8")]),
    _fn("symbol", [], [("", "string")]),
    _fn("approve", [("spender", "address"), ("amount", "uint256")], [("", "bool")], "nonpayable"),
    _fn("transfer", [("to", "address"), ("amount", "uint256")], [("", "bool")], "nonpayable"),
    TRANSFER_EVENT,
]

UNISWAP_V2_FACTORY_ABI = [
    _fn("getPair", [("tokenA", "address"), ("tokenB", "address")], [("pair", "address")]),
]

UNISWAP_V2_ROUTER_ABI = [
    _fn(
        "getAmountsOut",
        [("amountIn", "uint256"), ("path", "address[]")],
        [("amounts", "uint256[]")],
    ),
    _fn(
        "addLiquidity",
        [
            ("tokenA", "address"),
            ("tokenB", "address"),
            ("amountADesired", "uint256"),
            ("amountBDesired", "uint256"),
            ("amountAMin", "uint256"),
            ("amountBMin", "uint256"),
            ("to", "address"),
            ("deadline", "uint256"),
        ],
        [("amountA", "uint256"), ("amountB", "uint256"), ("liquidity", "uint256")],
        "nonpayable",
    ),
    _fn(
        "swapExactTokensForTokens",
        [
            ("amountIn", "uint256"),
            ("amountOutMin", "uint256"),
            ("path", "address[]"),
            ("to", "address"),
            ("deadline", "uint256"),
        ],
        [("amounts", "uint256[]")],
        "nonpayable",
    ),
    _fn(
        "swapExactTokensForETH",
        [
            ("amountIn", "uint256"),
            ("amountOutMin", "uint256"),
            ("path", "address[]"),
            ("to", "address"),
            ("deadline", "uint256"),
        ],
        [("amounts", "uint256[]")],
        "nonpayable",
    ),
    _fn(
        "swapExactETHForTokens",
        [
            ("amountOutMin", "uint256"),
            ("path", "address[]"),
            ("to", "address"),
            ("deadline", "uint256"),
        ],
        [("amounts", "uint256[]")],
        "payable",
    ),
]

ZAP_ABI = [
    _fn(
        "zapInToken",
        [
            ("_from", "address"),
            ("amount", "uint256"),
            ("_to", "address"),
            ("routerAddr", "address"),
            ("_recipient", "address"),
        ],
        [],
        "nonpayable",
    ),
]

TAX_OFFICE_ABI = [
    _fn(
        "addLiquidityTaxFree",
        [
            ("token", "address"),
            ("amtTomb", "uint256"),
            ("amtToken", "uint256"),
            ("amtTombMin", "uint256"),
            ("amtTokenMin", "uint256"),
        ],
        [("", "uint256"), ("", "uint256"), ("", "uint256")],
        "nonpayable",
    ),
]

_POOL_DEPOSIT = _fn("deposit", [("_pid", "uint256"), ("_amount", "uint256")], [], "nonpayable")
_POOL_WITHDRAW = _fn("withdraw", [("_pid", "uint256"), ("_amount", "uint256")], [], "nonpayable")
_POOL_USER_INFO = _fn(
    "userInfo",
    [("", "uint256"), ("", "address")],
    [("amount", "uint256"), ("rewardDebt", "uint256")],
)

TOMB_REWARD_POOL_ABI = [
    _fn("tSharePerSecond", [], [("", "uint256")]),
    _fn("totalAllocPoint", [], [("", "uint256")]),
    _fn("pendingShare", [("_pid", "uint256"), ("_user", "address")], [("", "uint256")]),
    _fn(
        "poolInfo",
        [("", "uint256")],
        [
            ("token", "address"),
            ("allocPoint", "uint256"),
            ("lastRewardTime", "uint256"),
            ("accTSharePerShare", "uint256"),
            ("isStarted", "bool"),
        ],
    ),
    _POOL_USER_INFO,
    _POOL_DEPOSIT,
    _POOL_WITHDRAW,
]

YEL_MASTERCHEF_ABI = [
    _fn("yelPerSecond", [], [("", "uint256")]),
    _fn("totalAllocPoint", [], [("", "uint256")]),
    _fn("pendingYel", [("_pid", "uint256"), ("_user", "address")], [("", "uint256")]),
    _fn(
        "poolInfo",
        [("", "uint256")],
        [
            ("stakingToken", "address"),
            ("stakingTokenTotalAmount", "uint256"),
            ("accYelPerShare", "uint256"),
            ("lastRewardTime", "uint32"),
            ("allocPoint", "uint16"),
        ],
    ),
    _POOL_USER_INFO,
    _POOL_DEPOSIT,
    _POOL_WITHDRAW,
]

MOMA_FARM_ABI = [
    _fn("rewardPerBlock", [], [("", "uint256")]),
    _fn("getMultiplier", [("_from", "uint256"), ("_to", "uint256")], [("", "uint256")]),
    _fn("pendingReward", [("_user", "address")], [("", "uint256")]),
    _fn("userInfo", [("", "address")], [("amount", "uint256"), ("rewardDebt", "uint256")]),
    _fn("deposit", [("_amount", "uint256")], [], "nonpayable"),
    _fn("withdraw", [("_amount", "uint256")], [], "nonpayable"),
]
