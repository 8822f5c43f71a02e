"""Shared fixtures for the compounder unit tests."""

import copy
import sys
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

sys.path.insert(0, str(Path(__file__).parent))

from chain import Transfer, TxResult

WALLET = "0x" + "a1" * 20
WFTM = "0x21be370d5312f44cb42ce377bc9b8a0cef1a4c83"
TOMB = "0x6c021ae822bea943b2e66552bde1d2696a53fbb7"
TSHARE = "0x4cdf39285d7ca8eb3f090fda0c069ba5f4145b37"
LP = "0x" + "b2" * 20
FACTORY = "0x" + "c3" * 20
ROUTER = "0x" + "d4" * 20
FARM = "0x" + "e5" * 20
ZAP = "0x" + "f6" * 20
TAX_OFFICE = "0x" + "17" * 20
OTHER = "0x" + "28" * 20

SAMPLE_CONFIG = {
    "name": "tomb-wftm",
    "rpc_url": "http://127.0.0.1:8545",
    "weth_contract": WFTM,
    "gas_symbol": "FTM",
    "wallet": {"address": WALLET, "private_key_env": "TEST_COMPOUNDER_KEY"},
    "liquidity_pool": {
        "token_a": WFTM,
        "token_b": TOMB,
        "lp": LP,
        "factory": FACTORY,
        "router": ROUTER,
        "slippage": "1.0",
    },
    "farm": {
        "farm_type": "WFTM-TOMB_TSHARE",
        "farm_contract": FARM,
        "reward_contract": TSHARE,
        "pool_id": 0,
    },
    "telegram": {"enabled": False},
}


@pytest.fixture
def sample_config():
    return copy.deepcopy(SAMPLE_CONFIG)


@pytest.fixture
def settings(sample_config, tmp_path):
    from config import CompounderSettings

    return CompounderSettings.from_dict(sample_config, base_dir=tmp_path).normalized()


class FakeChain:
    """ChainClient stand-in: one MagicMock contract per address, scripted receipts."""

    def __init__(self, address=WALLET):
        from web3 import Web3

        self.address = Web3.to_checksum_address(address)
        self.gas_symbol = "FTM"
        self.contracts = {}
        self.sent = []
        self.results = []
        self.native = 10**18

    def contract(self, address, abi=None):
        key = address.lower()
        if key not in self.contracts:
            mock = MagicMock()
            mock.address = address
            self.contracts[key] = mock
        return self.contracts[key]

    def functions(self, address):
        return self.contract(address).functions

    def deadline(self):
        return 1_700_000_000

    def gas_price(self):
        return 10**9

    def native_balance(self):
        return self.native

    def block_number(self):
        return 1_000

    def estimate_gas(self, fn, value=0):
        return 150_000

    def send(self, fn, label, *, value=0):
        self.sent.append(label)
        if self.results:
            return self.results.pop(0)
        return TxResult(label=label, tx_hash="0x" + "00" * 32, gas_used=100_000, gas_price=10**9)

    def queue(self, *transfers):
        """Queue a receipt whose Transfer events are ``(token, sender, recipient, value)`` tuples."""
        self.results.append(
            TxResult(
                label="queued",
                tx_hash="0x" + "11" * 32,
                gas_used=100_000,
                gas_price=10**9,
                transfers=[Transfer(*t) for t in transfers],
            )
        )


@pytest.fixture
def fake_chain():
    return FakeChain()


@pytest.fixture
def addr():
    """Addresses used by ``SAMPLE_CONFIG`` and a few spare ones (lowercase)."""
    return SimpleNamespace(
        WALLET=WALLET, WFTM=WFTM, TOMB=TOMB, TSHARE=TSHARE, LP=LP, FACTORY=FACTORY,
        ROUTER=ROUTER, FARM=FARM, ZAP=ZAP, TAX_OFFICE=TAX_OFFICE, OTHER=OTHER,
    )
