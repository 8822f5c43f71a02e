import json, os, sys
from pathlib import Path

import pytest
from web3 import Web3

BOT_DIR = Path(__file__).resolve().parents[2] / "bots" / "lp_compounder"
sys.path.insert(0, str(BOT_DIR))

def pytest_addoption(parser):
    parser.addoption("--rpc", action="store", default=os.getenv("FORK_RPC_URL"))
    parser.addoption("--fork-config", action="store",
                     default=os.getenv("FORK_CONFIG", str(BOT_DIR / "config.example.json")))

@pytest.fixture(scope="session")
def rpc_url(pytestconfig):
    return pytestconfig.getoption("--rpc")

@pytest.fixture(scope="session")
def w3(rpc_url):
    if not rpc_url:
        pytest.skip("FORK_RPC_URL not set")
    w3 = Web3(Web3.HTTPProvider(rpc_url))
    assert w3.is_connected(), "RPC connection failed"
    return w3

@pytest.fixture(scope="session")
def fork_config(pytestconfig):
    """Raw instance config; only addresses are read, placeholders stay unresolved."""
    path = Path(pytestconfig.getoption("--fork-config"))
    return json.loads(path.read_text())
