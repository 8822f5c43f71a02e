import pytest
from web3 import Web3

from abi_min import ERC20_ABI, UNISWAP_V2_FACTORY_ABI, UNISWAP_V2_ROUTER_ABI
from router import quote_path

pytestmark = pytest.mark.fork


def _c(w3, addr, abi):
    return w3.eth.contract(Web3.to_checksum_address(addr), abi=abi)


def test_factory_pair_matches_lp(w3, fork_config):
    pool = fork_config["liquidity_pool"]
    factory = _c(w3, pool["factory"], UNISWAP_V2_FACTORY_ABI)
    pair = factory.functions.getPair(
        Web3.to_checksum_address(pool["token_a"]),
        Web3.to_checksum_address(pool["token_b"]),
    ).call()
    assert pair.lower() == pool["lp"].lower()


def test_pool_tokens_metadata(w3, fork_config):
    pool = fork_config["liquidity_pool"]
    for key in ("token_a", "token_b", "lp"):
        c = _c(w3, pool[key], ERC20_ABI)
        assert c.functions.decimals().call() == pool.get(f"{key}_decimals", 18)
        assert c.functions.totalSupply().call() > 0


def test_reward_quotes_into_pair_tokens(w3, fork_config):
    pool = fork_config["liquidity_pool"]
    weth = Web3.to_checksum_address(fork_config["weth_contract"])
    reward = Web3.to_checksum_address(fork_config["farm"]["reward_contract"])
    router = _c(w3, pool["router"], UNISWAP_V2_ROUTER_ABI)
    one = 10 ** fork_config["farm"].get("reward_decimals", 18)
    for key in ("token_a", "token_b"):
        path = quote_path(reward, Web3.to_checksum_address(pool[key]), weth)
        amounts = router.functions.getAmountsOut(one, path).call()
        assert amounts[-1] > 0
