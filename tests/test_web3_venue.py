"""
Uniswap V2 venue tests against a mocked Web3 instance
"""

from unittest import mock

import pytest
from web3 import Web3

from hoodcoin.web3_venue import UniswapV2Venue, VenueError, deadline_from, liquidity_bounds

# Hardhat account #0 key (public dev key)
DEV_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
DEV_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
ROUTER = "0x7a250d5630B4cF539739dF2C5dAcb4c659F2488D"
TOKEN = "0x000000000000000000000000000000000000000A"


def test_liquidity_bounds():
    assert liquidity_bounds(10_000, 20_000, 100) == (19_800, 9_900)
    assert liquidity_bounds(10_000, 20_000, 0) == (20_000, 10_000)
    with pytest.raises(ValueError):
        liquidity_bounds(1, 1, 10_001)


def test_deadline_from():
    assert deadline_from(1_000.7, ttl=600) == 1_600


@pytest.fixture
def w3():
    w3 = mock.MagicMock()
    w3.eth.get_transaction_count.return_value = 7
    w3.eth.gas_price = 1_000_000_000
    w3.eth.send_raw_transaction.return_value = bytes.fromhex("ab" * 32)
    w3.eth.wait_for_transaction_receipt.return_value = {"status": 1}
    w3.eth.contract.return_value.address = ROUTER
    return w3


def test_venue_address_is_signer(w3):
    venue = UniswapV2Venue("http://unused", ROUTER, DEV_KEY, chain_id=31337, w3=w3)
    assert venue.address == DEV_ADDRESS
    assert venue.lp_recipient == DEV_ADDRESS


def test_provide_liquidity(w3):
    venue = UniswapV2Venue("http://unused", ROUTER, DEV_KEY, chain_id=31337, w3=w3)
    venue.account = mock.MagicMock(address=DEV_ADDRESS)

    position = venue.provide_liquidity(TOKEN, 10_000, 20_000)

    router_fn = venue.router.functions.addLiquidityETH
    args = router_fn.call_args[0]
    assert args[:5] == (Web3.to_checksum_address(TOKEN), 20_000, 19_800, 9_900, DEV_ADDRESS)
    tx_params = router_fn.return_value.build_transaction.call_args[0][0]
    assert tx_params["value"] == 10_000
    assert tx_params["chainId"] == 31337
    assert position.eth_amount == 10_000
    assert position.token_amount == 20_000
    assert position.tx_hash == "ab" * 32


def test_reverted_transaction_raises(w3):
    w3.eth.wait_for_transaction_receipt.return_value = {"status": 0}
    venue = UniswapV2Venue("http://unused", ROUTER, DEV_KEY, w3=w3)
    venue.account = mock.MagicMock(address=DEV_ADDRESS)

    with pytest.raises(VenueError):
        venue.provide_liquidity(TOKEN, 1, 1)
