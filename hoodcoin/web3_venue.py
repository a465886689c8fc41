"""
HoodCoin - Uniswap V2 Liquidity Venue

On-chain LiquidityVenue: approves the router for the token allocation and
calls addLiquidityETH, sending the migrated reserve as msg.value.

Usage:
    venue = UniswapV2Venue(
        rpc_url="https://sepolia.base.org",
        router_address="0x...",
        private_key=os.environ["HOODCOIN_VENUE_KEY"],
        chain_id=84532,
    )
    manager = HoodCoinManager(config, roles, ledgers, venue, treasury, payments)
"""

import logging
import time
from typing import Optional, Tuple

from web3 import Web3
from eth_account import Account

from .hood_types import BPS_DENOMINATOR, Position

log = logging.getLogger("hoodcoin.venue")

DEFAULT_SLIPPAGE_BPS = 100      # 1%
DEFAULT_DEADLINE_SECS = 600
APPROVE_GAS = 100000
ADD_LIQUIDITY_GAS = 3000000

ERC20_ABI = [
    {
        "constant": False,
        "inputs": [
            {"name": "_spender", "type": "address"},
            {"name": "_value", "type": "uint256"}
        ],
        "name": "approve",
        "outputs": [{"name": "", "type": "bool"}],
        "type": "function"
    },
]

ROUTER_ABI = [
    {
        "inputs": [
            {"name": "token", "type": "address"},
            {"name": "amountTokenDesired", "type": "uint256"},
            {"name": "amountTokenMin", "type": "uint256"},
            {"name": "amountETHMin", "type": "uint256"},
            {"name": "to", "type": "address"},
            {"name": "deadline", "type": "uint256"}
        ],
        "name": "addLiquidityETH",
        "outputs": [
            {"name": "amountToken", "type": "uint256"},
            {"name": "amountETH", "type": "uint256"},
            {"name": "liquidity", "type": "uint256"}
        ],
        "stateMutability": "payable",
        "type": "function"
    },
]


class VenueError(Exception):
    """Liquidity transaction was rejected or reverted."""


def liquidity_bounds(eth_amount: int, token_amount: int,
                     slippage_bps: int = DEFAULT_SLIPPAGE_BPS) -> Tuple[int, int]:
    """
    Minimum (token, eth) amounts accepted by addLiquidityETH.

    Examples:
        >>> liquidity_bounds(10_000, 20_000, 100)
        (19800, 9900)
    """
    if not 0 <= slippage_bps <= BPS_DENOMINATOR:
        raise ValueError(f"slippage_bps must be in [0, {BPS_DENOMINATOR}]")
    keep = BPS_DENOMINATOR - slippage_bps
    return token_amount * keep // BPS_DENOMINATOR, eth_amount * keep // BPS_DENOMINATOR


def deadline_from(now: Optional[float] = None, ttl: int = DEFAULT_DEADLINE_SECS) -> int:
    now = time.time() if now is None else now
    return int(now) + ttl


class UniswapV2Venue:
    """Provides liquidity through a Uniswap V2 compatible router."""

    def __init__(self, rpc_url: str, router_address: str, private_key: str,
                 chain_id: int = 1, lp_recipient: Optional[str] = None,
                 slippage_bps: int = DEFAULT_SLIPPAGE_BPS, w3: Optional[Web3] = None):
        self.w3 = w3 if w3 is not None else Web3(Web3.HTTPProvider(rpc_url))
        self.router = self.w3.eth.contract(
            address=Web3.to_checksum_address(router_address),
            abi=ROUTER_ABI
        )
        self.account = Account.from_key(private_key)
        self.chain_id = chain_id
        self.slippage_bps = slippage_bps
        self.lp_recipient = Web3.to_checksum_address(lp_recipient or self.account.address)
        log.info(f"Uniswap V2 venue initialized. Router {self.router.address}, sender {self.account.address}")

    @property
    def address(self) -> str:
        """Where the liquidity allocation is minted before it is added."""
        return self.account.address

    def _send(self, fn, gas: int, value: int = 0) -> str:
        nonce = self.w3.eth.get_transaction_count(self.account.address)
        tx = fn.build_transaction({
            'from': self.account.address,
            'nonce': nonce,
            'gas': gas,
            'gasPrice': self.w3.eth.gas_price,
            'chainId': self.chain_id,
            'value': value,
        })
        signed = self.account.sign_transaction(tx)
        tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
        log.info(f"TX sent: {tx_hash.hex()}")

        receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=120)
        if receipt['status'] != 1:
            raise VenueError(f"TX reverted: {tx_hash.hex()}")
        return tx_hash.hex()

    def provide_liquidity(self, token: str, eth_amount: int, token_amount: int) -> Position:
        token = Web3.to_checksum_address(token)
        token_contract = self.w3.eth.contract(address=token, abi=ERC20_ABI)

        self._send(token_contract.functions.approve(self.router.address, token_amount), APPROVE_GAS)

        token_min, eth_min = liquidity_bounds(eth_amount, token_amount, self.slippage_bps)
        tx_hash = self._send(
            self.router.functions.addLiquidityETH(
                token,
                token_amount,
                token_min,
                eth_min,
                self.lp_recipient,
                deadline_from()
            ),
            ADD_LIQUIDITY_GAS,
            value=eth_amount,
        )

        log.info(f"Liquidity added for {token}: {eth_amount} wei + {token_amount} tokens")
        return Position(
            position_id=tx_hash,
            token=token,
            eth_amount=eth_amount,
            token_amount=token_amount,
            tx_hash=tx_hash,
        )
