"""
HoodCoin

Location-bound tokens priced on a stepped bonding curve, graduated to an
external liquidity pool once their reserve reaches the migration threshold.

Architecture:
  - Curve table + bonding math are pure (no state, integer arithmetic)
  - The lifecycle manager owns every TokenRecord and runs each mutation
    atomically, committing state before calling collaborators
  - Ledger, liquidity venue, treasury and ETH payouts are collaborators
    (in-memory versions for local runs, Uniswap V2 for on-chain)

Token lifecycle:
  ACTIVE -> READY_FOR_MIGRATION (reserve >= threshold) -> MIGRATED

Usage:
    from hoodcoin import HoodCoinManager, RoleRegistry, HoodConfig
    from hoodcoin import InMemoryLedgerFactory, InMemoryVenue, InMemoryTreasury, InMemoryPayments

    manager = HoodCoinManager(HoodConfig(), RoleRegistry(owner),
                              InMemoryLedgerFactory(), InMemoryVenue(),
                              InMemoryTreasury(), InMemoryPayments())

    manager.register_claim(owner, creator, "Kerry Park", "KERRY")
    token = manager.create_token(creator, initial_eth_in=0, value=manager.config.creation_fee)
    manager.buy(buyer, token, min_tokens_out=0, value=10**17)
"""

from .errors import (
    HoodError, Unauthorized, DuplicateLocation, InsufficientPayment,
    SlippageExceeded, CurveExhausted, InsufficientSupply, InsufficientBalance,
    TokenMigrated, AlreadyMigrated, NotReady, InvalidFee, ArithmeticOverflow,
    UnknownToken, InvalidTransition,
)
from .hood_types import (
    CurveStep, TokenState, TokenRecord, NeighborhoodClaim,
    BuyQuote, SellQuote, TokenInfo, MigrationProgress, TradePreview, Position,
)
from .curve import CurveTable, default_curve, TOKEN_UNIT
from .bonding_math import quote_buy, quote_sell, price_at, apply_bps
from .config import HoodConfig, load_config
from .roles import RoleRegistry
from .token_store import TokenRecordStore
from .collaborators import (
    InMemoryLedger, InMemoryLedgerFactory, InMemoryVenue,
    InMemoryTreasury, InMemoryPayments,
)
from .manager import HoodCoinManager
from .rpc_client import HoodClient, HoodClientError

__version__ = "0.1.0"
__all__ = [
    # Errors
    "HoodError", "Unauthorized", "DuplicateLocation", "InsufficientPayment",
    "SlippageExceeded", "CurveExhausted", "InsufficientSupply",
    "InsufficientBalance", "TokenMigrated", "AlreadyMigrated", "NotReady",
    "InvalidFee", "ArithmeticOverflow", "UnknownToken", "InvalidTransition",
    # Types
    "CurveStep", "TokenState", "TokenRecord", "NeighborhoodClaim",
    "BuyQuote", "SellQuote", "TokenInfo", "MigrationProgress",
    "TradePreview", "Position",
    # Curve
    "CurveTable", "default_curve", "TOKEN_UNIT",
    "quote_buy", "quote_sell", "price_at", "apply_bps",
    # Core
    "HoodConfig", "load_config", "RoleRegistry", "TokenRecordStore",
    "HoodCoinManager",
    # Collaborators
    "InMemoryLedger", "InMemoryLedgerFactory", "InMemoryVenue",
    "InMemoryTreasury", "InMemoryPayments",
    # Client
    "HoodClient", "HoodClientError",
]
