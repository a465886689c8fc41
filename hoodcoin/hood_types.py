"""
HoodCoin - Data Types

Curve steps, token records, claims and the quote/view structures
returned by the engine. All amounts are integers in the smallest unit
(wei for ETH, base units for tokens).
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional
import time

from web3 import Web3

from .errors import InvalidTransition

UINT256_MAX = 2 ** 256 - 1
BPS_DENOMINATOR = 10_000


def normalize_address(address: str) -> str:
    """Return the EIP-55 checksum form of an address (ValueError if invalid)."""
    if not isinstance(address, str) or not address:
        raise ValueError(f"Invalid address: {address!r}")
    return Web3.to_checksum_address(address)


def format_eth(wei: int) -> str:
    """Human-readable ETH amount for logs and CLI output."""
    return f"{Web3.from_wei(wei, 'ether')} ETH"


@dataclass(frozen=True)
class CurveStep:
    """One price band: supply in [previous bound, supply_upper_bound) costs unit_price."""
    supply_upper_bound: int
    unit_price: int

    def to_dict(self) -> dict:
        return {
            "supply_upper_bound": self.supply_upper_bound,
            "unit_price": self.unit_price,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CurveStep":
        return cls(
            supply_upper_bound=int(data["supply_upper_bound"]),
            unit_price=int(data["unit_price"]),
        )


class TokenState(Enum):
    """Token lifecycle: ACTIVE -> READY_FOR_MIGRATION -> MIGRATED"""
    ACTIVE = "active"
    READY_FOR_MIGRATION = "ready_for_migration"
    MIGRATED = "migrated"

    def can_transition(self, target: "TokenState") -> bool:
        return target in _TRANSITIONS[self]

    def transition(self, target: "TokenState") -> "TokenState":
        """Return target if the move is allowed, else raise InvalidTransition."""
        if not self.can_transition(target):
            raise InvalidTransition(f"{self.value} -> {target.value} not allowed")
        return target

    @property
    def tradable(self) -> bool:
        return self is not TokenState.MIGRATED


_TRANSITIONS = {
    TokenState.ACTIVE: {TokenState.READY_FOR_MIGRATION},
    TokenState.READY_FOR_MIGRATION: {TokenState.MIGRATED},
    TokenState.MIGRATED: set(),
}


@dataclass
class TokenRecord:
    """
    Per-token accounting, owned by the lifecycle manager.

    circulating_supply mirrors the token ledger's total supply; the two
    move together on every mint/burn done by the engine.
    """
    token: str
    location_name: str
    symbol: str
    creator: str

    reserve_balance: int = 0
    circulating_supply: int = 0
    state: TokenState = TokenState.ACTIVE
    royalties_paid: int = 0

    created_at: int = field(default_factory=lambda: int(time.time()))
    migrated_at: int = 0

    @property
    def ready_for_migration(self) -> bool:
        return self.state is TokenState.READY_FOR_MIGRATION

    @property
    def migrated(self) -> bool:
        return self.state is TokenState.MIGRATED

    def copy(self) -> "TokenRecord":
        return replace(self)

    def to_dict(self) -> dict:
        return {
            "token": self.token,
            "location_name": self.location_name,
            "symbol": self.symbol,
            "creator": self.creator,
            "reserve_balance": self.reserve_balance,
            "circulating_supply": self.circulating_supply,
            "state": self.state.value,
            "ready_for_migration": self.ready_for_migration,
            "migrated": self.migrated,
            "royalties_paid": self.royalties_paid,
            "created_at": self.created_at,
            "migrated_at": self.migrated_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TokenRecord":
        return cls(
            token=data["token"],
            location_name=data["location_name"],
            symbol=data["symbol"],
            creator=data["creator"],
            reserve_balance=int(data.get("reserve_balance", 0)),
            circulating_supply=int(data.get("circulating_supply", 0)),
            state=TokenState(data.get("state", "active")),
            royalties_paid=int(data.get("royalties_paid", 0)),
            created_at=int(data.get("created_at", time.time())),
            migrated_at=int(data.get("migrated_at", 0)),
        )


@dataclass
class NeighborhoodClaim:
    """One-time right, granted by a verifier, to create the token for a location."""
    location_name: str
    creator: str
    symbol: str
    consumed: bool = False
    token: str = ""
    verified_by: str = ""
    created_at: int = field(default_factory=lambda: int(time.time()))

    def copy(self) -> "NeighborhoodClaim":
        return replace(self)

    def to_dict(self) -> dict:
        return {
            "location_name": self.location_name,
            "creator": self.creator,
            "symbol": self.symbol,
            "consumed": self.consumed,
            "token": self.token,
            "verified_by": self.verified_by,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "NeighborhoodClaim":
        return cls(
            location_name=data["location_name"],
            creator=data["creator"],
            symbol=data["symbol"],
            consumed=bool(data.get("consumed", False)),
            token=data.get("token", ""),
            verified_by=data.get("verified_by", ""),
            created_at=int(data.get("created_at", time.time())),
        )


@dataclass(frozen=True)
class BuyQuote:
    """Result of walking the curve upward with an ETH budget."""
    tokens_out: int
    eth_spent: int
    eth_refund: int
    eth_budget: int = 0

    @property
    def eth_unused(self) -> int:
        """Budget not spent: curve-exhaustion refund plus sub-unit dust."""
        return self.eth_budget - self.eth_spent

    def to_dict(self) -> dict:
        return {
            "tokens_out": self.tokens_out,
            "eth_spent": self.eth_spent,
            "eth_refund": self.eth_refund,
            "eth_unused": self.eth_unused,
        }


@dataclass(frozen=True)
class SellQuote:
    """Result of walking the curve downward with a token amount."""
    tokens_in: int
    eth_out: int

    def to_dict(self) -> dict:
        return {"tokens_in": self.tokens_in, "eth_out": self.eth_out}


@dataclass(frozen=True)
class TokenInfo:
    reserve_balance: int
    circulating_supply: int
    ready_for_migration: bool
    migrated: bool

    def to_dict(self) -> dict:
        return {
            "reserve_balance": self.reserve_balance,
            "circulating_supply": self.circulating_supply,
            "ready_for_migration": self.ready_for_migration,
            "migrated": self.migrated,
        }


@dataclass(frozen=True)
class MigrationProgress:
    migrated: bool
    reserve_balance: int
    threshold: int
    percent: int
    eth_needed: int

    def to_dict(self) -> dict:
        return {
            "migrated": self.migrated,
            "reserve_balance": self.reserve_balance,
            "threshold": self.threshold,
            "percent": self.percent,
            "eth_needed": self.eth_needed,
        }


@dataclass(frozen=True)
class TradePreview:
    """Royalty-inclusive quote as a caller would see it."""
    gross_eth: int
    royalty: int
    net_eth: int
    tokens: int
    eth_unused: int = 0

    def to_dict(self) -> dict:
        return {
            "gross_eth": self.gross_eth,
            "royalty": self.royalty,
            "net_eth": self.net_eth,
            "tokens": self.tokens,
            "eth_unused": self.eth_unused,
        }


@dataclass(frozen=True)
class Position:
    """Handle returned by a liquidity venue after migration."""
    position_id: str
    token: str
    eth_amount: int
    token_amount: int
    tx_hash: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "position_id": self.position_id,
            "token": self.token,
            "eth_amount": self.eth_amount,
            "token_amount": self.token_amount,
            "tx_hash": self.tx_hash,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Position":
        return cls(
            position_id=data["position_id"],
            token=data["token"],
            eth_amount=int(data["eth_amount"]),
            token_amount=int(data["token_amount"]),
            tx_hash=data.get("tx_hash"),
        )
