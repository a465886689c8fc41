"""
HoodCoin - External Collaborators

Interfaces the engine calls across its boundary, plus in-memory
implementations used for local runs and tests:

  - TokenLedger:     fungible token (mint/burn/balance/supply), one per token
  - LedgerFactory:   deploys a TokenLedger at token creation
  - LiquidityVenue:  receives ETH + tokens at migration
  - Treasury:        sink for creation fees, royalties and migration fees
  - EthPayments:     ETH transfers back to callers (refunds, sell payouts)

The in-memory versions support snapshot()/restore() so the manager can
roll them back together with its own state when an operation fails.
"""

import logging
from typing import Dict, List, Optional, Protocol

from .errors import InsufficientBalance, UnknownToken
from .hood_types import Position, normalize_address

log = logging.getLogger("hoodcoin.collaborators")

DEFAULT_VENUE_ADDRESS = "0x000000000000000000000000000000000000dEaD"


# ═══════════════════════════════════════════════════════════════════════════════
# INTERFACES
# ═══════════════════════════════════════════════════════════════════════════════

class TokenLedger(Protocol):
    def mint(self, to: str, amount: int) -> None: ...
    def burn(self, from_addr: str, amount: int) -> None: ...
    def balance_of(self, address: str) -> int: ...
    def total_supply(self) -> int: ...


class LedgerFactory(Protocol):
    def create(self, token: str, name: str, symbol: str) -> TokenLedger: ...
    def get(self, token: str) -> TokenLedger: ...


class LiquidityVenue(Protocol):
    address: str

    def provide_liquidity(self, token: str, eth_amount: int, token_amount: int) -> Position: ...


class Treasury(Protocol):
    def receive(self, eth_amount: int) -> None: ...


class EthPayments(Protocol):
    def send(self, to: str, amount: int) -> None: ...


# ═══════════════════════════════════════════════════════════════════════════════
# IN-MEMORY LEDGER
# ═══════════════════════════════════════════════════════════════════════════════

class InMemoryLedger:
    """
    Minimal fungible token ledger.

    Usage:
        ledger = InMemoryLedger(token, "Kerry", "KERY")
        ledger.mint(alice, 100)
        ledger.mint(bob, 40)
        ledger.burn(bob, 40)
        ledger.total_supply()   # 100
    """

    def __init__(self, token: str, name: str, symbol: str):
        self.token = token
        self.name = name
        self.symbol = symbol
        self.balances: Dict[str, int] = {}
        self._total_supply = 0

    def mint(self, to: str, amount: int) -> None:
        to = normalize_address(to)
        self.balances[to] = self.balances.get(to, 0) + amount
        self._total_supply += amount

    def burn(self, from_addr: str, amount: int) -> None:
        from_addr = normalize_address(from_addr)
        balance = self.balances.get(from_addr, 0)
        if balance < amount:
            raise InsufficientBalance(f"{from_addr} holds {balance} {self.symbol}, needs {amount}")
        self.balances[from_addr] = balance - amount
        self._total_supply -= amount

    def balance_of(self, address: str) -> int:
        return self.balances.get(normalize_address(address), 0)

    def total_supply(self) -> int:
        return self._total_supply

    def snapshot(self) -> dict:
        return {"balances": dict(self.balances), "total_supply": self._total_supply}

    def restore(self, snap: dict) -> None:
        self.balances = dict(snap["balances"])
        self._total_supply = snap["total_supply"]


class InMemoryLedgerFactory:
    """Creates and tracks one InMemoryLedger per token."""

    ledger_class = InMemoryLedger

    def __init__(self):
        self.ledgers: Dict[str, InMemoryLedger] = {}

    def create(self, token: str, name: str, symbol: str) -> InMemoryLedger:
        ledger = self.ledger_class(token, name, symbol)
        self.ledgers[token] = ledger
        return ledger

    def get(self, token: str) -> InMemoryLedger:
        ledger = self.ledgers.get(token)
        if ledger is None:
            raise UnknownToken(f"No ledger for {token}")
        return ledger

    def snapshot(self) -> dict:
        return {token: (ledger, ledger.snapshot()) for token, ledger in self.ledgers.items()}

    def restore(self, snap: dict) -> None:
        self.ledgers = {}
        for token, (ledger, ledger_snap) in snap.items():
            ledger.restore(ledger_snap)
            self.ledgers[token] = ledger

    def to_dict(self) -> dict:
        return {
            token: {
                "name": ledger.name,
                "symbol": ledger.symbol,
                "balances": dict(ledger.balances),
                "total_supply": ledger.total_supply(),
            }
            for token, ledger in list(self.ledgers.items())
        }

    @classmethod
    def from_dict(cls, data: dict) -> "InMemoryLedgerFactory":
        factory = cls()
        for token, entry in data.items():
            ledger = factory.create(token, entry["name"], entry["symbol"])
            ledger.restore({
                "balances": {addr: int(v) for addr, v in entry["balances"].items()},
                "total_supply": int(entry["total_supply"]),
            })
        return factory


# ═══════════════════════════════════════════════════════════════════════════════
# IN-MEMORY VENUE / TREASURY / PAYMENTS
# ═══════════════════════════════════════════════════════════════════════════════

class InMemoryVenue:
    """Records liquidity positions instead of creating a real pool."""

    def __init__(self, address: str = DEFAULT_VENUE_ADDRESS, first_id: int = 1):
        self.address = normalize_address(address)
        self.positions: Dict[str, Position] = {}
        self._next_id = first_id

    def provide_liquidity(self, token: str, eth_amount: int, token_amount: int) -> Position:
        position_id = f"pos-{self._next_id}"
        self._next_id += 1
        position = Position(
            position_id=position_id,
            token=token,
            eth_amount=eth_amount,
            token_amount=token_amount,
        )
        self.positions[position.position_id] = position
        log.info(f"Liquidity position {position.position_id}: {eth_amount} wei + {token_amount} tokens")
        return position

    def snapshot(self) -> dict:
        return {"positions": dict(self.positions), "next_id": self._next_id}

    def restore(self, snap: dict) -> None:
        self.positions = dict(snap["positions"])
        self._next_id = snap["next_id"]


class InMemoryTreasury:
    """Accumulates every fee the engine routes to the treasury."""

    def __init__(self):
        self.balance = 0
        self.receipts: List[int] = []

    def receive(self, eth_amount: int) -> None:
        self.balance += eth_amount
        self.receipts.append(eth_amount)

    def snapshot(self) -> dict:
        return {"balance": self.balance, "receipts": list(self.receipts)}

    def restore(self, snap: dict) -> None:
        self.balance = snap["balance"]
        self.receipts = list(snap["receipts"])


class InMemoryPayments:
    """Tracks ETH sent back to each address."""

    def __init__(self):
        self.sent: Dict[str, int] = {}

    def send(self, to: str, amount: int) -> None:
        to = normalize_address(to)
        self.sent[to] = self.sent.get(to, 0) + amount

    def total_sent(self, address: Optional[str] = None) -> int:
        if address is None:
            return sum(self.sent.values())
        return self.sent.get(normalize_address(address), 0)

    def snapshot(self) -> dict:
        return dict(self.sent)

    def restore(self, snap: dict) -> None:
        self.sent = dict(snap)
