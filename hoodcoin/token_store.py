"""
HoodCoin - Token Record Store

Per-token state and neighborhood claims. Readers always get copies; the
lifecycle manager changes a record by editing a copy and committing it
with put(), so no other component can mutate live state.
"""

import time
from typing import Dict, List, Optional

from .errors import DuplicateLocation, UnknownToken
from .hood_types import NeighborhoodClaim, Position, TokenRecord, TokenState


class TokenRecordStore:
    """
    In-memory store of TokenRecords and claims.

    Records are append-only: a token is never removed, and once MIGRATED
    its record is never committed again.

    Usage:
        store = TokenRecordStore()
        store.add_claim(NeighborhoodClaim("Kerry", creator, "KERY"))
        store.add(TokenRecord(token, "Kerry", "KERY", creator))

        rec = store.get(token)          # copy
        rec.reserve_balance += 10
        store.put(rec)                  # commit
    """

    def __init__(self):
        self._records: Dict[str, TokenRecord] = {}
        self._claims: Dict[str, NeighborhoodClaim] = {}
        self._by_location: Dict[str, str] = {}
        self._positions: Dict[str, Position] = {}

    # ═══════════════════════════════════════════════════════════════════════
    # TOKENS
    # ═══════════════════════════════════════════════════════════════════════

    def __contains__(self, token: str) -> bool:
        return token in self._records

    def __len__(self) -> int:
        return len(self._records)

    def get(self, token: str) -> TokenRecord:
        """Copy of the record for token."""
        record = self._records.get(token)
        if record is None:
            raise UnknownToken(f"Unknown token: {token}")
        return record.copy()

    def add(self, record: TokenRecord):
        if record.token in self._records:
            raise DuplicateLocation(f"Token {record.token} already exists")
        if record.location_name in self._by_location:
            raise DuplicateLocation(f"Location {record.location_name} already has a token")
        self._records[record.token] = record.copy()
        self._by_location[record.location_name] = record.token

    def put(self, record: TokenRecord):
        """Commit an edited copy of an existing record."""
        current = self._records.get(record.token)
        if current is None:
            raise UnknownToken(f"Unknown token: {record.token}")
        if current.state is TokenState.MIGRATED:
            raise ValueError(f"Record for {record.token} is final")
        self._records[record.token] = record.copy()

    def token_for_location(self, location_name: str) -> Optional[str]:
        return self._by_location.get(location_name)

    def list_tokens(self, state: Optional[TokenState] = None) -> List[TokenRecord]:
        """Records in creation order, optionally filtered by state."""
        return [
            rec.copy() for rec in list(self._records.values())
            if state is None or rec.state is state
        ]

    def ready_for_migration(self) -> List[str]:
        return [
            rec.token for rec in list(self._records.values())
            if rec.state is TokenState.READY_FOR_MIGRATION
        ]

    def record_position(self, position: Position):
        """Attach the venue position created when the token migrated."""
        record = self._records.get(position.token)
        if record is None:
            raise UnknownToken(f"Unknown token: {position.token}")
        if position.token in self._positions:
            raise ValueError(f"Token {position.token} already has a position")
        self._positions[position.token] = position

    def position_for(self, token: str) -> Optional[Position]:
        return self._positions.get(token)

    # ═══════════════════════════════════════════════════════════════════════
    # CLAIMS
    # ═══════════════════════════════════════════════════════════════════════

    def has_location(self, location_name: str) -> bool:
        """True if a claim or a token already exists for the name."""
        return location_name in self._claims or location_name in self._by_location

    def add_claim(self, claim: NeighborhoodClaim):
        if self.has_location(claim.location_name):
            raise DuplicateLocation(f"Location already claimed: {claim.location_name}")
        self._claims[claim.location_name] = claim.copy()

    def get_claim(self, location_name: str) -> Optional[NeighborhoodClaim]:
        claim = self._claims.get(location_name)
        return claim.copy() if claim else None

    def put_claim(self, claim: NeighborhoodClaim):
        if claim.location_name not in self._claims:
            raise KeyError(f"No claim for {claim.location_name}")
        self._claims[claim.location_name] = claim.copy()

    def pending_claim_for(self, creator: str,
                          location_name: Optional[str] = None) -> Optional[NeighborhoodClaim]:
        """
        Oldest unconsumed claim held by creator.

        Args:
            creator: Checksum address of the claim holder
            location_name: Restrict to this location (optional)
        """
        for claim in list(self._claims.values()):
            if claim.consumed or claim.creator != creator:
                continue
            if location_name and claim.location_name != location_name:
                continue
            return claim.copy()
        return None

    def list_claims(self, include_consumed: bool = True) -> List[NeighborhoodClaim]:
        return [
            c.copy() for c in list(self._claims.values())
            if include_consumed or not c.consumed
        ]

    # ═══════════════════════════════════════════════════════════════════════
    # SNAPSHOT / EXPORT
    # ═══════════════════════════════════════════════════════════════════════

    def snapshot(self) -> dict:
        return {
            "records": {k: v.copy() for k, v in self._records.items()},
            "claims": {k: v.copy() for k, v in self._claims.items()},
            "by_location": dict(self._by_location),
            "positions": dict(self._positions),
        }

    def restore(self, snap: dict):
        self._records = {k: v.copy() for k, v in snap["records"].items()}
        self._claims = {k: v.copy() for k, v in snap["claims"].items()}
        self._by_location = dict(snap["by_location"])
        self._positions = dict(snap["positions"])

    def to_dict(self) -> dict:
        return {
            "version": "1.0",
            "updated_ts": int(time.time()),
            "tokens": [rec.to_dict() for rec in list(self._records.values())],
            "claims": [c.to_dict() for c in list(self._claims.values())],
            "positions": [p.to_dict() for p in list(self._positions.values())],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TokenRecordStore":
        store = cls()
        for claim_data in data.get("claims", []):
            claim = NeighborhoodClaim.from_dict(claim_data)
            store._claims[claim.location_name] = claim
        for rec_data in data.get("tokens", []):
            rec = TokenRecord.from_dict(rec_data)
            store._records[rec.token] = rec
            store._by_location[rec.location_name] = rec.token
        for pos_data in data.get("positions", []):
            position = Position.from_dict(pos_data)
            store._positions[position.token] = position
        return store
