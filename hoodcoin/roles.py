"""
HoodCoin - Role Registry

Owner, verifier set and migrator. Passed explicitly into the lifecycle
manager; every gated operation names its caller and is checked here.
"""

import logging
from typing import List, Set

from .errors import Unauthorized
from .hood_types import normalize_address

log = logging.getLogger("hoodcoin.roles")


class RoleRegistry:
    """
    Access control for the engine.

    The owner starts out as a verifier and as the migrator.

    Usage:
        roles = RoleRegistry(owner="0x...")
        roles.add_verifier(owner, "0xVerifier...")
        roles.require_verifier("0xVerifier...")   # passes
        roles.require_owner("0xSomeoneElse...")   # raises Unauthorized
    """

    def __init__(self, owner: str, migrator: str = ""):
        self._owner = normalize_address(owner)
        self._migrator = normalize_address(migrator) if migrator else self._owner
        self._verifiers: Set[str] = {self._owner}

    @property
    def owner(self) -> str:
        return self._owner

    @property
    def migrator(self) -> str:
        return self._migrator

    @property
    def verifiers(self) -> List[str]:
        return sorted(self._verifiers)

    # ═══════════════════════════════════════════════════════════════════════
    # CHECKS
    # ═══════════════════════════════════════════════════════════════════════

    def is_owner(self, address: str) -> bool:
        return normalize_address(address) == self._owner

    def is_verifier(self, address: str) -> bool:
        return normalize_address(address) in self._verifiers

    def is_migrator(self, address: str) -> bool:
        return normalize_address(address) == self._migrator

    def require_owner(self, caller: str):
        if not self.is_owner(caller):
            raise Unauthorized(f"{caller} is not the owner")

    def require_verifier(self, caller: str):
        if not self.is_verifier(caller):
            raise Unauthorized(f"{caller} is not a verifier")

    def require_migrator(self, caller: str):
        if not self.is_migrator(caller):
            raise Unauthorized(f"{caller} is not the migrator")

    # ═══════════════════════════════════════════════════════════════════════
    # OWNER-ONLY MUTATIONS
    # ═══════════════════════════════════════════════════════════════════════

    def add_verifier(self, caller: str, verifier: str):
        self.require_owner(caller)
        verifier = normalize_address(verifier)
        self._verifiers.add(verifier)
        log.info(f"Verifier added: {verifier}")

    def remove_verifier(self, caller: str, verifier: str):
        self.require_owner(caller)
        verifier = normalize_address(verifier)
        self._verifiers.discard(verifier)
        log.info(f"Verifier removed: {verifier}")

    def set_migrator(self, caller: str, migrator: str):
        self.require_owner(caller)
        self._migrator = normalize_address(migrator)
        log.info(f"Migrator set: {self._migrator}")

    def transfer_ownership(self, caller: str, new_owner: str):
        self.require_owner(caller)
        self._owner = normalize_address(new_owner)
        log.info(f"Ownership transferred to {self._owner}")

    # ═══════════════════════════════════════════════════════════════════════
    # SNAPSHOT (rollback support)
    # ═══════════════════════════════════════════════════════════════════════

    def snapshot(self) -> dict:
        return {
            "owner": self._owner,
            "migrator": self._migrator,
            "verifiers": set(self._verifiers),
        }

    def restore(self, snap: dict):
        self._owner = snap["owner"]
        self._migrator = snap["migrator"]
        self._verifiers = set(snap["verifiers"])

    def to_dict(self) -> dict:
        return {
            "owner": self._owner,
            "migrator": self._migrator,
            "verifiers": self.verifiers,
        }
