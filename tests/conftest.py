"""
Shared fixtures: well-known dev addresses, a small two-band curve and a
manager wired to in-memory collaborators.
"""

import pytest

from hoodcoin.collaborators import (
    InMemoryLedgerFactory,
    InMemoryPayments,
    InMemoryTreasury,
    InMemoryVenue,
)
from hoodcoin.config import HoodConfig
from hoodcoin.curve import CurveTable
from hoodcoin.hood_types import CurveStep
from hoodcoin.manager import HoodCoinManager
from hoodcoin.roles import RoleRegistry

OWNER = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
VERIFIER = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
CREATOR = "0x3C44CdDdB6a900fa2b585dd299e03d12FA4293BC"
BUYER = "0x90F79bf6EB2c4f870365E785982E1f101E93b906"
MIGRATOR = "0x15d34AAf54267DB7D7c367839AAf71A00a2C6A65"
STRANGER = "0x9965507D1a55bcC2695C58ba16FB37d819B0A4dc"


@pytest.fixture
def small_curve():
    """[0, 10M) @ 1, [10M, 20M) @ 2"""
    return CurveTable([
        CurveStep(10_000_000, 1),
        CurveStep(20_000_000, 2),
    ])


@pytest.fixture
def make_config(small_curve):
    """Config factory over the small curve; keyword overrides win."""
    def _make(**overrides):
        params = dict(
            creation_fee=10,
            migration_threshold=100,
            mint_royalty_bps=100,
            burn_royalty_bps=150,
            max_supply=25_000_000,
            curve_supply=20_000_000,
            max_migration_fee_bps=1000,
            curve=small_curve,
        )
        params.update(overrides)
        return HoodConfig(**params)
    return _make


@pytest.fixture
def make_manager(make_config):
    """Manager factory with fresh in-memory collaborators."""
    def _make(migrator: str = "", venue=None, payments=None, ledgers=None, **overrides):
        return HoodCoinManager(
            config=make_config(**overrides),
            roles=RoleRegistry(OWNER, migrator),
            ledgers=ledgers if ledgers is not None else InMemoryLedgerFactory(),
            venue=venue if venue is not None else InMemoryVenue(),
            treasury=InMemoryTreasury(),
            payments=payments if payments is not None else InMemoryPayments(),
        )
    return _make


@pytest.fixture
def manager(make_manager):
    return make_manager(migrator=MIGRATOR)


@pytest.fixture
def token(manager):
    """A freshly created token with no supply, claimed by CREATOR."""
    manager.register_claim(OWNER, CREATOR, "Kerry Park", "KERRY")
    return manager.create_token(CREATOR, initial_eth_in=0, value=manager.config.creation_fee)


@pytest.fixture
def ready_token(manager, token):
    """Token whose reserve has crossed the migration threshold."""
    manager.buy(BUYER, token, min_tokens_out=0, value=200)
    assert manager.token_info(token).ready_for_migration
    return token
