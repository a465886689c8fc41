"""
Migration tests: role gates, check order, venue hand-off, fees,
terminality and rollback when the venue fails
"""

import pytest

from hoodcoin.collaborators import InMemoryVenue
from hoodcoin.errors import (
    AlreadyMigrated,
    InvalidFee,
    NotReady,
    TokenMigrated,
    Unauthorized,
)
from hoodcoin.hood_types import TokenState

from conftest import BUYER, MIGRATOR, OWNER, STRANGER


def test_trigger_migration_moves_reserve_and_allocation(manager, ready_token):
    before = manager.get_record(ready_token)
    allocation = manager.config.liquidity_allocation

    position = manager.trigger_migration(OWNER, ready_token)

    assert position.token == ready_token
    assert position.eth_amount == before.reserve_balance
    assert position.token_amount == allocation == 5_000_000

    record = manager.get_record(ready_token)
    assert record.state is TokenState.MIGRATED
    assert record.reserve_balance == 0
    assert record.circulating_supply == before.circulating_supply + allocation
    assert record.migrated_at > 0
    assert manager.balance_of(ready_token, manager.venue.address) == allocation
    assert manager.ledgers.get(ready_token).total_supply() == record.circulating_supply
    assert manager.position_for(ready_token) == position
    assert manager.list_ready_for_migration() == []


def test_second_migration_fails(manager, ready_token):
    manager.trigger_migration(OWNER, ready_token)
    record = manager.get_record(ready_token)
    positions = dict(manager.venue.positions)

    with pytest.raises(AlreadyMigrated):
        manager.trigger_migration(OWNER, ready_token)

    assert manager.get_record(ready_token) == record
    assert manager.venue.positions == positions


def test_migration_requires_owner(manager, ready_token):
    with pytest.raises(Unauthorized):
        manager.trigger_migration(STRANGER, ready_token)
    assert manager.get_record(ready_token).state is TokenState.READY_FOR_MIGRATION


def test_migration_requires_readiness(manager, token):
    with pytest.raises(NotReady):
        manager.trigger_migration(OWNER, token)


def test_unauthorized_checked_before_state(manager, ready_token):
    manager.trigger_migration(OWNER, ready_token)
    with pytest.raises(Unauthorized):
        manager.trigger_migration(STRANGER, ready_token)


def test_trading_closed_after_migration(manager, ready_token):
    manager.trigger_migration(OWNER, ready_token)
    with pytest.raises(TokenMigrated):
        manager.buy(BUYER, ready_token, min_tokens_out=0, value=100)
    with pytest.raises(TokenMigrated):
        manager.sell(BUYER, ready_token, 1, min_eth_out=0)
    with pytest.raises(TokenMigrated):
        manager.current_price(ready_token)


def test_progress_after_migration(manager, ready_token):
    manager.trigger_migration(OWNER, ready_token)
    progress = manager.migration_progress(ready_token)
    assert progress.migrated
    assert progress.reserve_balance == 0
    assert progress.eth_needed == progress.threshold


# =============================================================================
# MIGRATE WITH FEE
# =============================================================================

def test_migrate_with_fee(manager, ready_token):
    reserve = manager.token_info(ready_token).reserve_balance
    treasury = manager.treasury.balance

    position = manager.migrate_with_fee(MIGRATOR, ready_token, 500)

    fee = reserve * 500 // 10_000
    assert manager.treasury.balance == treasury + fee
    assert position.eth_amount == reserve - fee
    assert manager.get_record(ready_token).migrated


def test_migrate_with_fee_requires_migrator(manager, ready_token):
    with pytest.raises(Unauthorized):
        manager.migrate_with_fee(OWNER, ready_token, 100)


def test_migrate_with_fee_bounds(manager, ready_token):
    with pytest.raises(InvalidFee):
        manager.migrate_with_fee(MIGRATOR, ready_token, 1001)
    with pytest.raises(InvalidFee):
        manager.migrate_with_fee(MIGRATOR, ready_token, -1)
    assert not manager.get_record(ready_token).migrated

    manager.migrate_with_fee(MIGRATOR, ready_token, 1000)
    with pytest.raises(AlreadyMigrated):
        manager.migrate_with_fee(MIGRATOR, ready_token, 0)


def test_set_migrator_hands_over_role(manager, ready_token):
    manager.set_migrator(OWNER, STRANGER)
    with pytest.raises(Unauthorized):
        manager.migrate_with_fee(MIGRATOR, ready_token, 0)
    manager.migrate_with_fee(STRANGER, ready_token, 0)


# =============================================================================
# ROLLBACK
# =============================================================================

class BrokenVenue(InMemoryVenue):
    def provide_liquidity(self, token, eth_amount, token_amount):
        raise ConnectionError("router unreachable")


def test_venue_failure_rolls_back_migration(make_manager):
    manager = make_manager(venue=BrokenVenue())
    manager.register_claim(OWNER, BUYER, "Alki", "ALKI")
    token = manager.create_token(BUYER, initial_eth_in=0, value=10)
    manager.buy(BUYER, token, min_tokens_out=0, value=200)

    record = manager.get_record(token)
    supply = manager.ledgers.get(token).total_supply()

    with pytest.raises(ConnectionError):
        manager.migrate_with_fee(OWNER, token, 500)

    assert manager.get_record(token) == record
    assert manager.ledgers.get(token).total_supply() == supply
    assert manager.treasury.balance == 10 + 2
    assert manager.position_for(token) is None
    assert manager.list_ready_for_migration() == [token]


class FlakyVenue(InMemoryVenue):
    """Allocates a position, then fails the first hand-off."""
    failures = 1

    def provide_liquidity(self, token, eth_amount, token_amount):
        position = super().provide_liquidity(token, eth_amount, token_amount)
        if self.failures:
            self.failures -= 1
            raise ConnectionError("router timed out")
        return position


def test_failed_migration_does_not_consume_position_id(make_manager):
    venue = FlakyVenue()
    manager = make_manager(venue=venue)
    manager.register_claim(OWNER, BUYER, "Alki", "ALKI")
    token = manager.create_token(BUYER, initial_eth_in=0, value=10)
    manager.buy(BUYER, token, min_tokens_out=0, value=200)

    with pytest.raises(ConnectionError):
        manager.trigger_migration(OWNER, token)
    assert venue.positions == {}

    position = manager.trigger_migration(OWNER, token)
    assert position.position_id == "pos-1"
    assert list(venue.positions) == ["pos-1"]


def test_venue_restore_rewinds_ids():
    venue = InMemoryVenue(first_id=4)
    snap = venue.snapshot()
    venue.provide_liquidity(BUYER, 1, 1)
    venue.restore(snap)
    assert venue.provide_liquidity(BUYER, 1, 1).position_id == "pos-4"
