"""
HoodCoin - Lifecycle Manager

Creation, buy, sell and migration of neighborhood tokens.

Every state-changing call:
  1. runs under the manager lock (one mutation at a time, re-entrant),
  2. checks roles and state, prices the trade with bonding_math,
  3. commits the TokenRecord to the store,
  4. only then talks to collaborators (treasury, ledger, venue, payments).

If anything raises, the store, the role registry and every collaborator
that supports snapshot()/restore() go back to their state at entry.
Views take the same lock, so another thread sees a call's effects only
once it has returned; callbacks made from inside a call re-enter the lock
and see what that call has committed so far.
"""

import logging
import threading
import time
from contextlib import contextmanager
from typing import List, Optional

from web3 import Web3

from .bonding_math import apply_bps, check_uint, checked_add, price_at, quote_buy, quote_sell
from .collaborators import EthPayments, LedgerFactory, LiquidityVenue, Treasury
from .config import HoodConfig
from .errors import (
    AlreadyMigrated,
    InsufficientBalance,
    InsufficientPayment,
    InsufficientSupply,
    InvalidFee,
    NotReady,
    SlippageExceeded,
    TokenMigrated,
    Unauthorized,
    UnknownToken,
)
from .hood_types import (
    BPS_DENOMINATOR,
    BuyQuote,
    MigrationProgress,
    NeighborhoodClaim,
    Position,
    TokenInfo,
    TokenRecord,
    TokenState,
    TradePreview,
    format_eth,
    normalize_address,
)
from .roles import RoleRegistry
from .token_store import TokenRecordStore

log = logging.getLogger("hoodcoin.manager")


class HoodCoinManager:
    """
    Token lifecycle manager.

    Usage:
        manager = HoodCoinManager(config, roles, ledgers=InMemoryLedgerFactory(),
                                  venue=InMemoryVenue(), treasury=InMemoryTreasury(),
                                  payments=InMemoryPayments())

        manager.register_claim(verifier, creator, "Kerry", "KERY")
        token = manager.create_token(creator, initial_eth_in=10**15,
                                     value=config.creation_fee + 10**15)

        minted = manager.buy(buyer, token, min_tokens_out=0, value=10**16)
        paid = manager.sell(buyer, token, minted // 2, min_eth_out=0)

        for token in manager.list_ready_for_migration():
            manager.trigger_migration(owner, token)
    """

    def __init__(self,
                 config: HoodConfig,
                 roles: RoleRegistry,
                 ledgers: LedgerFactory,
                 venue: LiquidityVenue,
                 treasury: Treasury,
                 payments: EthPayments,
                 store: Optional[TokenRecordStore] = None):
        self.config = config
        self.curve = config.curve
        self.roles = roles
        self.ledgers = ledgers
        self.venue = venue
        self.treasury = treasury
        self.payments = payments
        self.store = store if store is not None else TokenRecordStore()
        self._lock = threading.RLock()

    # ═══════════════════════════════════════════════════════════════════════
    # ATOMICITY
    # ═══════════════════════════════════════════════════════════════════════

    def _participants(self) -> list:
        parts = [self.store, self.roles, self.ledgers, self.venue, self.treasury, self.payments]
        return [p for p in parts if hasattr(p, "snapshot") and hasattr(p, "restore")]

    @contextmanager
    def _atomic(self):
        """Serialize the call and undo all of its effects if it raises."""
        with self._lock:
            snapshots = [(p, p.snapshot()) for p in self._participants()]
            try:
                yield
            except BaseException:
                for participant, snap in reversed(snapshots):
                    participant.restore(snap)
                raise

    def _latch_readiness(self, record: TokenRecord) -> bool:
        """ACTIVE -> READY_FOR_MIGRATION once reserve reaches the threshold."""
        if record.state is TokenState.ACTIVE and record.reserve_balance >= self.config.migration_threshold:
            record.state = record.state.transition(TokenState.READY_FOR_MIGRATION)
            return True
        return False

    @staticmethod
    def token_handle(location_name: str) -> str:
        """Deterministic token address for a location name."""
        digest = Web3.keccak(text=f"hoodcoin:{location_name}")
        return normalize_address("0x" + bytes(digest[-20:]).hex())

    # ═══════════════════════════════════════════════════════════════════════
    # ROLES
    # ═══════════════════════════════════════════════════════════════════════

    def add_verifier(self, caller: str, verifier: str):
        with self._atomic():
            self.roles.add_verifier(caller, verifier)

    def remove_verifier(self, caller: str, verifier: str):
        with self._atomic():
            self.roles.remove_verifier(caller, verifier)

    def set_migrator(self, caller: str, migrator: str):
        with self._atomic():
            self.roles.set_migrator(caller, migrator)

    def transfer_ownership(self, caller: str, new_owner: str):
        with self._atomic():
            self.roles.transfer_ownership(caller, new_owner)

    def is_verifier(self, address: str) -> bool:
        with self._lock:
            return self.roles.is_verifier(address)

    # ═══════════════════════════════════════════════════════════════════════
    # CLAIMS AND CREATION
    # ═══════════════════════════════════════════════════════════════════════

    def register_claim(self, verifier: str, creator: str,
                       location_name: str, symbol: str) -> NeighborhoodClaim:
        """
        Grant creator the one-time right to create the token for location_name.

        Raises:
            Unauthorized: verifier is not a registered verifier
            DuplicateLocation: the location already has a claim or a token
        """
        if not isinstance(location_name, str) or not location_name.strip():
            raise ValueError("location_name is required")
        if not isinstance(symbol, str) or not symbol.strip():
            raise ValueError("symbol is required")

        with self._atomic():
            self.roles.require_verifier(verifier)
            claim = NeighborhoodClaim(
                location_name=location_name,
                creator=normalize_address(creator),
                symbol=symbol,
                verified_by=normalize_address(verifier),
            )
            self.store.add_claim(claim)

        log.info(f"Location verified: {location_name} ({symbol}) for {claim.creator}")
        return claim

    def create_token(self, caller: str, initial_eth_in: int, value: int,
                     location_name: Optional[str] = None) -> str:
        """
        Create the token for caller's pending claim.

        Args:
            caller: Claim holder
            initial_eth_in: ETH spent on the creator's initial allocation
            value: ETH supplied with the call (creation_fee + initial_eth_in)
            location_name: Which claim to use (default: caller's oldest)

        Returns:
            Token handle (checksum address)

        Raises:
            Unauthorized: caller holds no unconsumed claim
            InsufficientPayment: value < creation_fee + initial_eth_in
        """
        check_uint(initial_eth_in, "initial_eth_in")
        check_uint(value, "value")
        caller = normalize_address(caller)
        fee = self.config.creation_fee

        with self._atomic():
            claim = self.store.pending_claim_for(caller, location_name)
            if claim is None:
                raise Unauthorized(f"{caller} holds no unconsumed claim")

            required = checked_add(fee, initial_eth_in)
            if value < required:
                raise InsufficientPayment(f"Sent {value} wei, need {required}")

            if initial_eth_in:
                quote = quote_buy(self.curve, 0, initial_eth_in)
            else:
                quote = BuyQuote(tokens_out=0, eth_spent=0, eth_refund=0, eth_budget=0)

            token = self.token_handle(claim.location_name)
            record = TokenRecord(
                token=token,
                location_name=claim.location_name,
                symbol=claim.symbol,
                creator=caller,
                reserve_balance=quote.eth_spent,
                circulating_supply=quote.tokens_out,
            )
            became_ready = self._latch_readiness(record)
            self.store.add(record)

            claim.consumed = True
            claim.token = token
            self.store.put_claim(claim)

            # interactions
            ledger = self.ledgers.create(token, claim.location_name, claim.symbol)
            if fee:
                self.treasury.receive(fee)
            if quote.tokens_out:
                ledger.mint(caller, quote.tokens_out)
            unused = value - fee - quote.eth_spent
            if unused:
                self.payments.send(caller, unused)

        log.info(f"Token created: {claim.location_name} ({claim.symbol}) at {token}, "
                 f"creator {caller} got {quote.tokens_out} for {format_eth(quote.eth_spent)}")
        if became_ready:
            log.info(f"Token {token} ready for migration")
        return token

    # ═══════════════════════════════════════════════════════════════════════
    # TRADING
    # ═══════════════════════════════════════════════════════════════════════

    def buy(self, caller: str, token: str, min_tokens_out: int, value: int) -> int:
        """
        Buy tokens with value wei (mint royalty taken first).

        Returns:
            Tokens minted to caller

        Raises:
            TokenMigrated, InsufficientPayment, CurveExhausted, SlippageExceeded
        """
        check_uint(min_tokens_out, "min_tokens_out")
        check_uint(value, "value")
        caller = normalize_address(caller)

        with self._atomic():
            record = self.store.get(token)
            if not record.state.tradable:
                raise TokenMigrated(f"Token {token} has migrated")
            if value == 0:
                raise InsufficientPayment("No ETH sent")

            net, royalty = apply_bps(value, self.config.mint_royalty_bps)
            quote = quote_buy(self.curve, record.circulating_supply, net)
            if quote.tokens_out == 0:
                raise InsufficientPayment(f"{value} wei buys no tokens at the current price")
            if quote.tokens_out < min_tokens_out:
                raise SlippageExceeded(f"Would mint {quote.tokens_out}, minimum {min_tokens_out}")

            record.reserve_balance = checked_add(record.reserve_balance, quote.eth_spent)
            record.circulating_supply = checked_add(record.circulating_supply, quote.tokens_out)
            record.royalties_paid += royalty
            became_ready = self._latch_readiness(record)
            self.store.put(record)

            # interactions
            if royalty:
                self.treasury.receive(royalty)
            self.ledgers.get(token).mint(caller, quote.tokens_out)
            if quote.eth_unused:
                self.payments.send(caller, quote.eth_unused)

        log.info(f"Buy {record.symbol}: {caller} minted {quote.tokens_out} for "
                 f"{format_eth(quote.eth_spent)} (royalty {royalty} wei, refund {quote.eth_unused} wei)")
        if became_ready:
            log.info(f"Token {token} ready for migration (reserve {format_eth(record.reserve_balance)})")
        return quote.tokens_out

    def sell(self, caller: str, token: str, token_amount: int, min_eth_out: int) -> int:
        """
        Sell token_amount back to the curve (burn royalty taken from the payout).

        Returns:
            ETH paid to caller

        Raises:
            TokenMigrated, InsufficientBalance, InsufficientSupply, SlippageExceeded
        """
        check_uint(token_amount, "token_amount")
        check_uint(min_eth_out, "min_eth_out")
        if token_amount == 0:
            raise ValueError("token_amount must be positive")
        caller = normalize_address(caller)

        with self._atomic():
            record = self.store.get(token)
            if not record.state.tradable:
                raise TokenMigrated(f"Token {token} has migrated")

            ledger = self.ledgers.get(token)
            balance = ledger.balance_of(caller)
            if balance < token_amount:
                raise InsufficientBalance(f"{caller} holds {balance}, selling {token_amount}")

            gross = quote_sell(self.curve, record.circulating_supply, token_amount).eth_out
            if gross > record.reserve_balance:
                raise InsufficientSupply(f"Reserve {record.reserve_balance} cannot cover {gross}")
            net, royalty = apply_bps(gross, self.config.burn_royalty_bps)
            if net < min_eth_out:
                raise SlippageExceeded(f"Would pay {net}, minimum {min_eth_out}")

            record.reserve_balance -= gross
            record.circulating_supply -= token_amount
            record.royalties_paid += royalty
            self.store.put(record)

            # interactions
            ledger.burn(caller, token_amount)
            if royalty:
                self.treasury.receive(royalty)
            if net:
                self.payments.send(caller, net)

        log.info(f"Sell {record.symbol}: {caller} burned {token_amount} for {format_eth(net)} "
                 f"(royalty {royalty} wei)")
        return net

    # ═══════════════════════════════════════════════════════════════════════
    # MIGRATION
    # ═══════════════════════════════════════════════════════════════════════

    def list_ready_for_migration(self) -> List[str]:
        """Tokens with ready_for_migration and not migrated, in creation order."""
        with self._lock:
            return self.store.ready_for_migration()

    def trigger_migration(self, caller: str, token: str) -> Position:
        """
        Owner-only migration of a ready token to the liquidity venue.

        Raises:
            Unauthorized, AlreadyMigrated, NotReady
        """
        with self._atomic():
            self.roles.require_owner(caller)
            return self._migrate(token, 0)

    def migrate_with_fee(self, caller: str, token: str, fee_bps: int) -> Position:
        """
        Migrator-only migration; fee_bps of the reserve goes to the treasury.

        Raises:
            Unauthorized, InvalidFee, AlreadyMigrated, NotReady
        """
        with self._atomic():
            self.roles.require_migrator(caller)
            if isinstance(fee_bps, bool) or not isinstance(fee_bps, int) \
                    or not 0 <= fee_bps <= self.config.max_migration_fee_bps:
                raise InvalidFee(f"fee_bps {fee_bps} outside [0, {self.config.max_migration_fee_bps}]")
            return self._migrate(token, fee_bps)

    def _migrate(self, token: str, fee_bps: int) -> Position:
        record = self.store.get(token)
        if record.migrated:
            raise AlreadyMigrated(f"Token {token} already migrated")
        if not record.ready_for_migration:
            raise NotReady(f"Token {token} not ready for migration")

        reserve = record.reserve_balance
        fee = reserve * fee_bps // BPS_DENOMINATOR
        eth_to_venue = reserve - fee
        allocation = self.config.liquidity_allocation

        record.state = record.state.transition(TokenState.MIGRATED)
        record.reserve_balance = 0
        record.circulating_supply = checked_add(record.circulating_supply, allocation)
        record.royalties_paid += fee
        record.migrated_at = int(time.time())
        self.store.put(record)

        # interactions
        if fee:
            self.treasury.receive(fee)
        self.ledgers.get(token).mint(self.venue.address, allocation)
        position = self.venue.provide_liquidity(token, eth_to_venue, allocation)
        self.store.record_position(position)

        log.info(f"Token {token} migrated: {format_eth(eth_to_venue)} + {allocation} tokens "
                 f"to venue (fee {fee} wei), position {position.position_id}")
        return position

    # ═══════════════════════════════════════════════════════════════════════
    # VIEWS (take the lock, so a call in progress is never half-visible)
    # ═══════════════════════════════════════════════════════════════════════

    def price_at(self, supply: int) -> int:
        return price_at(self.curve, supply)

    def current_price(self, token: str) -> int:
        with self._lock:
            record = self.store.get(token)
        if not record.state.tradable:
            raise TokenMigrated(f"Token {token} has migrated")
        return price_at(self.curve, record.circulating_supply)

    def token_info(self, token: str) -> TokenInfo:
        with self._lock:
            record = self.store.get(token)
        return TokenInfo(
            reserve_balance=record.reserve_balance,
            circulating_supply=record.circulating_supply,
            ready_for_migration=record.ready_for_migration,
            migrated=record.migrated,
        )

    def migration_progress(self, token: str) -> MigrationProgress:
        with self._lock:
            record = self.store.get(token)
        threshold = self.config.migration_threshold
        reserve = record.reserve_balance
        return MigrationProgress(
            migrated=record.migrated,
            reserve_balance=reserve,
            threshold=threshold,
            percent=min(100, reserve * 100 // threshold),
            eth_needed=max(0, threshold - reserve),
        )

    def get_record(self, token: str) -> TokenRecord:
        with self._lock:
            return self.store.get(token)

    def get_token(self, location_name: str) -> str:
        with self._lock:
            token = self.store.token_for_location(location_name)
        if token is None:
            raise UnknownToken(f"No token for location {location_name}")
        return token

    def claim_for(self, location_name: str) -> Optional[NeighborhoodClaim]:
        with self._lock:
            return self.store.get_claim(location_name)

    def claims(self, include_consumed: bool = True) -> List[NeighborhoodClaim]:
        with self._lock:
            return self.store.list_claims(include_consumed)

    def tokens(self) -> List[TokenRecord]:
        with self._lock:
            return self.store.list_tokens()

    def position_for(self, token: str) -> Optional[Position]:
        with self._lock:
            return self.store.position_for(token)

    def balance_of(self, token: str, address: str) -> int:
        with self._lock:
            self.store.get(token)
            return self.ledgers.get(token).balance_of(address)

    def preview_buy(self, token: str, value: int) -> TradePreview:
        """What buy(value) would do right now, royalty included."""
        check_uint(value, "value")
        with self._lock:
            record = self.store.get(token)
        if not record.state.tradable:
            raise TokenMigrated(f"Token {token} has migrated")
        net, royalty = apply_bps(value, self.config.mint_royalty_bps)
        quote = quote_buy(self.curve, record.circulating_supply, net)
        return TradePreview(
            gross_eth=value,
            royalty=royalty,
            net_eth=quote.eth_spent,
            tokens=quote.tokens_out,
            eth_unused=quote.eth_unused,
        )

    def preview_sell(self, token: str, token_amount: int) -> TradePreview:
        """What sell(token_amount) would pay right now, royalty included."""
        check_uint(token_amount, "token_amount")
        with self._lock:
            record = self.store.get(token)
        if not record.state.tradable:
            raise TokenMigrated(f"Token {token} has migrated")
        gross = quote_sell(self.curve, record.circulating_supply, token_amount).eth_out
        net, royalty = apply_bps(gross, self.config.burn_royalty_bps)
        return TradePreview(gross_eth=gross, royalty=royalty, net_eth=net, tokens=token_amount)

    def status(self) -> dict:
        with self._lock:
            return {
                "tokens": len(self.store),
                "ready_for_migration": len(self.store.ready_for_migration()),
                "migrated": len(self.store.list_tokens(TokenState.MIGRATED)),
                "roles": self.roles.to_dict(),
                "config": self.config.to_dict(),
            }

    def export_state(self) -> dict:
        """Committed store contents and ledger balances, for `serve --state`."""
        with self._lock:
            return {"store": self.store.to_dict(), "ledgers": self.ledgers.to_dict()}
