#!/usr/bin/env python3
"""
HoodCoin CLI

Usage:
    hoodcoin curve
    hoodcoin quote-buy --value 0.01 [--supply 0]
    hoodcoin quote-sell --amount 1000000 [--supply 5000000]
    hoodcoin serve --owner 0x... [--config hood.json] [--port 8080] [--state state.json]
    hoodcoin status [--url http://localhost:8080]
    hoodcoin simulate [--output report.json]

ETH amounts on the command line are in ETH, token amounts in whole tokens.
"""

import argparse
import json
import logging
import os
import sys
import threading
import time
from decimal import Decimal
from typing import List, Optional

from web3 import Web3

from .bonding_math import cost_between, quote_buy, quote_sell
from .collaborators import (
    InMemoryLedgerFactory,
    InMemoryPayments,
    InMemoryTreasury,
    InMemoryVenue,
)
from .config import HoodConfig, load_config
from .curve import format_curve
from .errors import HoodError
from .hood_types import format_eth
from .manager import HoodCoinManager
from .roles import RoleRegistry
from .rpc_client import HoodClient, HoodClientError
from .token_store import TokenRecordStore

log = logging.getLogger("hoodcoin.cli")

# Well-known dev accounts, only used by `simulate`
SIM_OWNER = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
SIM_CREATOR = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
SIM_BUYER = "0x3C44CdDdB6a900fa2b585dd299e03d12FA4293BC"

# Serializes state file writes from concurrent requests
_state_lock = threading.Lock()


def build_manager(config: HoodConfig, owner: str, migrator: str = "",
                  state: Optional[dict] = None) -> HoodCoinManager:
    """Manager wired to in-memory collaborators, optionally seeded from a state file."""
    store = None
    ledgers = InMemoryLedgerFactory()
    venue = InMemoryVenue()
    if state:
        store = TokenRecordStore.from_dict(state.get("store", {}))
        ledgers = InMemoryLedgerFactory.from_dict(state.get("ledgers", {}))
        venue = InMemoryVenue(first_id=len(state.get("store", {}).get("positions", [])) + 1)
    return HoodCoinManager(
        config=config,
        roles=RoleRegistry(owner, migrator),
        ledgers=ledgers,
        venue=venue,
        treasury=InMemoryTreasury(),
        payments=InMemoryPayments(),
        store=store,
    )


def load_state(path: str) -> Optional[dict]:
    """State written by save_state, or None if the file does not exist yet."""
    if not os.path.exists(path):
        return None
    with open(path, "r") as f:
        state = json.load(f)
    log.info(f"State loaded from {path} ({len(state.get('store', {}).get('tokens', []))} tokens)")
    return state


def save_state(manager: HoodCoinManager, path: str):
    state = manager.export_state()
    with _state_lock, open(path, "w") as f:
        json.dump(state, f, indent=2)
    log.debug(f"State saved to {path}")


def _tokens_to_units(config: HoodConfig, amount: str) -> int:
    return int(Decimal(amount) * config.curve.price_scale)


def _units_to_tokens(config: HoodConfig, units: int) -> Decimal:
    return Decimal(units) / Decimal(config.curve.price_scale)


# ============ COMMANDS ============

def cmd_curve(args, config: HoodConfig):
    print("=" * 60)
    print("HOODCOIN BONDING CURVE")
    print("=" * 60)
    print(format_curve(config.curve))
    print()
    print(f"Curve supply:         {_units_to_tokens(config, config.curve_supply)} tokens")
    print(f"Liquidity allocation: {_units_to_tokens(config, config.liquidity_allocation)} tokens")
    print(f"Migration threshold:  {format_eth(config.migration_threshold)}")
    print(f"Cost to buy out:      {format_eth(cost_between(config.curve, 0, config.curve_supply))}")
    return 0


def cmd_quote_buy(args, config: HoodConfig):
    value = Web3.to_wei(Decimal(args.value), "ether")
    supply = _tokens_to_units(config, args.supply)
    quote = quote_buy(config.curve, supply, value)
    print(f"Budget:  {format_eth(value)}")
    print(f"Tokens:  {_units_to_tokens(config, quote.tokens_out)}")
    print(f"Spent:   {format_eth(quote.eth_spent)}")
    print(f"Refund:  {format_eth(quote.eth_refund)}")
    print(f"Unused:  {quote.eth_unused} wei")
    return 0


def cmd_quote_sell(args, config: HoodConfig):
    amount = _tokens_to_units(config, args.amount)
    supply = _tokens_to_units(config, args.supply)
    quote = quote_sell(config.curve, supply, amount)
    print(f"Tokens in: {_units_to_tokens(config, amount)}")
    print(f"ETH out:   {format_eth(quote.eth_out)}")
    return 0


def cmd_serve(args, config: HoodConfig):
    from .server import run_server

    if not args.owner:
        log.error("--owner required")
        return 1
    state = load_state(args.state) if args.state else None
    manager = build_manager(config, args.owner, args.migrator or "", state)

    on_change = None
    if args.state:
        def on_change():
            save_state(manager, args.state)

    run_server(manager, args.host or config.http_host, args.port or config.http_port, on_change)
    return 0


def cmd_status(args, config: HoodConfig):
    client = HoodClient(args.url)
    try:
        status = client.status()
        ready = client.list_ready_for_migration()
    except HoodClientError as e:
        log.error(f"Server unreachable: {e}")
        return 1

    print(f"Tokens:            {status['tokens']}")
    print(f"Ready (migration): {status['ready_for_migration']}")
    print(f"Migrated:          {status['migrated']}")
    print(f"Owner:             {status['roles']['owner']}")
    for token in ready:
        progress = client.migration_progress(token)
        print(f"  {token}  reserve {format_eth(progress['reserve_balance'])} ({progress['percent']}%)")
    return 0


def run_simulation(config: HoodConfig, location_name: str = "Kerry Park",
                   symbol: str = "KERRY") -> dict:
    """
    Full local lifecycle: claim, create, buy to readiness, sell, migrate.

    Returns:
        Report dict (also what `simulate --output` writes)
    """
    manager = build_manager(config, SIM_OWNER)
    steps = []

    def record(step: str, **details):
        steps.append({"step": step, "timestamp": int(time.time()), **details})

    manager.register_claim(SIM_OWNER, SIM_CREATOR, location_name, symbol)
    record("register_claim", location_name=location_name, creator=SIM_CREATOR)

    initial = config.migration_threshold // 10
    token = manager.create_token(SIM_CREATOR, initial_eth_in=initial,
                                 value=config.creation_fee + initial)
    record("create_token", token=token, initial_eth_in=initial,
           creator_tokens=manager.balance_of(token, SIM_CREATOR))

    while not manager.token_info(token).ready_for_migration:
        needed = manager.migration_progress(token).eth_needed
        value = needed + needed // 50 + 1
        minted = manager.buy(SIM_BUYER, token, min_tokens_out=0, value=value)
        record("buy", value=value, tokens_out=minted,
               reserve=manager.token_info(token).reserve_balance)

    to_sell = manager.balance_of(token, SIM_BUYER) // 4
    paid = manager.sell(SIM_BUYER, token, to_sell, min_eth_out=0)
    record("sell", amount=to_sell, eth_out=paid)

    ready = manager.list_ready_for_migration()
    position = manager.trigger_migration(SIM_OWNER, token)
    record("migrate", ready=ready, position=position.to_dict())

    return {
        "token": manager.get_record(token).to_dict(),
        "progress": manager.migration_progress(token).to_dict(),
        "treasury_balance": manager.treasury.balance,
        "payments": manager.payments.sent,
        "ledger_total_supply": manager.ledgers.get(token).total_supply(),
        "steps": steps,
    }


def cmd_simulate(args, config: HoodConfig):
    report = run_simulation(config, args.location, args.symbol)
    token = report["token"]

    print("=" * 60)
    print(f"SIMULATION: {token['location_name']} ({token['symbol']})")
    print("=" * 60)
    for step in report["steps"]:
        print(f"  {step['step']}")
    print()
    print(f"State:     {token['state']}")
    print(f"Supply:    {_units_to_tokens(config, token['circulating_supply'])} tokens")
    print(f"Treasury:  {format_eth(report['treasury_balance'])}")

    if args.output:
        with open(args.output, "w") as f:
            json.dump(report, f, indent=2)
        log.info(f"Report written to {args.output}")
    return 0


# ============ MAIN ============

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="HoodCoin bonding curve engine")
    parser.add_argument("--config", "-c", help="Config file path (JSON)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    subparsers.add_parser("curve", help="Show the curve table")

    qb = subparsers.add_parser("quote-buy", help="Quote a buy against the curve")
    qb.add_argument("--value", required=True, help="ETH budget (e.g. 0.01)")
    qb.add_argument("--supply", default="0", help="Current supply in tokens (default: 0)")

    qs = subparsers.add_parser("quote-sell", help="Quote a sell against the curve")
    qs.add_argument("--amount", required=True, help="Tokens to sell")
    qs.add_argument("--supply", required=True, help="Current supply in tokens")

    serve = subparsers.add_parser("serve", help="Run the REST server")
    serve.add_argument("--owner", help="Owner address")
    serve.add_argument("--migrator", help="Migrator address (default: owner)")
    serve.add_argument("--host", help="Bind host (default: from config)")
    serve.add_argument("--port", type=int, help="Bind port (default: from config)")
    serve.add_argument("--state", help="JSON state file, loaded at start and rewritten after each change")

    status = subparsers.add_parser("status", help="Query a running server")
    status.add_argument("--url", default="http://localhost:8080", help="Server URL")

    sim = subparsers.add_parser("simulate", help="Run a full local lifecycle")
    sim.add_argument("--location", default="Kerry Park", help="Location name")
    sim.add_argument("--symbol", default="KERRY", help="Token symbol")
    sim.add_argument("--output", "-o", help="Write JSON report here")

    return parser


COMMANDS = {
    "curve": cmd_curve,
    "quote-buy": cmd_quote_buy,
    "quote-sell": cmd_quote_sell,
    "serve": cmd_serve,
    "status": cmd_status,
    "simulate": cmd_simulate,
}


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s [%(levelname)s] %(message)s'
    )

    handler = COMMANDS.get(args.command)
    if handler is None:
        parser.print_help()
        return 1

    try:
        config = load_config(args.config)
        return handler(args, config)
    except HoodError as e:
        log.error(f"{e.kind}: {e.message}")
        return 2
    except (ValueError, OSError) as e:
        log.error(f"{e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
