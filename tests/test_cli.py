"""
CLI smoke tests
"""

import json

from hoodcoin.cli import (
    SIM_BUYER,
    SIM_CREATOR,
    SIM_OWNER,
    build_manager,
    load_state,
    main,
    run_simulation,
    save_state,
)
from hoodcoin.config import HoodConfig


def test_curve_command(capsys):
    assert main(["curve"]) == 0
    out = capsys.readouterr().out
    assert "band 4:" in out
    assert "Liquidity allocation" in out
    assert "Cost to buy out" in out


def test_quote_buy_command(capsys):
    assert main(["quote-buy", "--value", "0.000000428"]) == 0
    out = capsys.readouterr().out
    assert "Tokens:  1" in out


def test_quote_sell_over_supply_fails():
    assert main(["quote-sell", "--amount", "10", "--supply", "5"]) == 2


def test_no_command_prints_help(capsys):
    assert main([]) == 1


def test_simulation_reaches_migration():
    config = HoodConfig()
    report = run_simulation(config)
    token = report["token"]

    assert token["state"] == "migrated"
    assert token["reserve_balance"] == 0
    assert report["ledger_total_supply"] == token["circulating_supply"]
    assert [s["step"] for s in report["steps"]][:2] == ["register_claim", "create_token"]
    assert report["steps"][-1]["step"] == "migrate"
    assert report["treasury_balance"] >= config.creation_fee


def test_simulate_writes_report(tmp_path):
    output = tmp_path / "report.json"
    assert main(["simulate", "--output", str(output)]) == 0
    report = json.loads(output.read_text())
    assert report["token"]["location_name"] == "Kerry Park"
    assert report["progress"]["migrated"] is True


def test_state_file_round_trip(tmp_path):
    config = HoodConfig()
    path = str(tmp_path / "state.json")
    assert load_state(path) is None

    manager = build_manager(config, SIM_OWNER)
    manager.register_claim(SIM_OWNER, SIM_CREATOR, "Kerry Park", "KERRY")
    token = manager.create_token(SIM_CREATOR, initial_eth_in=0, value=config.creation_fee)
    minted = manager.buy(SIM_BUYER, token, min_tokens_out=0, value=10 ** 16)
    save_state(manager, path)

    restored = build_manager(config, SIM_OWNER, state=load_state(path))
    assert restored.get_record(token) == manager.get_record(token)
    assert restored.get_token("Kerry Park") == token
    assert restored.balance_of(token, SIM_BUYER) == minted
    assert restored.claim_for("Kerry Park").consumed

    # the reloaded ledger and record still agree, so trading continues
    restored.sell(SIM_BUYER, token, minted // 2, min_eth_out=0)
    assert restored.ledgers.get(token).total_supply() == restored.token_info(token).circulating_supply
