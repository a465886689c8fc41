"""
Unit tests for bonding math
Tests exact band walks, rounding direction, monotonicity and edge cases
"""

import pytest
from web3 import Web3

from hoodcoin.bonding_math import (
    apply_bps,
    check_uint,
    cost_between,
    price_at,
    quote_buy,
    quote_sell,
)
from hoodcoin.curve import TOKEN_UNIT, default_curve
from hoodcoin.errors import ArithmeticOverflow, CurveExhausted, InsufficientSupply
from hoodcoin.hood_types import UINT256_MAX


# =============================================================================
# CONCRETE SCENARIOS
# =============================================================================

def test_buy_within_first_band(small_curve):
    quote = quote_buy(small_curve, 0, 5_000_000)
    assert quote.tokens_out == 5_000_000
    assert quote.eth_spent == 5_000_000
    assert quote.eth_refund == 0
    assert quote.eth_unused == 0


def test_buy_crossing_band_boundary(small_curve):
    """1 token at price 1 fills band 0, remaining 9 buys 4 at price 2."""
    quote = quote_buy(small_curve, 9_999_999, 10)
    assert quote.tokens_out == 5
    assert quote.eth_spent == 9
    assert quote.eth_refund == 0
    assert quote.eth_unused == 1


def test_buy_to_curve_end_refunds_excess(small_curve):
    quote = quote_buy(small_curve, 19_999_990, 100)
    assert quote.tokens_out == 10
    assert quote.eth_spent == 20
    assert quote.eth_refund == 80
    assert quote.eth_unused == 80


def test_buy_at_curve_end_raises(small_curve):
    with pytest.raises(CurveExhausted):
        quote_buy(small_curve, 20_000_000, 1)


def test_buy_too_small_for_one_unit(small_curve):
    quote = quote_buy(small_curve, 10_000_000, 1)
    assert quote.tokens_out == 0
    assert quote.eth_spent == 0
    assert quote.eth_unused == 1


def test_buy_zero_budget(small_curve):
    quote = quote_buy(small_curve, 0, 0)
    assert quote.tokens_out == 0
    assert quote.eth_spent == 0


def test_sell_crossing_band_boundary(small_curve):
    """Burning from 10_000_002 prices two units at 2 and two at 1."""
    assert quote_sell(small_curve, 10_000_002, 4).eth_out == 6


def test_sell_more_than_supply(small_curve):
    with pytest.raises(InsufficientSupply):
        quote_sell(small_curve, 100, 101)


def test_sell_entire_supply(small_curve):
    assert quote_sell(small_curve, 10_000_005, 10_000_005).eth_out == 10_000_000 + 10


def test_price_at_boundaries(small_curve):
    assert price_at(small_curve, 0) == 1
    assert price_at(small_curve, 9_999_999) == 1
    assert price_at(small_curve, 10_000_000) == 2
    with pytest.raises(CurveExhausted):
        price_at(small_curve, 20_000_000)


def test_cost_between_matches_sell(small_curve):
    assert cost_between(small_curve, 9_999_998, 10_000_002) == 6
    with pytest.raises(CurveExhausted):
        cost_between(small_curve, 0, 20_000_001)


# =============================================================================
# PROPERTIES
# =============================================================================

def test_buy_monotone_in_budget(small_curve):
    for supply in (0, 9_999_990, 10_000_000, 19_999_000):
        previous = 0
        for budget in range(0, 60, 3):
            tokens = quote_buy(small_curve, supply, budget).tokens_out
            assert tokens >= previous
            previous = tokens


def test_sell_monotone_in_amount(small_curve):
    supply = 10_000_020
    previous = 0
    for amount in range(0, 60, 7):
        eth = quote_sell(small_curve, supply, amount).eth_out
        assert eth >= previous
        previous = eth


def test_band_crossing_associativity(small_curve):
    """One buy across the boundary == buy up to the boundary, then the rest."""
    start = 9_999_990
    to_boundary = cost_between(small_curve, start, 10_000_000)
    rest = 13

    whole = quote_buy(small_curve, start, to_boundary + rest)
    first = quote_buy(small_curve, start, to_boundary)
    second = quote_buy(small_curve, start + first.tokens_out, rest)

    assert first.tokens_out == 10
    assert whole.tokens_out == first.tokens_out + second.tokens_out
    assert whole.eth_spent == first.eth_spent + second.eth_spent


def test_round_trip_never_profits(small_curve):
    for supply, budget in [(0, 1_000), (9_999_990, 31), (10_000_000, 7)]:
        bought = quote_buy(small_curve, supply, budget)
        sold = quote_sell(small_curve, supply + bought.tokens_out, bought.tokens_out)
        assert sold.eth_out <= bought.eth_spent


def test_default_curve_rounding_favours_reserve():
    """Scaled prices: buys round cost up, sells round payout down."""
    curve = default_curve()
    budget = 12_345_678_901
    bought = quote_buy(curve, 0, budget)
    assert bought.tokens_out > 0
    assert bought.eth_spent <= budget
    assert bought.eth_spent * TOKEN_UNIT >= bought.tokens_out * curve[0].unit_price

    sold = quote_sell(curve, bought.tokens_out, bought.tokens_out)
    assert sold.eth_out <= bought.eth_spent


def test_default_curve_one_whole_token():
    curve = default_curve()
    price = Web3.to_wei("0.000000428", "ether")
    quote = quote_buy(curve, 0, price)
    assert quote.tokens_out == TOKEN_UNIT
    assert quote.eth_spent == price


# =============================================================================
# CHECKED ARITHMETIC
# =============================================================================

def test_apply_bps_splits_exactly():
    assert apply_bps(10_000, 100) == (9_900, 100)
    assert apply_bps(99, 100) == (98, 1)
    assert apply_bps(0, 150) == (0, 0)
    net, fee = apply_bps(123_456_789, 150)
    assert net + fee == 123_456_789


def test_apply_bps_rejects_bad_rate():
    with pytest.raises(ValueError):
        apply_bps(100, 10_001)


def test_check_uint_range():
    assert check_uint(UINT256_MAX) == UINT256_MAX
    with pytest.raises(ArithmeticOverflow):
        check_uint(UINT256_MAX + 1)
    with pytest.raises(ArithmeticOverflow):
        check_uint(-1)
    with pytest.raises(TypeError):
        check_uint(1.5)
    with pytest.raises(TypeError):
        check_uint(True)


def test_negative_budget_rejected(small_curve):
    with pytest.raises(ArithmeticOverflow):
        quote_buy(small_curve, 0, -5)
