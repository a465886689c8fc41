"""
Unit tests for the curve table: validation, band lookup, default curve
"""

import pytest
from web3 import Web3

from hoodcoin.curve import TOKEN_UNIT, CurveTable, default_curve, format_curve
from hoodcoin.errors import ArithmeticOverflow, CurveExhausted
from hoodcoin.hood_types import CurveStep


# =============================================================================
# VALIDATION
# =============================================================================

def test_empty_curve_rejected():
    with pytest.raises(ValueError):
        CurveTable([])


def test_bounds_must_strictly_increase():
    with pytest.raises(ValueError):
        CurveTable([CurveStep(10, 1), CurveStep(10, 2)])
    with pytest.raises(ValueError):
        CurveTable([CurveStep(10, 1), CurveStep(5, 2)])


def test_prices_must_be_positive_and_non_decreasing():
    with pytest.raises(ValueError):
        CurveTable([CurveStep(10, 0)])
    with pytest.raises(ValueError):
        CurveTable([CurveStep(10, 3), CurveStep(20, 2)])


def test_price_scale_must_be_positive():
    with pytest.raises(ValueError):
        CurveTable([CurveStep(10, 1)], price_scale=0)


# =============================================================================
# LOOKUP
# =============================================================================

def test_band_boundaries(small_curve):
    """A bound belongs to the next band."""
    assert small_curve.curve_supply == 20_000_000
    assert small_curve.band_index(0) == 0
    assert small_curve.band_index(9_999_999) == 0
    assert small_curve.band_index(10_000_000) == 1
    assert small_curve.band_index(19_999_999) == 1
    assert small_curve.band_start(0) == 0
    assert small_curve.band_start(1) == 10_000_000


def test_band_index_outside_curve(small_curve):
    with pytest.raises(CurveExhausted):
        small_curve.band_index(20_000_000)
    with pytest.raises(ArithmeticOverflow):
        small_curve.band_index(-1)


def test_dict_round_trip(small_curve):
    restored = CurveTable.from_dict(small_curve.to_dict())
    assert restored.steps == small_curve.steps
    assert restored.price_scale == small_curve.price_scale


# =============================================================================
# DEFAULT CURVE
# =============================================================================

def test_default_curve_shape():
    curve = default_curve()
    assert len(curve) == 5
    assert curve.price_scale == TOKEN_UNIT
    assert curve.curve_supply == 800_000_000 * TOKEN_UNIT
    assert curve[0].unit_price == Web3.to_wei("0.000000428", "ether")
    assert curve[4].unit_price == Web3.to_wei("0.0000428", "ether")
    prices = [step.unit_price for step in curve]
    assert prices == sorted(prices)


def test_format_curve_lists_every_band():
    text = format_curve(default_curve())
    lines = text.splitlines()
    assert len(lines) == 5
    assert lines[0].startswith("band 0:")
    assert "10000000" in lines[0]
