"""
HoodCoin - Bonding Math

Pure functions over a CurveTable. Pricing is piecewise-constant, so a
trade that spans several bands is priced band by band:

    buy:  positions [s, s + n) each cost the price of their own band
    sell: positions [s - n, s) each pay the price of their own band

All divisions floor. With price_scale > 1 a buy's per-band cost is rounded
up and a sell's per-band payout rounded down, so rounding never favours
the caller and reserve always covers the curve value of the supply.
"""

from typing import Tuple

from .curve import CurveTable
from .errors import ArithmeticOverflow, CurveExhausted, InsufficientSupply
from .hood_types import BPS_DENOMINATOR, UINT256_MAX, BuyQuote, SellQuote


# ═══════════════════════════════════════════════════════════════════════════════
# CHECKED ARITHMETIC
# ═══════════════════════════════════════════════════════════════════════════════

def check_uint(value: int, name: str = "amount") -> int:
    """Reject anything that is not an int in [0, 2**256)."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be integer, got {type(value).__name__}")
    if value < 0 or value > UINT256_MAX:
        raise ArithmeticOverflow(f"{name} out of uint256 range: {value}")
    return value


def checked_mul(a: int, b: int) -> int:
    product = a * b
    if product > UINT256_MAX:
        raise ArithmeticOverflow(f"{a} * {b} overflows uint256")
    return product


def checked_add(a: int, b: int) -> int:
    total = a + b
    if total > UINT256_MAX:
        raise ArithmeticOverflow(f"{a} + {b} overflows uint256")
    return total


def ceil_div(a: int, b: int) -> int:
    return -(-a // b)


def apply_bps(amount: int, bps: int) -> Tuple[int, int]:
    """
    Split amount into (net, fee) for a basis-point fee.

    net is floored; fee takes the remainder, so net + fee == amount.

    Examples:
        >>> apply_bps(10_000, 100)
        (9900, 100)
        >>> apply_bps(99, 100)
        (98, 1)
    """
    check_uint(amount)
    if not 0 <= bps <= BPS_DENOMINATOR:
        raise ValueError(f"bps must be in [0, {BPS_DENOMINATOR}], got {bps}")
    net = checked_mul(amount, BPS_DENOMINATOR - bps) // BPS_DENOMINATOR
    return net, amount - net


# ═══════════════════════════════════════════════════════════════════════════════
# QUOTES
# ═══════════════════════════════════════════════════════════════════════════════

def price_at(curve: CurveTable, supply: int) -> int:
    """Unit price of the band containing supply."""
    check_uint(supply, "supply")
    return curve[curve.band_index(supply)].unit_price


def quote_buy(curve: CurveTable, current_supply: int, eth_budget: int) -> BuyQuote:
    """
    Convert an ETH budget into tokens starting at current_supply.

    Stops when the budget cannot pay for one more unit, or when the curve
    is sold out; in the latter case the leftover budget is eth_refund.

    Raises:
        CurveExhausted: current_supply >= curve supply
        ArithmeticOverflow: an amount leaves the uint256 range
    """
    check_uint(current_supply, "current_supply")
    check_uint(eth_budget, "eth_budget")
    if current_supply >= curve.curve_supply:
        raise CurveExhausted(f"Curve sold out at supply {current_supply}")

    scale = curve.price_scale
    cursor = current_supply
    remaining = eth_budget
    tokens_out = 0
    eth_spent = 0

    index = curve.band_index(cursor)
    while index < len(curve) and remaining > 0:
        step = curve[index]
        room = step.supply_upper_bound - cursor
        affordable = checked_mul(remaining, scale) // step.unit_price
        if affordable == 0:
            # prices never decrease, later bands are no cheaper
            break

        take = min(affordable, room)
        cost = ceil_div(checked_mul(take, step.unit_price), scale)

        tokens_out = checked_add(tokens_out, take)
        eth_spent = checked_add(eth_spent, cost)
        remaining -= cost
        cursor += take

        if cursor < step.supply_upper_bound:
            break
        index += 1

    eth_refund = remaining if cursor >= curve.curve_supply else 0
    return BuyQuote(
        tokens_out=tokens_out,
        eth_spent=eth_spent,
        eth_refund=eth_refund,
        eth_budget=eth_budget,
    )


def quote_sell(curve: CurveTable, current_supply: int, tokens_in: int) -> SellQuote:
    """
    ETH owed for burning tokens_in from current_supply downward.

    Raises:
        InsufficientSupply: tokens_in > current_supply
    """
    check_uint(current_supply, "current_supply")
    check_uint(tokens_in, "tokens_in")
    if tokens_in > current_supply:
        raise InsufficientSupply(f"Cannot sell {tokens_in} of supply {current_supply}")

    scale = curve.price_scale
    cursor = current_supply
    remaining = tokens_in
    eth_out = 0

    while remaining > 0:
        index = curve.band_index(cursor - 1)
        step = curve[index]
        take = min(remaining, cursor - curve.band_start(index))
        eth_out = checked_add(eth_out, checked_mul(take, step.unit_price) // scale)
        cursor -= take
        remaining -= take

    return SellQuote(tokens_in=tokens_in, eth_out=eth_out)


def cost_between(curve: CurveTable, from_supply: int, to_supply: int) -> int:
    """
    ETH a single buy needs to move supply from from_supply to to_supply.

    Used to size budgets that land exactly on a band boundary.
    """
    check_uint(from_supply, "from_supply")
    check_uint(to_supply, "to_supply")
    if to_supply < from_supply:
        raise ValueError(f"to_supply {to_supply} below from_supply {from_supply}")
    if to_supply > curve.curve_supply:
        raise CurveExhausted(f"Target {to_supply} beyond curve supply {curve.curve_supply}")

    scale = curve.price_scale
    cursor = from_supply
    total = 0
    while cursor < to_supply:
        index = curve.band_index(cursor)
        step = curve[index]
        take = min(to_supply, step.supply_upper_bound) - cursor
        total = checked_add(total, ceil_div(checked_mul(take, step.unit_price), scale))
        cursor += take
    return total
