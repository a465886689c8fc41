"""
HoodCoin - Curve Table

The stepped bonding curve: an ordered, immutable sequence of price bands
covering supply 0 .. CURVE_SUPPLY. Band i covers
[bound[i-1], bound[i]) and every unit in it costs unit_price.

Default HoodCoin curve (18-decimal tokens, price in wei per whole token):
       0 -  10M tokens   0.000000428 ETH
     10M -  50M tokens   0.00000214  ETH
     50M - 200M tokens   0.00000428  ETH
    200M - 500M tokens   0.0000214   ETH
    500M - 800M tokens   0.0000428   ETH
"""

from bisect import bisect_right
from typing import Iterator, List, Sequence, Tuple

from web3 import Web3

from .errors import ArithmeticOverflow, CurveExhausted
from .hood_types import CurveStep, UINT256_MAX

# ═══════════════════════════════════════════════════════════════════════════════
# DEFAULT CURVE
# ═══════════════════════════════════════════════════════════════════════════════

TOKEN_DECIMALS = 18
TOKEN_UNIT = 10 ** TOKEN_DECIMALS

DEFAULT_STEPS: List[CurveStep] = [
    CurveStep(10_000_000 * TOKEN_UNIT, Web3.to_wei("0.000000428", "ether")),
    CurveStep(50_000_000 * TOKEN_UNIT, Web3.to_wei("0.00000214", "ether")),
    CurveStep(200_000_000 * TOKEN_UNIT, Web3.to_wei("0.00000428", "ether")),
    CurveStep(500_000_000 * TOKEN_UNIT, Web3.to_wei("0.0000214", "ether")),
    CurveStep(800_000_000 * TOKEN_UNIT, Web3.to_wei("0.0000428", "ether")),
]


# ═══════════════════════════════════════════════════════════════════════════════
# CURVE TABLE
# ═══════════════════════════════════════════════════════════════════════════════

class CurveTable:
    """
    Immutable band table, shared read-only by every token.

    price_scale divides cost: n units at price p cost n * p / price_scale.
    With price_scale=1 prices are per base unit; the default curve uses
    TOKEN_UNIT so prices read as wei per whole token.

    Usage:
        curve = CurveTable([CurveStep(10_000_000, 1), CurveStep(20_000_000, 2)])
        curve.curve_supply       # 20_000_000
        curve.band_index(9_999_999)   # 0
        curve.band_index(10_000_000)  # 1
    """

    def __init__(self, steps: Sequence[CurveStep], price_scale: int = 1):
        if not isinstance(price_scale, int) or price_scale <= 0:
            raise ValueError(f"price_scale must be a positive integer, got {price_scale!r}")
        steps = tuple(steps)
        if not steps:
            raise ValueError("Curve needs at least one step")

        previous_bound = 0
        previous_price = 0
        for i, step in enumerate(steps):
            if not isinstance(step.supply_upper_bound, int) or not isinstance(step.unit_price, int):
                raise ValueError(f"Step {i}: bounds and prices must be integers")
            if step.supply_upper_bound <= previous_bound:
                raise ValueError(
                    f"Step {i}: bound {step.supply_upper_bound} not above {previous_bound}"
                )
            if step.unit_price <= 0:
                raise ValueError(f"Step {i}: price must be positive")
            if step.unit_price < previous_price:
                raise ValueError(f"Step {i}: price {step.unit_price} below previous {previous_price}")
            if step.supply_upper_bound > UINT256_MAX or step.unit_price > UINT256_MAX:
                raise ValueError(f"Step {i}: value exceeds uint256")
            previous_bound = step.supply_upper_bound
            previous_price = step.unit_price

        self._steps: Tuple[CurveStep, ...] = steps
        self._bounds: Tuple[int, ...] = tuple(s.supply_upper_bound for s in steps)
        self._price_scale = price_scale

    @property
    def steps(self) -> Tuple[CurveStep, ...]:
        return self._steps

    @property
    def price_scale(self) -> int:
        return self._price_scale

    @property
    def curve_supply(self) -> int:
        return self._bounds[-1]

    def __len__(self) -> int:
        return len(self._steps)

    def __iter__(self) -> Iterator[CurveStep]:
        return iter(self._steps)

    def __getitem__(self, index: int) -> CurveStep:
        return self._steps[index]

    def band_index(self, supply: int) -> int:
        """Index of the band containing supply (a bound belongs to the next band)."""
        if supply < 0:
            raise ArithmeticOverflow(f"Negative supply: {supply}")
        if supply >= self.curve_supply:
            raise CurveExhausted(f"Supply {supply} at or above curve supply {self.curve_supply}")
        return bisect_right(self._bounds, supply)

    def band_start(self, index: int) -> int:
        """Lower (inclusive) supply bound of band index."""
        return self._bounds[index - 1] if index > 0 else 0

    def to_dict(self) -> dict:
        return {
            "price_scale": self._price_scale,
            "curve_supply": self.curve_supply,
            "steps": [step.to_dict() for step in self._steps],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CurveTable":
        return cls(
            [CurveStep.from_dict(s) for s in data["steps"]],
            price_scale=int(data.get("price_scale", 1)),
        )

    def __repr__(self) -> str:
        return f"CurveTable(bands={len(self)}, curve_supply={self.curve_supply}, price_scale={self._price_scale})"


def default_curve() -> CurveTable:
    """The five-band HoodCoin curve."""
    return CurveTable(DEFAULT_STEPS, price_scale=TOKEN_UNIT)


def format_curve(curve: CurveTable) -> str:
    """
    Format the table as aligned text.

    Example (default curve):
        band 0:           0 -  10000000 tokens @ 0.000000428 ETH
    """
    lines = []
    for i, step in enumerate(curve):
        start = curve.band_start(i) // curve.price_scale
        end = step.supply_upper_bound // curve.price_scale
        price = Web3.from_wei(step.unit_price, "ether")
        lines.append(f"band {i}: {start:>11} - {end:>11} tokens @ {price} ETH")
    return "\n".join(lines)
