"""
HoodCoin - Configuration

Process-wide constants. Built from DEFAULT_CONFIG, optionally merged with
a JSON file and HOODCOIN_* environment variables:

    HOODCOIN_CREATION_FEE=1000000000000000 hoodcoin serve --config hood.json

Defaults match the HoodCoin testnet deployment.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from web3 import Web3

from .curve import TOKEN_UNIT, CurveTable, default_curve
from .hood_types import BPS_DENOMINATOR

log = logging.getLogger("hoodcoin.config")

DEFAULT_CONFIG = {
    "creation_fee": Web3.to_wei("0.001", "ether"),
    "migration_threshold": Web3.to_wei("0.1", "ether"),
    "mint_royalty_bps": 100,        # 1%
    "burn_royalty_bps": 150,        # 1.5%
    "max_supply": 1_000_000_000 * TOKEN_UNIT,
    "curve_supply": 800_000_000 * TOKEN_UNIT,
    "max_migration_fee_bps": 1000,  # 10%
    "curve": None,                  # None = five-band default curve
    "http_host": "127.0.0.1",
    "http_port": 8080,
}

# Integer settings that may come from the environment
ENV_KEYS = [
    "creation_fee",
    "migration_threshold",
    "mint_royalty_bps",
    "burn_royalty_bps",
    "max_supply",
    "curve_supply",
    "max_migration_fee_bps",
    "http_port",
]
ENV_PREFIX = "HOODCOIN_"


@dataclass(frozen=True)
class HoodConfig:
    """Immutable engine constants."""
    creation_fee: int = DEFAULT_CONFIG["creation_fee"]
    migration_threshold: int = DEFAULT_CONFIG["migration_threshold"]
    mint_royalty_bps: int = DEFAULT_CONFIG["mint_royalty_bps"]
    burn_royalty_bps: int = DEFAULT_CONFIG["burn_royalty_bps"]
    max_supply: int = DEFAULT_CONFIG["max_supply"]
    curve_supply: int = DEFAULT_CONFIG["curve_supply"]
    max_migration_fee_bps: int = DEFAULT_CONFIG["max_migration_fee_bps"]
    curve: CurveTable = field(default_factory=default_curve)
    http_host: str = DEFAULT_CONFIG["http_host"]
    http_port: int = DEFAULT_CONFIG["http_port"]

    def __post_init__(self):
        for name in ("creation_fee", "migration_threshold", "max_supply", "curve_supply"):
            value = getattr(self, name)
            if not isinstance(value, int) or value < 0:
                raise ValueError(f"{name} must be a non-negative integer, got {value!r}")
        for name in ("mint_royalty_bps", "burn_royalty_bps", "max_migration_fee_bps"):
            value = getattr(self, name)
            if not isinstance(value, int) or not 0 <= value <= BPS_DENOMINATOR:
                raise ValueError(f"{name} must be in [0, {BPS_DENOMINATOR}], got {value!r}")
        if self.migration_threshold == 0:
            raise ValueError("migration_threshold must be positive")
        if self.curve_supply >= self.max_supply:
            raise ValueError(
                f"curve_supply ({self.curve_supply}) must be below max_supply ({self.max_supply})"
            )
        if self.curve.curve_supply != self.curve_supply:
            raise ValueError(
                f"Last curve bound ({self.curve.curve_supply}) must equal curve_supply ({self.curve_supply})"
            )

    @property
    def liquidity_allocation(self) -> int:
        """Tokens minted only at migration."""
        return self.max_supply - self.curve_supply

    def to_dict(self) -> dict:
        return {
            "creation_fee": self.creation_fee,
            "migration_threshold": self.migration_threshold,
            "mint_royalty_bps": self.mint_royalty_bps,
            "burn_royalty_bps": self.burn_royalty_bps,
            "max_supply": self.max_supply,
            "curve_supply": self.curve_supply,
            "max_migration_fee_bps": self.max_migration_fee_bps,
            "liquidity_allocation": self.liquidity_allocation,
            "curve": self.curve.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "HoodConfig":
        merged = dict(DEFAULT_CONFIG)
        merged.update(data)
        curve_data = merged.pop("curve", None)
        curve = CurveTable.from_dict(curve_data) if curve_data else default_curve()
        known = {k: merged[k] for k in DEFAULT_CONFIG if k != "curve"}
        return cls(curve=curve, **known)


def load_config(path: Optional[str] = None,
                env: Optional[Mapping[str, str]] = None) -> HoodConfig:
    """
    Build a HoodConfig.

    Args:
        path: JSON file whose keys override DEFAULT_CONFIG (optional)
        env: Environment mapping for HOODCOIN_* overrides (default os.environ)

    Returns:
        Validated HoodConfig
    """
    data = {}
    if path:
        with open(path, "r") as f:
            data.update(json.load(f))
        log.info(f"Loaded config from {path}")

    env = os.environ if env is None else env
    for key in ENV_KEYS:
        raw = env.get(ENV_PREFIX + key.upper())
        if raw is None or raw == "":
            continue
        try:
            data[key] = int(raw)
        except ValueError:
            raise ValueError(f"{ENV_PREFIX}{key.upper()} must be an integer, got {raw!r}")

    host = env.get(ENV_PREFIX + "HTTP_HOST")
    if host:
        data["http_host"] = host

    return HoodConfig.from_dict(data)
