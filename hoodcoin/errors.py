"""
HoodCoin - Error Taxonomy

Every failure of a caller-facing operation raises one of these.
Callers (buy/sell bots in particular) switch on the concrete class, or on
`kind` when the error came back over HTTP.
"""

from typing import Dict, Type


class HoodError(Exception):
    """Base class for all engine failures."""
    kind = "HoodError"
    status_code = 400

    def __init__(self, message: str = ""):
        self.message = message or self.kind
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.kind, "message": self.message}


class Unauthorized(HoodError):
    """Caller does not hold the role the operation requires."""
    kind = "Unauthorized"
    status_code = 401


class DuplicateLocation(HoodError):
    kind = "DuplicateLocation"
    status_code = 409


class InsufficientPayment(HoodError):
    kind = "InsufficientPayment"


class SlippageExceeded(HoodError):
    kind = "SlippageExceeded"


class CurveExhausted(HoodError):
    """Supply already at CURVE_SUPPLY, nothing left to sell on the curve."""
    kind = "CurveExhausted"
    status_code = 409


class InsufficientSupply(HoodError):
    kind = "InsufficientSupply"


class InsufficientBalance(HoodError):
    kind = "InsufficientBalance"


class TokenMigrated(HoodError):
    """Trading on the curve is closed for good."""
    kind = "TokenMigrated"
    status_code = 409


class AlreadyMigrated(HoodError):
    kind = "AlreadyMigrated"
    status_code = 409


class NotReady(HoodError):
    kind = "NotReady"
    status_code = 409


class InvalidFee(HoodError):
    kind = "InvalidFee"


class ArithmeticOverflow(HoodError):
    """Amount outside the uint256 range."""
    kind = "ArithmeticOverflow"


class UnknownToken(HoodError):
    kind = "UnknownToken"
    status_code = 404


class InvalidTransition(HoodError):
    """State machine asked for a transition it does not allow."""
    kind = "InvalidTransition"
    status_code = 409


ERRORS_BY_KIND: Dict[str, Type[HoodError]] = {
    cls.kind: cls for cls in (
        Unauthorized, DuplicateLocation, InsufficientPayment,
        SlippageExceeded, CurveExhausted, InsufficientSupply,
        InsufficientBalance, TokenMigrated, AlreadyMigrated, NotReady,
        InvalidFee, ArithmeticOverflow, UnknownToken, InvalidTransition,
    )
}


def error_from_dict(data: dict) -> HoodError:
    """Rebuild a typed error from its JSON form (see HoodError.to_dict)."""
    cls = ERRORS_BY_KIND.get(data.get("error", ""), HoodError)
    return cls(data.get("message", ""))
