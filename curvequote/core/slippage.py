"""
Slippage protection for curve trades
Derives minimum-output floors and checks quotes against them
"""

from dataclasses import dataclass
from typing import Optional

from curvequote.core.errors import InvalidInputError, SlippageExceededError
from curvequote.core.logger import get_logger
from curvequote.core.metrics import get_metrics


logger = get_logger(__name__)
metrics = get_metrics()


BPS_DENOMINATOR = 10_000

# Floor applied to sell quotes when the caller gives no minEthOut: 5%
DEFAULT_SELL_SLIPPAGE_BPS = 500


@dataclass
class SlippageCheck:
    """Result of comparing a quoted amount with a floor"""
    is_valid: bool
    expected_amount: int
    min_amount: int
    slippage_pct: float  # How far the floor sits below the quote
    message: str


class SlippageManager:
    """
    Computes min-out floors in basis points with floor rounding

    Usage:
        manager = SlippageManager()
        manager.calculate_min_amount_out(1_000_000)        # 950_000 (5% default)
        manager.calculate_min_amount_out(1_000_000, 100)   # 990_000
    """

    def __init__(self, default_slippage_bps: int = DEFAULT_SELL_SLIPPAGE_BPS):
        if not 0 <= default_slippage_bps < BPS_DENOMINATOR:
            raise ValueError("default_slippage_bps must be in [0, 10000)")
        self.default_slippage_bps = default_slippage_bps

    def calculate_min_amount_out(
        self,
        expected_amount: int,
        slippage_bps: Optional[int] = None
    ) -> int:
        """
        Minimum acceptable output: expected * (10000 - bps) // 10000

        With the 5% default this equals floor(expected * 0.95) exactly.
        """
        if expected_amount < 0:
            raise InvalidInputError("Expected amount must not be negative")

        bps = self.default_slippage_bps if slippage_bps is None else slippage_bps
        if not 0 <= bps < BPS_DENOMINATOR:
            raise InvalidInputError("slippage_bps must be in [0, 10000)")

        min_amount = (expected_amount * (BPS_DENOMINATOR - bps)) // BPS_DENOMINATOR

        logger.debug(
            "min_amount_calculated",
            expected_amount=expected_amount,
            min_amount=min_amount,
            slippage_bps=bps
        )
        return min_amount

    def validate_min_out(self, expected_amount: int, min_amount: int) -> SlippageCheck:
        """Check a quoted output against a caller-supplied or derived floor"""
        if min_amount < 0:
            raise InvalidInputError("Minimum output must not be negative")

        is_valid = expected_amount >= min_amount
        if expected_amount > 0:
            slippage_pct = (expected_amount - min_amount) / expected_amount * 100
        else:
            slippage_pct = 0.0

        if is_valid:
            message = f"quote {expected_amount} meets minimum {min_amount}"
        else:
            message = f"quote {expected_amount} below minimum {min_amount}"
            metrics.increment_counter("slippage_rejections")

        return SlippageCheck(
            is_valid=is_valid,
            expected_amount=expected_amount,
            min_amount=min_amount,
            slippage_pct=slippage_pct,
            message=message
        )

    def enforce_min_out(self, expected_amount: int, min_amount: int) -> SlippageCheck:
        """
        Like validate_min_out, but a quote below the floor raises

        Raises:
            SlippageExceededError: expected_amount < min_amount
        """
        check = self.validate_min_out(expected_amount, min_amount)
        if not check.is_valid:
            raise SlippageExceededError(expected_amount, min_amount)
        return check
