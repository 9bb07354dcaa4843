"""
Price lookups for the token page
"""

from typing import Any, Dict, Optional

from curvequote.clients.curve_client import CurveClient
from curvequote.core.bonding_curve import PriceMetrics, price_and_metrics
from curvequote.core.logger import get_logger
from curvequote.core.metrics import get_metrics


logger = get_logger(__name__)
metrics = get_metrics()


class PricingService:
    """Reads curve state and derives display metrics for one token"""

    def __init__(self, curve_client: CurveClient):
        self.curve_client = curve_client

    async def get_price(self, token_address: str) -> Optional[PriceMetrics]:
        """
        Current price metrics, or None when the curve does not track the token

        Graduated curves still report their last curve price.

        Raises:
            InvalidInputError, ReadFailure, DecodeFailure
        """
        state = await self.curve_client.get_bonding_curve_state(token_address)
        if state is None:
            return None

        result = price_and_metrics(state)
        metrics.increment_counter("price_lookups")
        logger.debug(
            "price_calculated",
            token=state.token_mint,
            price=result.price,
            market_cap=result.market_cap,
            bonding_progress=result.bonding_progress,
            complete=state.complete
        )
        return result

    @staticmethod
    def to_response(result: PriceMetrics) -> Dict[str, Any]:
        """API shape; volume24h is the real ETH reserve proxy, not ledger volume"""
        return {
            "price": result.price,
            "marketCap": result.market_cap,
            "volume24h": result.volume_proxy,
            "bondingProgress": result.bonding_progress,
        }
