"""
Sell quote source selection
"""

from typing import Optional

from curvequote.clients.curve_client import CurveClient
from curvequote.core.bonding_curve import (
    BondingCurveCalculator,
    BondingCurveState,
    SellQuote,
    check_tradeable,
    quote_sell,
    require_amount,
)
from curvequote.core.config import SELL_QUOTE_SOURCES
from curvequote.core.errors import ReadFailure
from curvequote.core.logger import get_logger
from curvequote.core.metrics import get_metrics


logger = get_logger(__name__)
metrics = get_metrics()


class SellQuoter:
    """
    Produces sell quotes either locally or through the contract

    "local" (the default) runs the constant-product sell formula in-process.
    "onchain" also evaluates the contract's pure calculateEthCost through
    eth_call, but that function prices buying `amount` tokens, so its answer
    is capped at the local curve output: a sell never quotes more ETH than
    the curve pays out, and the default floor derived from it stays payable.

    With `fallback_to_local` set, a ReadFailure on the on-chain path is
    logged and answered locally. Decode failures never fall back: they mean
    the contract and this client disagree about the ABI.
    """

    def __init__(
        self,
        curve_client: CurveClient,
        source: str = "local",
        fallback_to_local: bool = False,
        calculator: Optional[BondingCurveCalculator] = None
    ):
        if source not in SELL_QUOTE_SOURCES:
            raise ValueError(f"source must be one of {SELL_QUOTE_SOURCES}, got {source!r}")

        self.curve_client = curve_client
        self.source = source
        self.fallback_to_local = fallback_to_local
        self.calculator = calculator or BondingCurveCalculator()

    async def quote(self, state: BondingCurveState, token_in: int) -> SellQuote:
        """
        Quote selling `token_in` tokens against `state`

        Raises:
            GraduatedError, InvalidInputError, InvalidQuoteError,
            ReadFailure (on-chain path, no fallback), DecodeFailure
        """
        if self.source == "local":
            return self.calculator.calculate_sell_price(state, token_in)

        check_tradeable(state)
        require_amount("token_in", token_in)
        if token_in == 0:
            return self.calculator.calculate_sell_price(state, 0, eth_out=0, source="onchain")

        curve_eth_out = quote_sell(state, token_in)
        try:
            eth_out = await self.curve_client.calculate_eth_cost(state, token_in)
        except ReadFailure as e:
            if not self.fallback_to_local:
                raise
            logger.warning(
                "onchain_sell_quote_failed_using_local",
                token=state.token_mint,
                tokens_in=token_in,
                error=str(e)
            )
            return self.calculator.calculate_sell_price(state, token_in, eth_out=curve_eth_out)

        if eth_out > curve_eth_out:
            logger.warning(
                "onchain_sell_quote_capped",
                token=state.token_mint,
                tokens_in=token_in,
                onchain_eth_out=eth_out,
                curve_eth_out=curve_eth_out
            )
            metrics.increment_counter("onchain_sell_quotes_capped")
            eth_out = curve_eth_out

        return self.calculator.calculate_sell_price(state, token_in, eth_out=eth_out, source="onchain")
