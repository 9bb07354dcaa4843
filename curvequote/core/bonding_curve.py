"""
Bonding Curve Calculator for creator coins
Quotes buys and sells against a constant-product (x * y = k) virtual AMM using exact integer math

Two kinds of math live here and never meet:
- trade math (tokens_out, eth_out) is pure `int`
- display math (spot price, market cap, bonding progress) is `float`
"""

from dataclasses import dataclass, replace
from typing import Optional

from curvequote.core.errors import GraduatedError, InvalidInputError, InvalidQuoteError
from curvequote.core.logger import get_logger
from curvequote.core.metrics import get_metrics


logger = get_logger(__name__)
metrics = get_metrics()


TOKEN_DECIMALS = 18
WEI_PER_ETH = 10 ** 18
ZERO_ADDRESS = "0x" + "00" * 20


@dataclass(frozen=True)
class BondingCurveState:
    """Bonding curve snapshot as returned by the curve contract

    All amounts are in base units (wei for ETH, 18-decimal base units for tokens).
    """
    token_mint: str  # Token address, zero address when unregistered
    virtual_token_reserves: int
    virtual_eth_reserves: int
    real_token_reserves: int
    real_eth_reserves: int
    token_total_supply: int
    mcap_limit: int  # Market cap (wei) at which the curve graduates
    complete: bool  # Graduated to the external AMM

    @property
    def is_registered(self) -> bool:
        return int(self.token_mint, 16) != 0

    @property
    def invariant(self) -> int:
        """k = virtual_token_reserves * virtual_eth_reserves"""
        return self.virtual_token_reserves * self.virtual_eth_reserves


@dataclass
class BuyQuote:
    """Quote for buying tokens with ETH (wei / token base units)"""
    eth_in: int
    tokens_out: int
    price_impact_pct: float


@dataclass
class SellQuote:
    """Quote for selling tokens for ETH (token base units / wei)"""
    tokens_in: int
    eth_out: int
    price_impact_pct: float
    source: str = "local"  # "local" or "onchain"


@dataclass
class PriceMetrics:
    """Display-only metrics; never feed these back into trade math"""
    price: float  # ETH per whole token
    market_cap: float  # ETH
    bonding_progress: float  # 0-100
    volume_proxy: float  # ETH; real ETH reserves stand in for 24h volume


def require_amount(name: str, amount: int) -> None:
    """Reject anything but a non-negative int (bool included) as InvalidInputError"""
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidInputError(f"{name} must be an integer amount in base units, got {type(amount).__name__}")
    if amount < 0:
        raise InvalidInputError(f"{name} must not be negative")


def check_tradeable(state: BondingCurveState) -> None:
    if state.complete:
        raise GraduatedError("curve graduated; trade via external AMM")
    if state.virtual_token_reserves <= 0 or state.virtual_eth_reserves <= 0:
        raise InvalidQuoteError("Invalid bonding curve reserves (must be > 0)")


def quote_buy(state: BondingCurveState, eth_in: int) -> int:
    """
    Tokens received for `eth_in` wei

    new_token_reserves = k // (virtual_eth_reserves + eth_in)
    tokens_out = virtual_token_reserves - new_token_reserves

    Floor division matches the contract's integer math: the product of the
    new reserves never exceeds k.

    Raises:
        GraduatedError: curve is complete
        InvalidInputError: eth_in is negative or not an int
        InvalidQuoteError: reserves are zero or the result is out of bounds
    """
    check_tradeable(state)
    require_amount("eth_in", eth_in)

    if eth_in == 0:
        return 0

    new_eth_reserves = state.virtual_eth_reserves + eth_in
    new_token_reserves = state.invariant // new_eth_reserves
    tokens_out = state.virtual_token_reserves - new_token_reserves

    if not 0 <= tokens_out < state.virtual_token_reserves:
        raise InvalidQuoteError(
            f"buy quote out of bounds: tokens_out={tokens_out}, "
            f"virtual_token_reserves={state.virtual_token_reserves}"
        )

    return tokens_out


def quote_sell(state: BondingCurveState, token_in: int) -> int:
    """
    ETH (wei) received for selling `token_in` tokens, computed locally

    new_eth_reserves = ceil(k / (virtual_token_reserves + token_in))
    eth_out = virtual_eth_reserves - new_eth_reserves

    Rounding new_eth_reserves up keeps eth_out at or below the continuous
    curve. The seller's balance is checked by the caller, not here.
    """
    check_tradeable(state)
    require_amount("token_in", token_in)

    if token_in == 0:
        return 0

    new_token_reserves = state.virtual_token_reserves + token_in
    new_eth_reserves = -(-state.invariant // new_token_reserves)
    eth_out = state.virtual_eth_reserves - new_eth_reserves

    if not 0 <= eth_out <= state.virtual_eth_reserves:
        raise InvalidQuoteError(
            f"sell quote out of bounds: eth_out={eth_out}, "
            f"virtual_eth_reserves={state.virtual_eth_reserves}"
        )

    return eth_out


def simulate_buy(state: BondingCurveState, eth_in: int, tokens_out: int) -> BondingCurveState:
    """Curve state after a buy of `eth_in` that delivered `tokens_out`"""
    return replace(
        state,
        virtual_token_reserves=state.virtual_token_reserves - tokens_out,
        virtual_eth_reserves=state.virtual_eth_reserves + eth_in,
        real_token_reserves=max(state.real_token_reserves - tokens_out, 0),
        real_eth_reserves=state.real_eth_reserves + eth_in,
    )


def simulate_sell(state: BondingCurveState, token_in: int, eth_out: int) -> BondingCurveState:
    """Curve state after selling `token_in` for `eth_out`"""
    return replace(
        state,
        virtual_token_reserves=state.virtual_token_reserves + token_in,
        virtual_eth_reserves=state.virtual_eth_reserves - eth_out,
        real_token_reserves=state.real_token_reserves + token_in,
        real_eth_reserves=max(state.real_eth_reserves - eth_out, 0),
    )


def spot_price(state: BondingCurveState) -> float:
    """ETH per token at current reserves (both sides carry 18 decimals)"""
    if state.virtual_token_reserves <= 0:
        return 0.0
    return state.virtual_eth_reserves / state.virtual_token_reserves


def price_impact_pct(before: BondingCurveState, after: BondingCurveState) -> float:
    """Relative spot price move between two states, as a percentage"""
    price_before = spot_price(before)
    if price_before <= 0:
        return 0.0
    return abs(spot_price(after) - price_before) / price_before * 100


def bonding_progress(state: BondingCurveState) -> float:
    """
    Percentage of the way to graduation, clamped to 100

    current_mcap = virtual_eth_reserves * token_total_supply / real_token_reserves
    """
    if state.real_token_reserves <= 0 or state.mcap_limit <= 0:
        return 0.0

    current_mcap = state.virtual_eth_reserves * state.token_total_supply / state.real_token_reserves
    return min(100.0, current_mcap / state.mcap_limit * 100)


def price_and_metrics(state: BondingCurveState) -> PriceMetrics:
    """Spot price, market cap, bonding progress and volume proxy for display"""
    price = spot_price(state)
    total_supply_tokens = state.token_total_supply / 10 ** TOKEN_DECIMALS

    return PriceMetrics(
        price=price,
        market_cap=price * total_supply_tokens,
        bonding_progress=bonding_progress(state),
        volume_proxy=state.real_eth_reserves / WEI_PER_ETH,
    )


class BondingCurveCalculator:
    """
    Produces buy/sell quotes with price impact from a curve snapshot

    Formula:
        buy:  tokens_out = vT - k // (vE + eth_in)
        sell: eth_out    = vE - ceil(k / (vT + token_in))

    Usage:
        calculator = BondingCurveCalculator()
        quote = calculator.calculate_buy_price(state, 10 ** 18)  # 1 ETH
        print(quote.tokens_out, quote.price_impact_pct)
    """

    def calculate_buy_price(self, state: BondingCurveState, eth_in: int) -> BuyQuote:
        """
        Quote a buy of `eth_in` wei

        Raises:
            GraduatedError, InvalidInputError, InvalidQuoteError
        """
        tokens_out = quote_buy(state, eth_in)
        impact = price_impact_pct(state, simulate_buy(state, eth_in, tokens_out))

        logger.debug(
            "buy_quote_calculated",
            token=state.token_mint,
            eth_in=eth_in,
            tokens_out=tokens_out,
            price_impact_pct=impact
        )
        metrics.increment_counter("bonding_curve_buy_quotes")

        return BuyQuote(eth_in=eth_in, tokens_out=tokens_out, price_impact_pct=impact)

    def calculate_sell_price(
        self,
        state: BondingCurveState,
        token_in: int,
        eth_out: Optional[int] = None,
        source: str = "local"
    ) -> SellQuote:
        """
        Quote a sell of `token_in` tokens

        Args:
            state: Curve snapshot
            token_in: Tokens to sell (base units)
            eth_out: Output already obtained elsewhere (e.g. the contract);
                computed locally when omitted
            source: Label recorded on the quote
        """
        if eth_out is None:
            eth_out = quote_sell(state, token_in)
            source = "local"
        elif eth_out < 0 or eth_out > state.virtual_eth_reserves:
            raise InvalidQuoteError(
                f"sell quote out of bounds: eth_out={eth_out}, "
                f"virtual_eth_reserves={state.virtual_eth_reserves}"
            )

        impact = price_impact_pct(state, simulate_sell(state, token_in, eth_out))

        logger.debug(
            "sell_quote_calculated",
            token=state.token_mint,
            tokens_in=token_in,
            eth_out=eth_out,
            price_impact_pct=impact,
            source=source
        )
        metrics.increment_counter("bonding_curve_sell_quotes", labels={"source": source})

        return SellQuote(tokens_in=token_in, eth_out=eth_out, price_impact_pct=impact, source=source)
