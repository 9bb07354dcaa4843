"""
Trade Builder for bonding curve buys and sells
Turns a fresh curve read plus a quote into an unsigned transaction request
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union

from curvequote.clients.curve_abi import encode_buy_call, encode_sell_call, normalize_address
from curvequote.clients.curve_client import CurveClient
from curvequote.core.bonding_curve import BondingCurveCalculator
from curvequote.core.config import CurveConfig
from curvequote.core.errors import (
    CurveEngineError,
    GraduatedError,
    InvalidInputError,
    InvalidQuoteError,
    SlippageExceededError,
)
from curvequote.core.logger import get_logger
from curvequote.core.metrics import get_metrics
from curvequote.core.slippage import SlippageManager
from curvequote.services.sell_quoter import SellQuoter


logger = get_logger(__name__)
metrics = get_metrics()


class RejectReason(Enum):
    """Why a trade request was not built"""
    NOT_FOUND = "not_found"
    GRADUATED = "graduated"
    SLIPPAGE_EXCEEDED = "slippage_exceeded"
    INVALID_INPUT = "invalid_input"
    INVALID_QUOTE = "invalid_quote"


REJECT_MESSAGES = {
    RejectReason.NOT_FOUND: "token not tracked by curve",
    RejectReason.GRADUATED: "curve graduated; trade via external AMM",
    RejectReason.SLIPPAGE_EXCEEDED: "slippage exceeded",
    RejectReason.INVALID_INPUT: "invalid trade input",
    RejectReason.INVALID_QUOTE: "insufficient output",
}


@dataclass
class Rejected:
    """A trade the engine refuses to build; expected outcome, not a fault"""
    reason: RejectReason
    message: str
    detail: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {"success": False, "error": self.message, "reason": self.reason.value}
        if self.detail:
            result["detail"] = self.detail
        return result


@dataclass
class TradeRequest:
    """Unsigned transaction ready for an external signer"""
    side: str  # "buy" or "sell"
    token_address: str
    to: str  # Curve contract
    data: str  # 0x-prefixed calldata
    value: int  # wei attached (buys only)
    gas: int
    chain_id: int
    expected_out: int  # Quoted tokens (buy) or wei (sell)
    min_out: int  # Floor enforced by the contract call
    slippage_bps: Optional[int] = None  # Set when the floor was derived, not given
    default_floor_applied: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """JSON shape with integer amounts rendered as decimal strings"""
        return {
            "to": self.to,
            "data": self.data,
            "value": str(self.value),
            "gas": self.gas,
            "chainId": self.chain_id,
            "side": self.side,
            "tokenAddress": self.token_address,
            "expectedOut": str(self.expected_out),
            "minOut": str(self.min_out),
            "slippageBps": self.slippage_bps,
            "defaultFloorApplied": self.default_floor_applied,
        }


TradeResult = Union[TradeRequest, Rejected]


def _is_amount(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class TradeBuilder:
    """
    Builds buy/sell transaction requests against the bonding curve

    Guards, in order: input validation, token registered on the curve,
    curve not graduated, quote sane, quote above the slippage floor.
    Every guard answers with `Rejected`. ReadFailure and DecodeFailure are
    raised unchanged so callers keep the retry/do-not-retry distinction.

    Sells without an explicit minEthOut get a 5% floor
    (DEFAULT_SELL_SLIPPAGE_BPS); the request reports it through
    `default_floor_applied` and `slippage_bps`.

    Usage:
        builder = TradeBuilder(curve_client, curve_config)
        result = await builder.build_buy(token, 10 ** 17)
        if isinstance(result, Rejected):
            print(result.message)
    """

    def __init__(
        self,
        curve_client: CurveClient,
        curve_config: Optional[CurveConfig] = None,
        sell_quoter: Optional[SellQuoter] = None,
        calculator: Optional[BondingCurveCalculator] = None,
        slippage_manager: Optional[SlippageManager] = None
    ):
        """
        Args:
            curve_client: Reserve reader for the curve contract
            curve_config: Gas limit, chain id, default sell slippage and quote source
            sell_quoter: Overrides the quoter built from curve_config
            calculator: Quote calculator (shared with the sell quoter when built here)
            slippage_manager: Overrides the manager built from curve_config
        """
        self.curve_client = curve_client
        self.config = curve_config or CurveConfig(contract_address=curve_client.curve_address)
        self.calculator = calculator or BondingCurveCalculator()
        self.sell_quoter = sell_quoter or SellQuoter(
            curve_client,
            source=self.config.sell_quote_source,
            calculator=self.calculator
        )
        self.slippage = slippage_manager or SlippageManager(
            default_slippage_bps=self.config.default_sell_slippage_bps
        )

        logger.info(
            "trade_builder_initialized",
            curve_address=curve_client.curve_address,
            gas_limit=self.config.gas_limit,
            sell_quote_source=self.sell_quoter.source,
            default_sell_slippage_bps=self.slippage.default_slippage_bps
        )

    def _reject(self, side: str, token: Any, reason: RejectReason, detail: Optional[str] = None) -> Rejected:
        logger.info(
            "trade_rejected",
            side=side,
            token=token,
            reason=reason.value,
            detail=detail
        )
        metrics.increment_counter("trades_rejected", labels={"side": side, "reason": reason.value})
        return Rejected(reason=reason, message=REJECT_MESSAGES[reason], detail=detail)

    def _reject_error(self, side: str, token: Any, error: CurveEngineError) -> Rejected:
        if isinstance(error, GraduatedError):
            return self._reject(side, token, RejectReason.GRADUATED)
        if isinstance(error, InvalidQuoteError):
            return self._reject(side, token, RejectReason.INVALID_QUOTE, str(error))
        if isinstance(error, SlippageExceededError):
            return self._reject(side, token, RejectReason.SLIPPAGE_EXCEEDED, str(error))
        return self._reject(side, token, RejectReason.INVALID_INPUT, str(error))

    async def build_buy(
        self,
        token_address: str,
        eth_in: int,
        min_tokens_out: Optional[int] = None
    ) -> TradeResult:
        """
        Build a buy of `eth_in` wei worth of tokens

        Calldata: buy(token, amount=tokens_out, maxEthCost=eth_in), value = eth_in

        Raises:
            ReadFailure: curve state could not be read (retryable)
            DecodeFailure: curve state could not be decoded
        """
        if not _is_amount(eth_in) or eth_in <= 0:
            return self._reject("buy", token_address, RejectReason.INVALID_INPUT, "eth amount must be a positive integer")
        if min_tokens_out is not None and (not _is_amount(min_tokens_out) or min_tokens_out < 0):
            return self._reject("buy", token_address, RejectReason.INVALID_INPUT, "minTokensOut must be a non-negative integer")

        try:
            token = normalize_address(token_address)
        except InvalidInputError as e:
            return self._reject("buy", token_address, RejectReason.INVALID_INPUT, str(e))

        state = await self.curve_client.get_bonding_curve_state(token)
        if state is None:
            return self._reject("buy", token, RejectReason.NOT_FOUND)
        if state.complete:
            return self._reject("buy", token, RejectReason.GRADUATED)

        try:
            quote = self.calculator.calculate_buy_price(state, eth_in)
        except (GraduatedError, InvalidInputError, InvalidQuoteError) as e:
            return self._reject_error("buy", token, e)

        if quote.tokens_out == 0:
            return self._reject("buy", token, RejectReason.INVALID_QUOTE, "eth amount too small to buy any tokens")

        if min_tokens_out is not None:
            try:
                self.slippage.enforce_min_out(quote.tokens_out, min_tokens_out)
            except SlippageExceededError as e:
                return self._reject_error("buy", token, e)

        request = TradeRequest(
            side="buy",
            token_address=token,
            to=self.curve_client.curve_address,
            data=encode_buy_call(token, quote.tokens_out, eth_in),
            value=eth_in,
            gas=self.config.gas_limit,
            chain_id=self.config.chain_id,
            expected_out=quote.tokens_out,
            min_out=quote.tokens_out if min_tokens_out is None else min_tokens_out,
        )

        logger.info(
            "buy_request_built",
            token=token,
            eth_in=eth_in,
            tokens_out=quote.tokens_out,
            price_impact_pct=quote.price_impact_pct
        )
        metrics.increment_counter("trade_requests_built", labels={"side": "buy"})
        return request

    async def build_sell(
        self,
        token_address: str,
        token_in: int,
        min_eth_out: Optional[int] = None
    ) -> TradeResult:
        """
        Build a sell of `token_in` tokens

        Calldata: sell(token, amount=token_in, minEthOut), value = 0.
        When `min_eth_out` is omitted the floor is
        floor(eth_out * (10000 - default_sell_slippage_bps) / 10000),
        i.e. floor(eth_out * 0.95) with the default 500 bps.

        Raises:
            ReadFailure: curve state or on-chain quote could not be read
            DecodeFailure: contract output could not be decoded
        """
        if not _is_amount(token_in) or token_in <= 0:
            return self._reject("sell", token_address, RejectReason.INVALID_INPUT, "token amount must be a positive integer")
        if min_eth_out is not None and (not _is_amount(min_eth_out) or min_eth_out < 0):
            return self._reject("sell", token_address, RejectReason.INVALID_INPUT, "minEthOut must be a non-negative integer")

        try:
            token = normalize_address(token_address)
        except InvalidInputError as e:
            return self._reject("sell", token_address, RejectReason.INVALID_INPUT, str(e))

        state = await self.curve_client.get_bonding_curve_state(token)
        if state is None:
            return self._reject("sell", token, RejectReason.NOT_FOUND)
        if state.complete:
            return self._reject("sell", token, RejectReason.GRADUATED)

        try:
            quote = await self.sell_quoter.quote(state, token_in)
        except (GraduatedError, InvalidInputError, InvalidQuoteError) as e:
            return self._reject_error("sell", token, e)

        if quote.eth_out == 0:
            return self._reject("sell", token, RejectReason.INVALID_QUOTE, "token amount too small to receive any ETH")

        slippage_bps = None
        default_floor_applied = False
        if min_eth_out is None:
            slippage_bps = self.slippage.default_slippage_bps
            min_eth_out = self.slippage.calculate_min_amount_out(quote.eth_out, slippage_bps)
            default_floor_applied = True

        try:
            self.slippage.enforce_min_out(quote.eth_out, min_eth_out)
        except SlippageExceededError as e:
            return self._reject_error("sell", token, e)

        request = TradeRequest(
            side="sell",
            token_address=token,
            to=self.curve_client.curve_address,
            data=encode_sell_call(token, token_in, min_eth_out),
            value=0,
            gas=self.config.gas_limit,
            chain_id=self.config.chain_id,
            expected_out=quote.eth_out,
            min_out=min_eth_out,
            slippage_bps=slippage_bps,
            default_floor_applied=default_floor_applied,
        )

        logger.info(
            "sell_request_built",
            token=token,
            tokens_in=token_in,
            eth_out=quote.eth_out,
            min_eth_out=min_eth_out,
            default_floor_applied=default_floor_applied,
            quote_source=quote.source
        )
        metrics.increment_counter("trade_requests_built", labels={"side": "sell"})
        return request
