"""
Bonding Curve Contract Client
Reads per-token curve state and delegates pure price functions to the deployed contract
"""

from typing import Optional

from curvequote.clients.curve_abi import (
    decode_bonding_curve_result,
    decode_uint256_result,
    encode_bonding_curve_call,
    encode_calculate_eth_cost_call,
    normalize_address,
)
from curvequote.clients.rpc_manager import RPCManager
from curvequote.core.bonding_curve import BondingCurveState
from curvequote.core.errors import DecodeFailure, InvalidQuoteError
from curvequote.core.logger import get_logger
from curvequote.core.metrics import get_metrics


logger = get_logger(__name__)
metrics = get_metrics()


class CurveClient:
    """
    Read-only access to the bonding curve contract

    Nothing is cached: every call goes to the chain, so two concurrent
    readers each see whatever state the node returned to them.

    Usage:
        client = CurveClient(rpc_manager, "0x787b...c3d")
        state = await client.get_bonding_curve_state(token_address)
        if state is None:
            ...  # token never registered on this curve
    """

    def __init__(self, rpc_manager: RPCManager, curve_address: str):
        """
        Args:
            rpc_manager: JSON-RPC transport (injected so tests can mock it)
            curve_address: Deployed curve contract address
        """
        self.rpc_manager = rpc_manager
        self.curve_address = normalize_address(curve_address)

        logger.info("curve_client_initialized", curve_address=self.curve_address)

    async def get_bonding_curve_state(self, token_address: str) -> Optional[BondingCurveState]:
        """
        Fetch the curve state for a token

        Args:
            token_address: Token contract address

        Returns:
            BondingCurveState, or None when the curve has no record of the
            token (zero tokenMint)

        Raises:
            InvalidInputError: malformed address
            ReadFailure: RPC transport failure (retryable)
            DecodeFailure: response does not match the ABI (not retryable)
        """
        token = normalize_address(token_address)
        calldata = encode_bonding_curve_call(token)

        raw = await self.rpc_manager.eth_call(self.curve_address, calldata)

        try:
            state = decode_bonding_curve_result(raw)
        except DecodeFailure:
            logger.error(
                "bonding_curve_decode_failed",
                token=token,
                curve_address=self.curve_address,
                data_length=len(raw),
                exc_info=True
            )
            metrics.increment_counter("bonding_curve_decode_errors")
            raise

        metrics.increment_counter("bonding_curve_fetches")

        if not state.is_registered:
            logger.info("bonding_curve_not_found", token=token)
            return None

        logger.debug(
            "bonding_curve_fetched",
            token=token,
            virtual_token_reserves=state.virtual_token_reserves,
            virtual_eth_reserves=state.virtual_eth_reserves,
            complete=state.complete
        )
        return state

    async def calculate_eth_cost(self, state: BondingCurveState, token_amount: int) -> int:
        """
        Evaluate the contract's pure calculateEthCost(Token, amount)

        The contract divides by (virtualTokenReserves - amount) and reverts
        once amount reaches the virtual token reserves; such amounts are
        rejected without an RPC.

        Raises:
            InvalidQuoteError: token_amount is not below the virtual token reserves
            ReadFailure: RPC transport failure
            DecodeFailure: response is not a uint256
        """
        if token_amount >= state.virtual_token_reserves:
            metrics.increment_counter("onchain_eth_cost_rejected")
            raise InvalidQuoteError(
                f"token amount {token_amount} must be below virtual token reserves "
                f"{state.virtual_token_reserves}"
            )

        calldata = encode_calculate_eth_cost_call(state, token_amount)
        raw = await self.rpc_manager.eth_call(self.curve_address, calldata)

        try:
            eth_cost = decode_uint256_result(raw, "calculateEthCost")
        except DecodeFailure:
            logger.error(
                "calculate_eth_cost_decode_failed",
                token=state.token_mint,
                curve_address=self.curve_address,
                data_length=len(raw),
                exc_info=True
            )
            metrics.increment_counter("bonding_curve_decode_errors")
            raise

        metrics.increment_counter("onchain_eth_cost_calls")
        return eth_cost
