"""
ABI codec for the bonding curve contract
Selectors are keccak256(signature)[:4]; arguments use standard ABI encoding
"""

from typing import Tuple

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_utils import encode_hex, function_signature_to_4byte_selector, is_address, to_checksum_address

from curvequote.core.bonding_curve import BondingCurveState
from curvequote.core.errors import DecodeFailure, InvalidInputError


# Layout of the contract's Token struct
TOKEN_STRUCT_TYPES = [
    "address",  # tokenMint
    "uint256",  # virtualTokenReserves
    "uint256",  # virtualEthReserves
    "uint256",  # realTokenReserves
    "uint256",  # realEthReserves
    "uint256",  # tokenTotalSupply
    "uint256",  # mcapLimit
    "bool",     # complete
]
TOKEN_STRUCT_TUPLE = "(" + ",".join(TOKEN_STRUCT_TYPES) + ")"

BONDING_CURVE_SIGNATURE = "bondingCurve(address)"
CALCULATE_ETH_COST_SIGNATURE = f"calculateEthCost({TOKEN_STRUCT_TUPLE},uint256)"
BUY_SIGNATURE = "buy(address,uint256,uint256)"
SELL_SIGNATURE = "sell(address,uint256,uint256)"

BONDING_CURVE_SELECTOR = function_signature_to_4byte_selector(BONDING_CURVE_SIGNATURE)
CALCULATE_ETH_COST_SELECTOR = function_signature_to_4byte_selector(CALCULATE_ETH_COST_SIGNATURE)
BUY_SELECTOR = function_signature_to_4byte_selector(BUY_SIGNATURE)
SELL_SELECTOR = function_signature_to_4byte_selector(SELL_SIGNATURE)

UINT256_MAX = 2 ** 256 - 1


def normalize_address(address: str) -> str:
    """
    Validate and checksum an account address

    Raises:
        InvalidInputError: not a 20-byte hex address
    """
    if not isinstance(address, str) or not is_address(address):
        raise InvalidInputError(f"invalid account address: {address!r}")
    return to_checksum_address(address)


def _check_uint256(name: str, value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= UINT256_MAX:
        raise InvalidInputError(f"{name} must fit in uint256, got {value!r}")


def encode_bonding_curve_call(token_address: str) -> str:
    """Calldata for bondingCurve(token)"""
    token = normalize_address(token_address)
    return encode_hex(BONDING_CURVE_SELECTOR + encode(["address"], [token]))


def decode_bonding_curve_result(raw: bytes) -> BondingCurveState:
    """
    Decode the bondingCurve(token) getter output

    Raises:
        DecodeFailure: payload does not match the Token struct layout
    """
    try:
        values = decode(TOKEN_STRUCT_TYPES, raw)
    except (DecodingError, TypeError) as e:
        raise DecodeFailure(f"bondingCurve returned undecodable data ({len(raw)} bytes): {e}") from e

    return BondingCurveState(
        token_mint=to_checksum_address(values[0]),
        virtual_token_reserves=values[1],
        virtual_eth_reserves=values[2],
        real_token_reserves=values[3],
        real_eth_reserves=values[4],
        token_total_supply=values[5],
        mcap_limit=values[6],
        complete=values[7],
    )


def state_to_struct(state: BondingCurveState) -> Tuple:
    """BondingCurveState as the contract's Token struct tuple"""
    return (
        to_checksum_address(state.token_mint),
        state.virtual_token_reserves,
        state.virtual_eth_reserves,
        state.real_token_reserves,
        state.real_eth_reserves,
        state.token_total_supply,
        state.mcap_limit,
        state.complete,
    )


def encode_calculate_eth_cost_call(state: BondingCurveState, token_amount: int) -> str:
    """Calldata for the pure calculateEthCost(Token, amount)"""
    _check_uint256("token_amount", token_amount)
    return encode_hex(
        CALCULATE_ETH_COST_SELECTOR
        + encode([TOKEN_STRUCT_TUPLE, "uint256"], [state_to_struct(state), token_amount])
    )


def decode_uint256_result(raw: bytes, function: str) -> int:
    """Decode a single uint256 return value"""
    try:
        (value,) = decode(["uint256"], raw)
    except (DecodingError, TypeError) as e:
        raise DecodeFailure(f"{function} returned undecodable data ({len(raw)} bytes): {e}") from e
    return value


def encode_buy_call(token_address: str, token_amount: int, max_eth_cost: int) -> str:
    """Calldata for buy(token, amount, maxEthCost)"""
    _check_uint256("token_amount", token_amount)
    _check_uint256("max_eth_cost", max_eth_cost)
    token = normalize_address(token_address)
    return encode_hex(BUY_SELECTOR + encode(["address", "uint256", "uint256"], [token, token_amount, max_eth_cost]))


def encode_sell_call(token_address: str, token_amount: int, min_eth_out: int) -> str:
    """Calldata for sell(token, amount, minEthOut)"""
    _check_uint256("token_amount", token_amount)
    _check_uint256("min_eth_out", min_eth_out)
    token = normalize_address(token_address)
    return encode_hex(SELL_SELECTOR + encode(["address", "uint256", "uint256"], [token, token_amount, min_eth_out]))
