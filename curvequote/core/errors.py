"""
Error taxonomy for the quoting engine

Every failure carries a `retryable` flag so callers can tell a transient RPC
problem from a fault that will not go away by trying again.
"""


class CurveEngineError(Exception):
    """Base class for all engine failures"""

    retryable = False
    reason = "engine_error"


class InvalidInputError(CurveEngineError):
    """Zero/negative amounts, malformed addresses"""

    reason = "invalid_input"


class GraduatedError(CurveEngineError):
    """Curve is complete; trading has moved to the external AMM"""

    reason = "graduated"


class InvalidQuoteError(CurveEngineError):
    """Quote math produced an impossible result (bad reserves, overflowed output)"""

    reason = "invalid_quote"


class SlippageExceededError(CurveEngineError):
    """Quoted output fell below the caller's floor"""

    reason = "slippage_exceeded"

    def __init__(self, expected_out: int, min_out: int):
        self.expected_out = expected_out
        self.min_out = min_out
        super().__init__(f"slippage exceeded: quoted {expected_out} < minimum {min_out}")


class ReadFailure(CurveEngineError):
    """Reading chain state failed in transit; safe to retry"""

    retryable = True
    reason = "read_failure"


class RPCFailure(ReadFailure):
    """Every configured endpoint failed or returned a JSON-RPC error object"""

    reason = "rpc_failure"


class DecodeFailure(CurveEngineError):
    """Contract returned data that does not match the expected ABI"""

    reason = "decode_failure"
