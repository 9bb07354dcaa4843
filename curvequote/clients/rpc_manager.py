"""
JSON-RPC Manager for EVM nodes
HTTP calls with priority-ordered failover across configured endpoints
"""

import asyncio
import itertools
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import aiohttp
from eth_utils import to_bytes

from curvequote.core.config import RPCConfig, RPCEndpoint
from curvequote.core.errors import DecodeFailure, RPCFailure
from curvequote.core.logger import get_logger
from curvequote.core.metrics import LatencyTimer, get_metrics


logger = get_logger(__name__)
metrics = get_metrics()


@dataclass
class EndpointState:
    """Failure bookkeeping for one endpoint"""
    endpoint: RPCEndpoint
    consecutive_failures: int = 0
    total_requests: int = 0
    total_errors: int = 0


class RPCManager:
    """
    Sends JSON-RPC requests over HTTP with automatic failover

    Endpoints are tried in priority order. An endpoint that has failed
    `failover_threshold_errors` times in a row is moved to the back of the
    line until it succeeds again. Per-request timeouts come from each
    endpoint's `timeout_ms`.

    Usage:
        async with RPCManager(config.rpc_config) as rpc:
            raw = await rpc.eth_call(curve_address, calldata)
    """

    def __init__(self, config: RPCConfig, session: Optional[aiohttp.ClientSession] = None):
        """
        Args:
            config: RPC configuration
            session: Existing aiohttp session to share (owned by the caller)
        """
        self.config = config
        self.endpoints: Dict[str, EndpointState] = {
            ep.label: EndpointState(endpoint=ep) for ep in config.endpoints
        }
        self._http_session = session
        self._owns_session = session is None
        self._request_ids = itertools.count(1)

        logger.info(
            "rpc_manager_initialized",
            endpoint_count=len(self.endpoints),
            endpoints=[ep.label for ep in config.endpoints]
        )

    async def start(self) -> None:
        """Open the HTTP session"""
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession()
            self._owns_session = True
        logger.info("rpc_manager_started")

    async def stop(self) -> None:
        """Close the HTTP session if this manager opened it"""
        if self._http_session is not None and self._owns_session:
            await self._http_session.close()
        self._http_session = None
        logger.info("rpc_manager_stopped")

    async def __aenter__(self) -> "RPCManager":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    def _ordered_endpoints(self) -> List[EndpointState]:
        threshold = self.config.failover_threshold_errors
        return sorted(
            self.endpoints.values(),
            key=lambda s: (s.consecutive_failures >= threshold, s.endpoint.priority)
        )

    async def call_http_rpc(self, method: str, params: List[Any]) -> Dict[str, Any]:
        """
        Make a JSON-RPC call, failing over between endpoints

        Args:
            method: JSON-RPC method name
            params: Method parameters

        Returns:
            Full JSON-RPC response dict (with "result")

        Raises:
            RPCFailure: every endpoint failed or answered with an error object
        """
        if self._http_session is None:
            raise RPCFailure("HTTP session not initialized. Call start() first.")

        last_error: Optional[str] = None

        for state in self._ordered_endpoints():
            endpoint = state.endpoint
            state.total_requests += 1
            payload = {
                "jsonrpc": "2.0",
                "id": next(self._request_ids),
                "method": method,
                "params": params
            }

            try:
                with LatencyTimer(metrics, "http_rpc_call", {"endpoint": endpoint.label, "method": method}):
                    timeout = aiohttp.ClientTimeout(total=endpoint.timeout_ms / 1000)
                    async with self._http_session.post(endpoint.url, json=payload, timeout=timeout) as response:
                        response.raise_for_status()
                        result = await response.json(content_type=None)

                if not isinstance(result, dict):
                    raise ValueError(f"unexpected response type {type(result).__name__}")
                if "error" in result:
                    error = result["error"]
                    message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
                    raise ValueError(f"RPC error: {message}")

                state.consecutive_failures = 0
                metrics.increment_counter("http_rpc_success", labels={"endpoint": endpoint.label})
                return result

            except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
                state.consecutive_failures += 1
                state.total_errors += 1
                last_error = f"{endpoint.label}: {str(e) or type(e).__name__}"
                metrics.increment_counter("http_rpc_errors", labels={"endpoint": endpoint.label})
                logger.warning(
                    "http_rpc_call_failed",
                    endpoint=endpoint.label,
                    method=method,
                    error=str(e) or type(e).__name__,
                    consecutive_failures=state.consecutive_failures
                )

                if state.consecutive_failures == self.config.failover_threshold_errors:
                    logger.error(
                        "http_rpc_endpoint_failing_over",
                        endpoint=endpoint.label,
                        failures=state.consecutive_failures
                    )

        raise RPCFailure(f"All HTTP RPC endpoints failed. Last error: {last_error}")

    async def eth_call(self, to: str, data: str, block: str = "latest") -> bytes:
        """
        Read-only contract call

        Args:
            to: Contract address
            data: 0x-prefixed calldata
            block: Block tag

        Returns:
            Raw return data

        Raises:
            RPCFailure: transport failure
            DecodeFailure: result is not a hex string
        """
        response = await self.call_http_rpc("eth_call", [{"to": to, "data": data}, block])
        raw = response.get("result")
        if not isinstance(raw, str):
            raise DecodeFailure(f"eth_call returned non-string result: {raw!r}")
        try:
            return to_bytes(hexstr=raw)
        except ValueError as e:
            raise DecodeFailure(f"eth_call returned invalid hex: {e}") from e

    def get_health_stats(self) -> Dict[str, Dict[str, Any]]:
        """Per-endpoint failure counters"""
        threshold = self.config.failover_threshold_errors
        return {
            label: {
                "url": state.endpoint.url,
                "priority": state.endpoint.priority,
                "is_healthy": state.consecutive_failures < threshold,
                "consecutive_failures": state.consecutive_failures,
                "total_requests": state.total_requests,
                "total_errors": state.total_errors,
            }
            for label, state in self.endpoints.items()
        }
