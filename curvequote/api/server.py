"""
HTTP API for prices and trade requests
aiohttp.web application over the pricing service and the trade builder
"""

import asyncio
from typing import Any, Dict, Optional

from aiohttp import web

from curvequote.clients.curve_client import CurveClient
from curvequote.clients.rpc_manager import RPCManager
from curvequote.core.config import EngineConfig
from curvequote.core.errors import CurveEngineError, DecodeFailure, InvalidInputError, ReadFailure
from curvequote.core.logger import get_logger
from curvequote.core.metrics import get_metrics
from curvequote.core.units import format_amount, parse_amount
from curvequote.services.pricing import PricingService
from curvequote.services.trade_builder import REJECT_MESSAGES, Rejected, RejectReason, TradeBuilder


logger = get_logger(__name__)
metrics = get_metrics()


TRADE_BUILDER_KEY = web.AppKey("trade_builder", TradeBuilder)
PRICING_SERVICE_KEY = web.AppKey("pricing_service", PricingService)
RPC_MANAGER_KEY = web.AppKey("rpc_manager", RPCManager)

REJECT_STATUS = {
    RejectReason.NOT_FOUND: 404,
    RejectReason.GRADUATED: 409,
    RejectReason.SLIPPAGE_EXCEEDED: 409,
    RejectReason.INVALID_INPUT: 400,
    RejectReason.INVALID_QUOTE: 422,
}


def _error_body(error: CurveEngineError) -> Dict[str, Any]:
    return {
        "success": False,
        "error": str(error) or error.reason,
        "reason": error.reason,
        "retryable": error.retryable,
    }


def _rejected_response(rejected: Rejected) -> web.Response:
    return web.json_response(rejected.to_dict(), status=REJECT_STATUS[rejected.reason])


@web.middleware
async def error_middleware(request: web.Request, handler) -> web.StreamResponse:
    """Map engine errors onto status codes; ReadFailure is the only retryable one"""
    try:
        return await handler(request)
    except InvalidInputError as e:
        return web.json_response(_error_body(e), status=400)
    except DecodeFailure as e:
        logger.error("api_decode_failure", path=request.path, error=str(e), exc_info=True)
        metrics.increment_counter("api_errors", labels={"reason": e.reason})
        return web.json_response(_error_body(e), status=502)
    except ReadFailure as e:
        logger.warning("api_read_failure", path=request.path, error=str(e))
        metrics.increment_counter("api_errors", labels={"reason": e.reason})
        return web.json_response(_error_body(e), status=503)
    except CurveEngineError as e:
        logger.warning("api_engine_error", path=request.path, reason=e.reason, error=str(e))
        metrics.increment_counter("api_errors", labels={"reason": e.reason})
        return web.json_response(_error_body(e), status=422)


async def _read_body(request: web.Request) -> Dict[str, Any]:
    try:
        body = await request.json()
    except ValueError:
        raise InvalidInputError("request body must be JSON") from None

    if not isinstance(body, dict):
        raise InvalidInputError("request body must be a JSON object")
    return body


def _require(body: Dict[str, Any], field: str) -> Any:
    value = body.get(field)
    if value is None or value == "":
        raise InvalidInputError(f"{field} is required")
    return value


def _optional_amount(body: Dict[str, Any], field: str) -> Optional[int]:
    value = body.get(field)
    if value is None or value == "":
        return None
    return parse_amount(value, field)


async def price_handler(request: web.Request) -> web.Response:
    """GET /price/{token_address}"""
    pricing = request.app[PRICING_SERVICE_KEY]
    result = await pricing.get_price(request.match_info["token_address"])

    if result is None:
        return web.json_response(
            {
                "success": False,
                "error": REJECT_MESSAGES[RejectReason.NOT_FOUND],
                "reason": RejectReason.NOT_FOUND.value,
            },
            status=404
        )
    return web.json_response(PricingService.to_response(result))


async def buy_handler(request: web.Request) -> web.Response:
    """POST /trade/buy {tokenAddress, ethAmount, minTokensOut?}"""
    body = await _read_body(request)
    token_address = _require(body, "tokenAddress")
    eth_in = parse_amount(_require(body, "ethAmount"), "ethAmount")
    min_tokens_out = _optional_amount(body, "minTokensOut")

    builder = request.app[TRADE_BUILDER_KEY]
    result = await builder.build_buy(token_address, eth_in, min_tokens_out)
    if isinstance(result, Rejected):
        return _rejected_response(result)

    return web.json_response({
        "success": True,
        "tokensOut": format_amount(result.expected_out),
        "transactionRequest": result.to_dict(),
    })


async def sell_handler(request: web.Request) -> web.Response:
    """POST /trade/sell {tokenAddress, tokenAmount, minEthOut?}

    Signing and broadcasting happen elsewhere, so txHash is always null.
    """
    body = await _read_body(request)
    token_address = _require(body, "tokenAddress")
    token_in = parse_amount(_require(body, "tokenAmount"), "tokenAmount")
    min_eth_out = _optional_amount(body, "minEthOut")

    builder = request.app[TRADE_BUILDER_KEY]
    result = await builder.build_sell(token_address, token_in, min_eth_out)
    if isinstance(result, Rejected):
        return _rejected_response(result)

    return web.json_response({
        "success": True,
        "ethReceived": format_amount(result.expected_out),
        "transactionRequest": result.to_dict(),
        "txHash": None,
    })


async def health_handler(request: web.Request) -> web.Response:
    """Health check endpoint"""
    return web.Response(text="OK", status=200)


async def metrics_handler(request: web.Request) -> web.Response:
    """In-process counters and latency percentiles as JSON"""
    return web.json_response(metrics.export_metrics())


def create_app(trade_builder: TradeBuilder, pricing_service: PricingService) -> web.Application:
    """
    Build the web application around already constructed services

    Args:
        trade_builder: Builds buy/sell transaction requests
        pricing_service: Answers price lookups

    Returns:
        aiohttp Application (routes and error middleware installed)
    """
    app = web.Application(middlewares=[error_middleware])
    app[TRADE_BUILDER_KEY] = trade_builder
    app[PRICING_SERVICE_KEY] = pricing_service

    app.router.add_get("/price/{token_address}", price_handler)
    app.router.add_post("/trade/buy", buy_handler)
    app.router.add_post("/trade/sell", sell_handler)
    app.router.add_get("/health", health_handler)
    app.router.add_get("/metrics", metrics_handler)
    return app


async def _start_rpc(app: web.Application) -> None:
    await app[RPC_MANAGER_KEY].start()


async def _stop_rpc(app: web.Application) -> None:
    await app[RPC_MANAGER_KEY].stop()


def create_engine_app(config: EngineConfig) -> web.Application:
    """Wire RPC manager, curve client and services from configuration"""
    rpc_manager = RPCManager(config.rpc_config)
    curve_client = CurveClient(rpc_manager, config.curve_config.contract_address)

    app = create_app(
        TradeBuilder(curve_client, config.curve_config),
        PricingService(curve_client)
    )
    app[RPC_MANAGER_KEY] = rpc_manager
    app.on_startup.append(_start_rpc)
    app.on_cleanup.append(_stop_rpc)
    return app


async def run_server(config: EngineConfig) -> None:
    """Serve the API until cancelled"""
    app = create_engine_app(config)

    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, config.api_config.host, config.api_config.port)

    await site.start()
    logger.info(
        "api_server_started",
        host=config.api_config.host,
        port=config.api_config.port,
        curve_address=config.curve_config.contract_address,
        chain_id=config.curve_config.chain_id
    )

    try:
        while True:
            await asyncio.sleep(3600)
    finally:
        await runner.cleanup()
        logger.info("api_server_stopped")
