"""
Command line entry point
Runs the HTTP API or prints a single price/quote as JSON
"""

import argparse
import asyncio
import json
import sys
from typing import Any, Dict

from curvequote.api.server import run_server
from curvequote.clients.curve_client import CurveClient
from curvequote.clients.rpc_manager import RPCManager
from curvequote.core.config import ConfigurationManager, EngineConfig
from curvequote.core.errors import CurveEngineError
from curvequote.core.logger import bind_engine_context, get_logger, setup_logging
from curvequote.core.metrics import init_metrics
from curvequote.core.units import format_amount, parse_amount
from curvequote.services.pricing import PricingService
from curvequote.services.trade_builder import REJECT_MESSAGES, Rejected, RejectReason, TradeBuilder


logger = get_logger(__name__)


async def run_command(args: argparse.Namespace, config: EngineConfig) -> Dict[str, Any]:
    """Execute one price/quote subcommand and return its JSON-ready result"""
    async with RPCManager(config.rpc_config) as rpc_manager:
        curve_client = CurveClient(rpc_manager, config.curve_config.contract_address)

        if args.command == "price":
            result = await PricingService(curve_client).get_price(args.token)
            if result is None:
                return {
                    "success": False,
                    "error": REJECT_MESSAGES[RejectReason.NOT_FOUND],
                    "reason": RejectReason.NOT_FOUND.value,
                }
            return PricingService.to_response(result)

        builder = TradeBuilder(curve_client, config.curve_config)
        min_out = parse_amount(args.min_out, "min_out") if args.min_out is not None else None

        if args.command == "quote-buy":
            trade = await builder.build_buy(args.token, parse_amount(args.amount, "amount"), min_out)
            out_field = "tokensOut"
        else:
            trade = await builder.build_sell(args.token, parse_amount(args.amount, "amount"), min_out)
            out_field = "ethReceived"

        if isinstance(trade, Rejected):
            return trade.to_dict()
        return {
            "success": True,
            out_field: format_amount(trade.expected_out),
            "transactionRequest": trade.to_dict(),
        }


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="curvequote",
        description="Bonding curve pricing and trade quoting",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Serve the HTTP API
  python -m curvequote serve --config config/config.yml

  # Price a token
  python -m curvequote price 0x1111111111111111111111111111111111111111

  # Quote a 0.1 ETH buy with a floor of 1000 tokens
  python -m curvequote quote-buy 0x1111111111111111111111111111111111111111 0.1 --min-out 1000

  # Quote selling 5000 tokens (5% default floor)
  python -m curvequote quote-sell 0x1111111111111111111111111111111111111111 5000
        """
    )
    parser.add_argument(
        "--config",
        default="config/config.yml",
        help="Path to config.yml"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("serve", help="Run the HTTP API")

    price = subparsers.add_parser("price", help="Print price metrics for a token")
    price.add_argument("token", help="Token address")

    quote_buy = subparsers.add_parser("quote-buy", help="Build a buy request")
    quote_buy.add_argument("token", help="Token address")
    quote_buy.add_argument("amount", help="ETH to spend (e.g. 0.1)")
    quote_buy.add_argument("--min-out", help="Minimum tokens to receive")

    quote_sell = subparsers.add_parser("quote-sell", help="Build a sell request")
    quote_sell.add_argument("token", help="Token address")
    quote_sell.add_argument("amount", help="Tokens to sell (e.g. 5000)")
    quote_sell.add_argument("--min-out", help="Minimum ETH to receive")

    return parser


def main() -> int:
    args = build_parser().parse_args()

    config = ConfigurationManager(args.config).load_config()
    setup_logging(
        level=config.log_config.level,
        format=config.log_config.format,
        output_file=config.log_config.output_file
    )
    bind_engine_context(config.curve_config.contract_address, config.curve_config.chain_id)
    init_metrics(enable_histogram=config.metrics_config.enable_histogram)

    if args.command == "serve":
        try:
            asyncio.run(run_server(config))
        except KeyboardInterrupt:
            logger.info("api_server_interrupted")
        return 0

    try:
        result = asyncio.run(run_command(args, config))
    except CurveEngineError as e:
        logger.error("command_failed", command=args.command, reason=e.reason, error=str(e))
        result = {"success": False, "error": str(e), "reason": e.reason, "retryable": e.retryable}

    print(json.dumps(result, indent=2))
    return 0 if result.get("success", True) else 1


if __name__ == "__main__":
    sys.exit(main())
