"""
Pytest configuration and shared fixtures
These fixtures are available to all test files
"""

from typing import Any, Dict
from unittest.mock import AsyncMock, Mock

import pytest
import yaml
from eth_abi import encode

from curvequote.clients.curve_abi import TOKEN_STRUCT_TYPES, state_to_struct
from curvequote.clients.curve_client import CurveClient
from curvequote.clients.rpc_manager import RPCManager
from curvequote.core.bonding_curve import ZERO_ADDRESS, BondingCurveState
from curvequote.core.config import CurveConfig, RPCConfig, RPCEndpoint
from curvequote.core.metrics import MetricsCollector, get_metrics


CURVE_ADDRESS = "0x787b7b0d07d7bd0c2fd5f9b3d5dd6ed1c1a69c3d"
TOKEN_ADDRESS = "0x1111111111111111111111111111111111111111"
OTHER_TOKEN_ADDRESS = "0x2222222222222222222222222222222222222222"

ETH = 10 ** 18
TOKEN = 10 ** 18


def make_state(**overrides) -> BondingCurveState:
    """Curve state at launch: 1B virtual tokens against 30 virtual ETH"""
    values = dict(
        token_mint=TOKEN_ADDRESS,
        virtual_token_reserves=1_000_000_000 * TOKEN,
        virtual_eth_reserves=30 * ETH,
        real_token_reserves=800_000_000 * TOKEN,
        real_eth_reserves=0,
        token_total_supply=1_000_000_000 * TOKEN,
        mcap_limit=69 * ETH,
        complete=False,
    )
    values.update(overrides)
    return BondingCurveState(**values)


def encode_state(state: BondingCurveState) -> bytes:
    """What the bondingCurve(token) getter returns for `state`"""
    return encode(TOKEN_STRUCT_TYPES, list(state_to_struct(state)))


def encode_uint(value: int) -> bytes:
    return encode(["uint256"], [value])


@pytest.fixture(autouse=True)
def reset_metrics():
    """Counters are process-wide; start every test from zero"""
    get_metrics().reset()
    yield
    get_metrics().reset()


@pytest.fixture
def test_config_dict() -> Dict[str, Any]:
    """
    Sample configuration dictionary for testing

    Returns valid config that can be modified per test
    """
    return {
        "rpc": {
            "endpoints": [
                {
                    "url": "https://rpc-primary.example",
                    "priority": 0,
                    "label": "primary",
                    "timeout_ms": 5000
                },
                {
                    "url": "https://rpc-backup.example",
                    "priority": 1,
                    "label": "backup",
                    "timeout_ms": 5000
                }
            ],
            "failover_threshold_errors": 3
        },
        "curve": {
            "contract_address": CURVE_ADDRESS,
            "chain_id": 84532,
            "gas_limit": 300000,
            "sell_quote_source": "local",
            "default_sell_slippage_bps": 500
        },
        "logging": {
            "level": "DEBUG",
            "format": "json",
            "output_file": None
        },
        "metrics": {
            "enable_histogram": True
        },
        "api": {
            "host": "127.0.0.1",
            "port": 8080
        }
    }


@pytest.fixture
def test_config_file(test_config_dict, tmp_path):
    """
    Create a temporary config file for testing

    Returns path to temporary YAML config file
    """
    config_file = tmp_path / "test_config.yml"
    with open(config_file, "w") as f:
        yaml.dump(test_config_dict, f)
    return str(config_file)


@pytest.fixture
def rpc_config() -> RPCConfig:
    return RPCConfig(
        endpoints=[
            RPCEndpoint(url="https://rpc-primary.example", priority=0, label="primary", timeout_ms=5000),
            RPCEndpoint(url="https://rpc-backup.example", priority=1, label="backup", timeout_ms=5000),
        ],
        failover_threshold_errors=3
    )


@pytest.fixture
def curve_config() -> CurveConfig:
    return CurveConfig(contract_address=CURVE_ADDRESS)


@pytest.fixture
def standard_curve_state() -> BondingCurveState:
    """Fresh curve: 1B virtual tokens, 30 virtual ETH"""
    return make_state()


@pytest.fixture
def graduated_curve_state() -> BondingCurveState:
    return make_state(
        virtual_token_reserves=200_000_000 * TOKEN,
        virtual_eth_reserves=150 * ETH,
        real_token_reserves=0,
        real_eth_reserves=120 * ETH,
        complete=True
    )


@pytest.fixture
def unregistered_curve_state() -> BondingCurveState:
    """The getter's answer for a token the curve never saw: all zero"""
    return make_state(
        token_mint=ZERO_ADDRESS,
        virtual_token_reserves=0,
        virtual_eth_reserves=0,
        real_token_reserves=0,
        real_eth_reserves=0,
        token_total_supply=0,
        mcap_limit=0,
        complete=False
    )


@pytest.fixture
def mock_rpc_manager():
    """Mock RPC manager for testing"""
    manager = Mock(spec=RPCManager)
    manager.eth_call = AsyncMock()
    return manager


@pytest.fixture
def curve_client(mock_rpc_manager) -> CurveClient:
    """CurveClient with mocked RPC manager"""
    return CurveClient(mock_rpc_manager, CURVE_ADDRESS)


@pytest.fixture
def metrics_collector() -> MetricsCollector:
    """
    Create fresh metrics collector for each test

    Returns clean MetricsCollector instance
    """
    return MetricsCollector(enable_histogram=True, max_samples=100)
