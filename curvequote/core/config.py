"""
Configuration Manager for the curve quoting engine
Loads configuration from YAML files with environment variable support
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml


SELL_QUOTE_SOURCES = ("onchain", "local")


@dataclass
class RPCEndpoint:
    """JSON-RPC endpoint configuration"""
    url: str
    priority: int
    label: str
    timeout_ms: int = 10_000


@dataclass
class RPCConfig:
    """RPC manager configuration"""
    endpoints: List[RPCEndpoint]
    failover_threshold_errors: int = 3


@dataclass
class CurveConfig:
    """Bonding curve contract and trade-building settings"""
    contract_address: str
    chain_id: int = 84532
    gas_limit: int = 300_000
    sell_quote_source: str = "local"
    default_sell_slippage_bps: int = 500


@dataclass
class LogConfig:
    """Logging configuration"""
    level: str = "INFO"
    format: str = "json"
    output_file: Optional[str] = None


@dataclass
class MetricsConfig:
    """Metrics configuration"""
    enable_histogram: bool = True


@dataclass
class ApiConfig:
    """HTTP API configuration"""
    host: str = "0.0.0.0"
    port: int = 8080


@dataclass
class EngineConfig:
    """Complete engine configuration"""
    rpc_config: RPCConfig
    curve_config: CurveConfig
    log_config: LogConfig = field(default_factory=LogConfig)
    metrics_config: MetricsConfig = field(default_factory=MetricsConfig)
    api_config: ApiConfig = field(default_factory=ApiConfig)


class ConfigurationManager:
    """Manages engine configuration from YAML files and environment variables"""

    def __init__(self, config_path: str):
        """
        Args:
            config_path: Path to YAML configuration file
        """
        self.config_path = Path(config_path)
        self._config_data: Optional[Dict[str, Any]] = None
        self._engine_config: Optional[EngineConfig] = None

    def load_config(self) -> EngineConfig:
        """
        Load and validate configuration from file

        Returns:
            EngineConfig: Validated configuration object

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not self.config_path.exists():
            raise FileNotFoundError(
                f"Configuration file not found: {self.config_path}"
            )

        with open(self.config_path, 'r') as f:
            raw_config = yaml.safe_load(f) or {}

        self._config_data = self._substitute_env_vars(raw_config)
        self._engine_config = self._parse_config(self._config_data)

        return self._engine_config

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value by dot-notation key

        Args:
            key: Dot-notation key (e.g., "curve.gas_limit")
            default: Default value if key not found
        """
        if self._config_data is None:
            raise RuntimeError("Configuration not loaded. Call load_config() first.")

        value = self._config_data
        for k in key.split('.'):
            if not isinstance(value, dict):
                return default
            value = value.get(k)
            if value is None:
                return default

        return value

    def _substitute_env_vars(self, config: Any) -> Any:
        """
        Recursively substitute ${VAR_NAME} references with environment values

        Both full values ("${RPC_URL}") and embedded references
        ("https://node/?key=${API_KEY}") are replaced.
        """
        if isinstance(config, dict):
            return {k: self._substitute_env_vars(v) for k, v in config.items()}
        if isinstance(config, list):
            return [self._substitute_env_vars(item) for item in config]
        if isinstance(config, str):
            def replace_var(match):
                var_name = match.group(1)
                value = os.getenv(var_name)
                if value is None:
                    raise ValueError(f"Environment variable {var_name} not found")
                return value

            return re.sub(r'\$\{([^}]+)\}', replace_var, config)
        return config

    def _parse_config(self, config: Dict[str, Any]) -> EngineConfig:
        """
        Parse raw configuration into typed objects

        Raises:
            ValueError: If configuration is invalid
        """
        rpc_data = config.get('rpc', {})
        endpoints_data = rpc_data.get('endpoints', [])

        if not endpoints_data:
            raise ValueError("No RPC endpoints configured")

        endpoints = [
            RPCEndpoint(
                url=ep['url'],
                priority=ep.get('priority', index),
                label=ep.get('label', f"endpoint_{index}"),
                timeout_ms=ep.get('timeout_ms', 10_000)
            )
            for index, ep in enumerate(endpoints_data)
        ]
        # 0 = highest priority
        endpoints.sort(key=lambda x: x.priority)

        rpc_config = RPCConfig(
            endpoints=endpoints,
            failover_threshold_errors=rpc_data.get('failover_threshold_errors', 3)
        )

        curve_data = config.get('curve', {})
        if not curve_data.get('contract_address'):
            raise ValueError("curve.contract_address is required")

        curve_config = CurveConfig(
            contract_address=curve_data['contract_address'],
            chain_id=curve_data.get('chain_id', 84532),
            gas_limit=curve_data.get('gas_limit', 300_000),
            sell_quote_source=curve_data.get('sell_quote_source', 'local'),
            default_sell_slippage_bps=curve_data.get('default_sell_slippage_bps', 500)
        )

        if curve_config.sell_quote_source not in SELL_QUOTE_SOURCES:
            raise ValueError(
                f"curve.sell_quote_source must be one of {SELL_QUOTE_SOURCES}, "
                f"got {curve_config.sell_quote_source!r}"
            )
        if not 0 <= curve_config.default_sell_slippage_bps < 10_000:
            raise ValueError("curve.default_sell_slippage_bps must be in [0, 10000)")
        if curve_config.gas_limit <= 0:
            raise ValueError("curve.gas_limit must be positive")

        log_data = config.get('logging', {})
        log_config = LogConfig(
            level=log_data.get('level', 'INFO'),
            format=log_data.get('format', 'json'),
            output_file=log_data.get('output_file')
        )

        metrics_data = config.get('metrics', {})
        metrics_config = MetricsConfig(
            enable_histogram=metrics_data.get('enable_histogram', True)
        )

        api_data = config.get('api', {})
        api_config = ApiConfig(
            host=api_data.get('host', '0.0.0.0'),
            port=api_data.get('port', 8080)
        )

        return EngineConfig(
            rpc_config=rpc_config,
            curve_config=curve_config,
            log_config=log_config,
            metrics_config=metrics_config,
            api_config=api_config
        )
