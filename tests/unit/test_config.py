"""
Unit tests for Configuration Manager (core/config.py)

Tests:
- YAML parsing
- Environment variable substitution
- Configuration validation
- Defaults
"""

import pytest
import yaml

from curvequote.core.config import ConfigurationManager, CurveConfig, EngineConfig


def write_config(tmp_path, data) -> str:
    config_file = tmp_path / "config.yml"
    with open(config_file, "w") as f:
        yaml.dump(data, f)
    return str(config_file)


class TestConfigurationManager:
    """Test configuration loading and validation"""

    def test_load_valid_config(self, test_config_file):
        """Test loading a valid configuration file"""
        engine_config = ConfigurationManager(test_config_file).load_config()

        assert isinstance(engine_config, EngineConfig)

        assert len(engine_config.rpc_config.endpoints) == 2
        assert engine_config.rpc_config.failover_threshold_errors == 3
        assert engine_config.rpc_config.endpoints[0].timeout_ms == 5000

        assert engine_config.curve_config.chain_id == 84532
        assert engine_config.curve_config.gas_limit == 300000
        assert engine_config.curve_config.sell_quote_source == "local"
        assert engine_config.curve_config.default_sell_slippage_bps == 500

        assert engine_config.log_config.level == "DEBUG"
        assert engine_config.metrics_config.enable_histogram is True
        assert engine_config.api_config.host == "127.0.0.1"
        assert engine_config.api_config.port == 8080

    def test_rpc_endpoint_priority_sorting(self, test_config_dict, tmp_path):
        """Endpoints come back sorted by priority, 0 first"""
        test_config_dict["rpc"]["endpoints"][0]["priority"] = 5
        engine_config = ConfigurationManager(write_config(tmp_path, test_config_dict)).load_config()

        endpoints = engine_config.rpc_config.endpoints
        assert [ep.label for ep in endpoints] == ["backup", "primary"]

    def test_missing_config_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ConfigurationManager(str(tmp_path / "missing.yml")).load_config()

    def test_no_endpoints(self, test_config_dict, tmp_path):
        test_config_dict["rpc"]["endpoints"] = []

        with pytest.raises(ValueError, match="No RPC endpoints configured"):
            ConfigurationManager(write_config(tmp_path, test_config_dict)).load_config()

    def test_missing_contract_address(self, test_config_dict, tmp_path):
        del test_config_dict["curve"]["contract_address"]

        with pytest.raises(ValueError, match="curve.contract_address is required"):
            ConfigurationManager(write_config(tmp_path, test_config_dict)).load_config()

    def test_invalid_sell_quote_source(self, test_config_dict, tmp_path):
        test_config_dict["curve"]["sell_quote_source"] = "oracle"

        with pytest.raises(ValueError, match="sell_quote_source"):
            ConfigurationManager(write_config(tmp_path, test_config_dict)).load_config()

    @pytest.mark.parametrize("bps", [-1, 10_000])
    def test_invalid_default_slippage(self, test_config_dict, tmp_path, bps):
        test_config_dict["curve"]["default_sell_slippage_bps"] = bps

        with pytest.raises(ValueError, match="default_sell_slippage_bps"):
            ConfigurationManager(write_config(tmp_path, test_config_dict)).load_config()

    def test_invalid_gas_limit(self, test_config_dict, tmp_path):
        test_config_dict["curve"]["gas_limit"] = 0

        with pytest.raises(ValueError, match="gas_limit"):
            ConfigurationManager(write_config(tmp_path, test_config_dict)).load_config()

    def test_env_var_substitution(self, test_config_dict, tmp_path, monkeypatch):
        """Full and embedded ${VAR} references are both replaced"""
        monkeypatch.setenv("TEST_CURVE_ADDRESS", "0x787b7b0d07d7bd0c2fd5f9b3d5dd6ed1c1a69c3d")
        monkeypatch.setenv("TEST_API_KEY", "test-key-12345")
        test_config_dict["curve"]["contract_address"] = "${TEST_CURVE_ADDRESS}"
        test_config_dict["rpc"]["endpoints"][0]["url"] = "https://node.example/v1/${TEST_API_KEY}"

        engine_config = ConfigurationManager(write_config(tmp_path, test_config_dict)).load_config()

        assert engine_config.curve_config.contract_address == "0x787b7b0d07d7bd0c2fd5f9b3d5dd6ed1c1a69c3d"
        assert engine_config.rpc_config.endpoints[0].url == "https://node.example/v1/test-key-12345"

    def test_missing_env_var(self, test_config_dict, tmp_path, monkeypatch):
        monkeypatch.delenv("NONEXISTENT_VAR", raising=False)
        test_config_dict["curve"]["contract_address"] = "${NONEXISTENT_VAR}"

        with pytest.raises(ValueError, match="Environment variable NONEXISTENT_VAR not found"):
            ConfigurationManager(write_config(tmp_path, test_config_dict)).load_config()

    def test_dot_notation_get(self, test_config_file):
        config_manager = ConfigurationManager(test_config_file)
        config_manager.load_config()

        assert config_manager.get("curve.gas_limit") == 300000
        assert config_manager.get("rpc.failover_threshold_errors") == 3
        assert config_manager.get("curve.nonexistent", "default") == "default"
        assert config_manager.get("curve.gas_limit.deeper", 7) == 7

    def test_get_before_load(self, test_config_file):
        with pytest.raises(RuntimeError, match="not loaded"):
            ConfigurationManager(test_config_file).get("curve.gas_limit")

    def test_default_values(self, tmp_path):
        """Only the required keys are given"""
        minimal = {
            "rpc": {"endpoints": [{"url": "https://rpc.example"}]},
            "curve": {"contract_address": "0x787b7b0d07d7bd0c2fd5f9b3d5dd6ed1c1a69c3d"},
        }

        engine_config = ConfigurationManager(write_config(tmp_path, minimal)).load_config()

        endpoint = engine_config.rpc_config.endpoints[0]
        assert endpoint.priority == 0
        assert endpoint.label == "endpoint_0"
        assert endpoint.timeout_ms == 10_000

        assert engine_config.curve_config == CurveConfig(
            contract_address="0x787b7b0d07d7bd0c2fd5f9b3d5dd6ed1c1a69c3d"
        )
        assert engine_config.curve_config.sell_quote_source == "local"
        assert engine_config.log_config.level == "INFO"
        assert engine_config.log_config.format == "json"
        assert engine_config.api_config.port == 8080
