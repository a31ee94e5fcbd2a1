"""Tests for ConfigManager, ExchangeConfigBuilder and the config structs."""

import pytest

from config import ConfigManager, Credential, substitute_env_vars
from config.exchanges import BYBIT_ENDPOINTS, ExchangeConfigBuilder, parse_bool
from config.structs import OrderGatewayConfig, WebSocketConfig
from infrastructure.exceptions.system import ConfigurationError

ENV = {"BYBIT_API_KEY": "env-key-123456789", "BYBIT_API_SECRET": "env-secret"}


class TestExchangeConfigBuilder:

    def test_credentials_from_environment(self):
        config = ExchangeConfigBuilder(environ=ENV).build()

        assert config.name == "bybit"
        assert config.credentials.key_id == "env-key-123456789"
        assert config.credentials.secret == b"env-secret"
        assert config.base_url == "https://api.bybit.com"
        assert config.private_ws_url == "wss://stream.bybit.com/v5/private"
        assert not config.testnet

    def test_generic_variable_names_accepted(self):
        config = ExchangeConfigBuilder(environ={"API_KEY": "k", "API_SECRET": "s"}).build()
        assert config.credentials.key_id == "k"

    def test_section_values_win_over_environment(self):
        config = ExchangeConfigBuilder(environ=ENV).build({"api_key": "yaml-key", "api_secret": "yaml-secret"})
        assert config.credentials.key_id == "yaml-key"

    @pytest.mark.parametrize("flag", [True, "true", "1", "yes"])
    def test_testnet_endpoints(self, flag):
        config = ExchangeConfigBuilder(environ=ENV).build({"testnet": flag})

        assert config.testnet
        assert config.base_url == BYBIT_ENDPOINTS[True]["base_url"]
        assert config.private_ws_url == "wss://stream-testnet.bybit.com/v5/private"

    def test_testnet_from_environment(self):
        config = ExchangeConfigBuilder(environ={**ENV, "TESTNET": "true"}).build()
        assert config.testnet

    def test_endpoint_override(self):
        config = ExchangeConfigBuilder(environ=ENV).build({"private_ws_url": "ws://127.0.0.1:9000/private"})
        assert config.private_ws_url == "ws://127.0.0.1:9000/private"
        assert config.base_url == "https://api.bybit.com"

    def test_nested_sections(self):
        config = ExchangeConfigBuilder(environ=ENV).build({
            "websocket": {"ping_interval": 15, "max_reconnect_attempts": 5},
            "rest": {"recv_window_ms": 10000},
            "orders": {"category": "linear", "id_prefix": "dca"},
        })

        assert config.websocket.ping_interval == 15
        assert config.websocket.max_reconnect_attempts == 5
        assert config.rest.recv_window_ms == 10000
        assert config.orders == OrderGatewayConfig(category="linear", id_prefix="dca")

    def test_missing_credentials(self):
        with pytest.raises(ConfigurationError) as exc_info:
            ExchangeConfigBuilder(environ={}).build()
        assert exc_info.value.setting_name == "credentials"

    def test_unknown_setting_rejected(self):
        with pytest.raises(ConfigurationError) as exc_info:
            ExchangeConfigBuilder(environ=ENV).build({"websocket": {"ping_every": 5}})
        assert "ping_every" in str(exc_info.value)

    @pytest.mark.parametrize("section", [
        {"websocket": {"auth_expiry_window_ms": 1000}},
        {"websocket": {"reconnect_backoff": 0.5}},
        {"rest": {"max_attempts": 0}},
        {"orders": {"category": "options"}},
        {"orders": {"id_prefix": "toolong"}},
        {"base_url": "ftp://api.bybit.com"},
    ])
    def test_invalid_values_rejected(self, section):
        with pytest.raises(ConfigurationError):
            ExchangeConfigBuilder(environ=ENV).build(section)

    @pytest.mark.parametrize("value, expected", [
        (True, True), ("on", True), ("False", False), (None, False), ("0", False),
    ])
    def test_parse_bool(self, value, expected):
        assert parse_bool(value) is expected


class TestCredential:

    def test_secret_not_in_repr(self):
        credential = Credential(key_id="abcdefghijkl", secret="very-secret-value")

        assert "very-secret-value" not in repr(credential)
        assert credential.get_preview() == "abcd...ijkl"

    def test_short_key_preview_masked(self):
        assert Credential(key_id="abc", secret="s").get_preview() == "***"

    def test_validate(self):
        with pytest.raises(ValueError):
            Credential(key_id="", secret="s").validate()
        with pytest.raises(ValueError):
            Credential(key_id="k", secret="").validate()

    def test_auth_window_bounds(self):
        WebSocketConfig(auth_expiry_window_ms=60_000).validate()
        WebSocketConfig(auth_expiry_window_ms=600_000).validate()
        with pytest.raises(ValueError):
            WebSocketConfig(auth_expiry_window_ms=600_001).validate()


class TestConfigManager:

    def test_substitute_env_vars(self):
        content = "key: ${KEY}\nregion: ${REGION:eu}\nempty: '${MISSING}'"
        result = substitute_env_vars(content, {"KEY": "abc"})
        assert result == "key: abc\nregion: eu\nempty: ''"

    def test_yaml_with_substitution(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "environment: prod\n"
            "exchanges:\n"
            "  bybit:\n"
            "    api_key: ${MY_KEY}\n"
            "    api_secret: ${MY_SECRET}\n"
            "    testnet: ${USE_TESTNET:false}\n"
            "    orders:\n"
            "      retention_seconds: 60\n"
        )

        manager = ConfigManager(path, environ={"MY_KEY": "file-key", "MY_SECRET": "file-secret"})
        config = manager.get_exchange_config("Bybit")

        assert config.credentials.key_id == "file-key"
        assert not config.testnet
        assert config.orders.retention_seconds == 60
        assert manager.environment == "prod"
        assert manager.get_configured_exchanges() == ["bybit"]
        assert manager.get_exchange_config("bybit") is config

    def test_two_accounts_are_independent(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("exchanges:\n  bybit:\n    testnet: true\n")

        first = ConfigManager(path, environ={"BYBIT_API_KEY": "a", "BYBIT_API_SECRET": "1"})
        second = ConfigManager(path, environ={"BYBIT_API_KEY": "b", "BYBIT_API_SECRET": "2"})

        assert first.get_exchange_config().credentials.key_id == "a"
        assert second.get_exchange_config().credentials.key_id == "b"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            ConfigManager(tmp_path / "absent.yaml", environ=ENV)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("exchanges: [unclosed\n")
        with pytest.raises(ConfigurationError):
            ConfigManager(path, environ=ENV)

    def test_non_mapping_top_level(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ConfigurationError):
            ConfigManager(path, environ=ENV)

    def test_logging_section(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "environment: test\n"
            "logging:\n"
            "  console:\n"
            "    min_level: ERROR\n"
            "  file:\n"
            f"    path: {tmp_path / 'session.log'}\n"
            "    format: json\n"
        )

        logging_config = ConfigManager(path, environ=ENV).get_logging_config()

        assert logging_config.environment == "test"
        assert logging_config.console.min_level == "ERROR"
        assert logging_config.file.format == "json"
        assert logging_config.metrics is None

    def test_invalid_logging_section(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("logging:\n  file:\n    format: xml\n")
        with pytest.raises(ConfigurationError):
            ConfigManager(path, environ=ENV).get_logging_config()

    def test_default_logging_by_environment(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("environment: prod\n")

        logging_config = ConfigManager(path, environ=ENV).get_logging_config()

        assert logging_config.environment == "prod"
        assert logging_config.file is not None
