"""
Tests for the Config class
"""

import json
from decimal import Decimal

import pytest

from config import Config, ConfigError, _safe_float_env, _safe_int_env


@pytest.fixture
def cfg(tmp_path, monkeypatch):
    """Config with file locations under tmp_path"""
    monkeypatch.setenv("DICE_CONFIG_DIR", str(tmp_path / "config"))
    monkeypatch.setenv("DICE_LOG_DIR", str(tmp_path / "logs"))
    return Config(validate=False, ensure_directories=False)


class TestDefaults:
    """Tests for built-in defaults"""

    def test_financial_defaults(self, cfg):
        """Minimum and default bet"""
        assert cfg.FINANCIAL["min_bet"] == Decimal("0.001")
        assert cfg.FINANCIAL["default_bet"] == "0.01"

    def test_game_rules(self, cfg):
        """Numbers 1-6 and a five-entry recent strip"""
        assert cfg.GAME_RULES["min_number"] == 1
        assert cfg.GAME_RULES["max_number"] == 6
        assert cfg.GAME_RULES["recent_results_limit"] == 5

    def test_history_paging(self, cfg):
        """Pages of 20, growing by 20"""
        assert cfg.HISTORY["page_size"] == 20
        assert cfg.HISTORY["page_increment"] == 20

    def test_defaults_validate(self, cfg):
        """Shipped defaults pass validation"""
        cfg.validate()


class TestEnvironment:
    """Tests for environment overrides"""

    def test_ledger_config_from_env(self, cfg, monkeypatch):
        """Ledger settings are read at call time"""
        monkeypatch.setenv("LEDGER_RPC_URL", "http://node:8545")
        monkeypatch.setenv("LEDGER_CHAIN_ID", "11155111")

        ledger = cfg.get_ledger_config()

        assert ledger["rpc_url"] == "http://node:8545"
        assert ledger["chain_id"] == 11155111

    def test_invalid_int_env_falls_back(self, monkeypatch):
        """Unparseable ints use the default"""
        monkeypatch.setenv("DICE_TEST_INT", "many")

        assert _safe_int_env("DICE_TEST_INT", 7) == 7

    def test_int_env_is_clamped(self, monkeypatch):
        """Bounds are applied"""
        monkeypatch.setenv("DICE_TEST_INT", "99999")

        assert _safe_int_env("DICE_TEST_INT", 7, 1, 3600) == 3600

    def test_negative_float_env_falls_back(self, monkeypatch):
        """Durations cannot be negative"""
        monkeypatch.setenv("DICE_TEST_FLOAT", "-1")

        assert _safe_float_env("DICE_TEST_FLOAT", 2.0) == 2.0

    def test_files_config(self, cfg, tmp_path):
        """Directories come from the environment"""
        assert cfg.FILES["log_dir"] == tmp_path / "logs"


class TestCustomSettings:
    """Tests for get/set and persistence"""

    def test_set_overrides_get(self, cfg):
        """Custom settings win over section defaults"""
        cfg.set("history", "page_size", 50)

        assert cfg.get("history", "page_size") == 50
        assert cfg.get("history", "page_increment") == 20

    def test_get_unknown_returns_default(self, cfg):
        """Unknown keys fall back to the default argument"""
        assert cfg.get("history", "nope", "fallback") == "fallback"

    def test_invalid_custom_value_fails_validation(self, cfg):
        """validate() reports bad custom values"""
        cfg.set("game_rules", "min_number", 9)

        with pytest.raises(ConfigError, match="min_number"):
            cfg.validate()

    def test_save_and_load_preserves_decimal(self, cfg, tmp_path):
        """Decimal values survive a JSON round trip"""
        cfg.set("financial", "min_bet", Decimal("0.005"))
        path = tmp_path / "settings.json"
        cfg.save_to_file(path)

        loaded = Config(validate=False, ensure_directories=False)
        loaded.load_from_file(path)

        assert loaded.get("financial", "min_bet") == Decimal("0.005")

    def test_saved_file_has_no_private_key(self, cfg, tmp_path, monkeypatch):
        """Signing keys are never written to disk"""
        monkeypatch.setenv("LEDGER_PRIVATE_KEY", "0xsecret")
        path = tmp_path / "settings.json"

        cfg.save_to_file(path)

        assert "0xsecret" not in path.read_text()
        assert "private_key" not in json.loads(path.read_text())["ledger"]

    def test_invalid_json_raises(self, cfg, tmp_path):
        """Corrupt config files raise ConfigError"""
        path = tmp_path / "bad.json"
        path.write_text("{not json")

        with pytest.raises(ConfigError):
            cfg.load_from_file(path)
