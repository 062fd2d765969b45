"""Unit tests for ConfigManager YAML layering."""

from pathlib import Path

import pytest

from config import ConfigManager

CONFIG_DIR = Path(__file__).resolve().parents[2] / "config"


def write(path: Path, text: str) -> None:
    path.write_text(text, encoding="utf-8")


class TestShippedConfig:
    """The YAML files shipped with the project load cleanly."""

    def test_dev(self):
        config = ConfigManager(CONFIG_DIR, env="dev").load()

        assert config.network.name == "testnet"
        assert config.logging.level == "DEBUG"
        assert config.live.max_retries is None
        assert config.horizon.page_size == 200

    def test_prod(self):
        config = ConfigManager(CONFIG_DIR, env="prod").load()

        assert config.network.name == "public"
        assert config.horizon.max_retries == 5
        assert config.live.backoff_max == 120.0


class TestLayering:
    """base → env → secrets precedence."""

    def test_env_overrides_base_deeply(self, tmp_path):
        write(tmp_path / "base.yaml", "live:\n  backoff:\n    initial_sec: 1\n    max_sec: 60\n")
        write(tmp_path / "test.yaml", "live:\n  backoff:\n    max_sec: 5\n")

        config = ConfigManager(tmp_path, env="test").load()

        assert config.live.backoff_initial == 1.0
        assert config.live.backoff_max == 5.0

    def test_secrets_override_env(self, tmp_path):
        write(tmp_path / "base.yaml", "network:\n  name: testnet\n")
        write(tmp_path / "dev.yaml", "network:\n  horizon_url: http://dev:8000\n")
        write(tmp_path / "secrets.yaml", "network:\n  horizon_url: http://private:8000\n")

        config = ConfigManager(tmp_path, env="dev").load()

        assert config.network.horizon_url == "http://private:8000"
        assert config.raw["network"]["name"] == "testnet"

    def test_defaults_for_empty_base(self, tmp_path):
        write(tmp_path / "base.yaml", "")

        config = ConfigManager(tmp_path).load()

        assert config.history.default_limit == 20
        assert config.classifier.unrelated_policy == "outgoing"
        assert config.balances.qualify_issuer is False

    def test_page_size_capped(self, tmp_path):
        write(tmp_path / "base.yaml", "horizon:\n  page_size: 1000\n")

        assert ConfigManager(tmp_path).load().horizon.page_size == 200


class TestValidation:
    def test_missing_base(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ConfigManager(tmp_path).load()

    def test_unknown_network(self, tmp_path):
        write(tmp_path / "base.yaml", "network:\n  name: futurenet\n")

        with pytest.raises(ValueError, match="Failed to parse config"):
            ConfigManager(tmp_path).load()

    def test_unknown_unrelated_policy(self, tmp_path):
        write(tmp_path / "base.yaml", "classifier:\n  unrelated_policy: ignore\n")

        with pytest.raises(ValueError):
            ConfigManager(tmp_path).load()
