"""
Configuration manager with environment-based loading.

Supports:
- Base configuration (base.yaml)
- Environment-specific overrides (dev.yaml, prod.yaml)
- Secrets loading (secrets.yaml - gitignored)
"""

from __future__ import annotations
from pathlib import Path
from typing import Dict, Any
import yaml
import logging

from .models import (
    AppConfig,
    NetworkSettings,
    HorizonConfig,
    HistoryConfig,
    LiveConfig,
    ClassifierConfig,
    BalancesConfig,
    StorageConfig,
    LoggingConfig,
)


logger = logging.getLogger(__name__)

_NETWORKS = ("testnet", "public")
_UNRELATED_POLICIES = ("outgoing", "exclude")


class ConfigManager:
    """
    Configuration manager with environment support.

    Loads configuration in this order:
    1. base.yaml (default config)
    2. {env}.yaml (environment-specific, e.g., dev.yaml)
    3. secrets.yaml (if exists, gitignored)

    Later configs override earlier ones.
    """

    def __init__(self, config_dir: str | Path = "config", env: str = "dev"):
        """
        Initialize config manager.

        Args:
            config_dir: Directory containing config files.
            env: Environment name (dev, prod, etc).
        """
        self.config_dir = Path(config_dir)
        self.env = env
        self.config: Dict[str, Any] = {}

    def load(self) -> AppConfig:
        """
        Load configuration from YAML files.

        Returns:
            AppConfig object.

        Raises:
            FileNotFoundError: If base config not found.
            ValueError: If config is invalid.
        """
        base_path = self.config_dir / "base.yaml"
        if not base_path.exists():
            raise FileNotFoundError(f"Base config not found: {base_path}")

        self.config = self._load_yaml(base_path)
        logger.info(f"Loaded base config from {base_path}")

        # Load environment-specific config (optional)
        env_path = self.config_dir / f"{self.env}.yaml"
        if env_path.exists():
            env_config = self._load_yaml(env_path)
            self.config = self._merge_dicts(self.config, env_config)
            logger.info(f"Loaded {self.env} config from {env_path}")

        # Load secrets (optional, gitignored)
        secrets_path = self.config_dir / "secrets.yaml"
        if secrets_path.exists():
            secrets = self._load_yaml(secrets_path)
            self.config = self._merge_dicts(self.config, secrets)
            logger.info("Loaded secrets")

        return self._parse_config()

    def _load_yaml(self, path: Path) -> Dict[str, Any]:
        with open(path, "r") as f:
            return yaml.safe_load(f) or {}

    def _merge_dicts(self, base: Dict, override: Dict) -> Dict:
        """Deep merge two dicts (override wins)."""
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_dicts(result[key], value)
            else:
                result[key] = value
        return result

    def _parse_config(self) -> AppConfig:
        """Parse raw dict into AppConfig."""
        try:
            network_raw = self.config.get("network", {})
            network = NetworkSettings(
                name=network_raw.get("name", "testnet"),
                horizon_url=network_raw.get("horizon_url"),
            )
            if network.name not in _NETWORKS:
                raise ValueError(f"network.name must be one of {_NETWORKS}, got {network.name!r}")

            horizon_raw = self.config.get("horizon", {})
            horizon = HorizonConfig(
                timeout_sec=float(horizon_raw.get("timeout_sec", 15.0)),
                max_retries=int(horizon_raw.get("max_retries", 3)),
                page_size=min(int(horizon_raw.get("page_size", 200)), 200),
                stream_read_timeout_sec=horizon_raw.get("stream_read_timeout_sec"),
            )

            history_raw = self.config.get("history", {})
            history = HistoryConfig(
                default_limit=int(history_raw.get("default_limit", 20)),
                max_concurrency=int(history_raw.get("max_concurrency", 8)),
            )

            live_raw = self.config.get("live", {})
            backoff_raw = live_raw.get("backoff", {})
            live = LiveConfig(
                backoff_initial=float(backoff_raw.get("initial_sec", 1.0)),
                backoff_max=float(backoff_raw.get("max_sec", 60.0)),
                backoff_factor=float(backoff_raw.get("factor", 2.0)),
                backoff_jitter=float(backoff_raw.get("jitter", 0.2)),
                max_retries=live_raw.get("max_retries"),
            )

            classifier_raw = self.config.get("classifier", {})
            classifier = ClassifierConfig(
                unrelated_policy=classifier_raw.get("unrelated_policy", "outgoing"),
            )
            if classifier.unrelated_policy not in _UNRELATED_POLICIES:
                raise ValueError(
                    f"classifier.unrelated_policy must be one of {_UNRELATED_POLICIES}, "
                    f"got {classifier.unrelated_policy!r}"
                )

            balances_raw = self.config.get("balances", {})
            balances = BalancesConfig(
                qualify_issuer=bool(balances_raw.get("qualify_issuer", False)),
            )

            storage_raw = self.config.get("storage", {})
            storage = StorageConfig(
                cursor_file=storage_raw.get("cursor_file", "./data/cursors.json"),
                session_file=storage_raw.get("session_file", "./data/session.json"),
            )

            logging_raw = self.config.get("logging", {})
            logging_config = LoggingConfig(
                level=logging_raw.get("level", "INFO"),
                dir=logging_raw.get("dir", "./logs"),
                console=logging_raw.get("console", True),
                timezone=logging_raw.get("timezone", "local"),
            )

            return AppConfig(
                network=network,
                horizon=horizon,
                history=history,
                live=live,
                classifier=classifier,
                balances=balances,
                storage=storage,
                logging=logging_config,
                raw=self.config,
            )

        except Exception as e:
            raise ValueError(f"Failed to parse config: {e}")
