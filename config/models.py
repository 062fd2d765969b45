"""Configuration data models."""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Any, Optional


@dataclass
class NetworkSettings:
    """Ledger network selection."""
    name: str = "testnet"  # "testnet" or "public"
    horizon_url: Optional[str] = None  # Override the network's default Horizon URL


@dataclass
class HorizonConfig:
    """Horizon HTTP client configuration."""
    timeout_sec: float = 15.0
    max_retries: int = 3  # Read retries on timeouts, 429 and 5xx
    page_size: int = 200  # Horizon caps pages at 200
    stream_read_timeout_sec: Optional[float] = None  # None = wait forever between events


@dataclass
class HistoryConfig:
    """Payment backfill configuration."""
    default_limit: int = 20
    max_concurrency: int = 8  # Concurrent operation lookups


@dataclass
class LiveConfig:
    """Live stream reconnect configuration."""
    backoff_initial: float = 1.0
    backoff_max: float = 60.0
    backoff_factor: float = 2.0
    backoff_jitter: float = 0.2
    max_retries: Optional[int] = None  # None = reconnect forever


@dataclass
class ClassifierConfig:
    """Operation classifier configuration."""
    unrelated_policy: str = "outgoing"  # "outgoing" or "exclude"


@dataclass
class BalancesConfig:
    """Balance aggregation configuration."""
    qualify_issuer: bool = False  # Key issued assets as CODE:ISSUER


@dataclass
class StorageConfig:
    """Local state files."""
    cursor_file: Optional[str] = "./data/cursors.json"  # None = in-memory only
    session_file: Optional[str] = "./data/session.json"


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    dir: str = "./logs"
    console: bool = True
    timezone: str = "local"  # Timezone for log timestamps (e.g., "UTC" or "local")


@dataclass
class AppConfig:
    """Complete application configuration."""
    network: NetworkSettings
    horizon: HorizonConfig
    history: HistoryConfig
    live: LiveConfig
    classifier: ClassifierConfig
    balances: BalancesConfig
    storage: StorageConfig
    logging: LoggingConfig
    raw: Dict[str, Any] = field(default_factory=dict)  # Raw merged config dict
