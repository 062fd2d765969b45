"""Stellar network presets."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional

from ....domain.exceptions import ConfigurationError


@dataclass(frozen=True)
class NetworkConfig:
    """Horizon endpoint and network identity."""

    name: str
    horizon_url: str
    network_passphrase: str
    friendbot_url: Optional[str] = None

    @property
    def is_testnet(self) -> bool:
        return self.name == "testnet"


TESTNET = NetworkConfig(
    name="testnet",
    horizon_url="https://horizon-testnet.stellar.org",
    network_passphrase="Test SDF Network ; September 2015",
    friendbot_url="https://friendbot.stellar.org",
)

PUBLIC = NetworkConfig(
    name="public",
    horizon_url="https://horizon.stellar.org",
    network_passphrase="Public Global Stellar Network ; September 2015",
)

NETWORKS = {
    TESTNET.name: TESTNET,
    PUBLIC.name: PUBLIC,
}


def network_for(name: str, horizon_url: Optional[str] = None) -> NetworkConfig:
    """
    Resolve a network preset, optionally pointing it at another Horizon.

    Raises:
        ConfigurationError: Unknown network name.
    """
    try:
        network = NETWORKS[name]
    except KeyError:
        raise ConfigurationError(
            f"Unknown network {name!r} (expected one of: {', '.join(NETWORKS)})"
        ) from None
    if horizon_url:
        network = replace(network, horizon_url=horizon_url.rstrip("/"))
    return network
