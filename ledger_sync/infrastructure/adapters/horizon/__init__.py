"""Stellar Horizon adapter."""

from .client import HorizonClient
from .network import NETWORKS, PUBLIC, TESTNET, NetworkConfig, network_for

__all__ = [
    "HorizonClient",
    "NetworkConfig",
    "TESTNET",
    "PUBLIC",
    "NETWORKS",
    "network_for",
]
