"""Ledger API adapters."""

from .horizon import HorizonClient, NetworkConfig, network_for

__all__ = ["HorizonClient", "NetworkConfig", "network_for"]
