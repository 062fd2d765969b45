"""Domain layer: models of behaviour, events, ports and pure services."""
