"""Domain services."""

from .balance_aggregator import BalanceAggregator, aggregate_balances, balance_key
from .operation_classifier import (
    OperationClassifier,
    UnrelatedPolicy,
    classify,
    parse_amount,
)

__all__ = [
    "OperationClassifier",
    "UnrelatedPolicy",
    "classify",
    "parse_amount",
    "BalanceAggregator",
    "aggregate_balances",
    "balance_key",
]
