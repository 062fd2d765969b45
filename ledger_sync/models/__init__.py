"""Data models."""

from .ledger import (
    CREATE_ACCOUNT,
    NATIVE_ASSET_CODE,
    PATH_PAYMENT_STRICT_RECEIVE,
    PATH_PAYMENT_STRICT_SEND,
    PAYMENT,
    PAYMENT_OPERATION_TYPES,
    AccountRecord,
    BalanceLine,
    CreateAccountOperation,
    Operation,
    OtherOperation,
    PathPaymentStrictReceiveOperation,
    PathPaymentStrictSendOperation,
    PaymentOperation,
    Transaction,
    TransactionPage,
    TransferOperation,
)
from .payment import BalanceMap, PaymentDirection, PaymentRecord, PaymentStatus

__all__ = [
    # Ledger resources
    "Transaction",
    "TransactionPage",
    "Operation",
    "TransferOperation",
    "PaymentOperation",
    "PathPaymentStrictReceiveOperation",
    "PathPaymentStrictSendOperation",
    "CreateAccountOperation",
    "OtherOperation",
    "AccountRecord",
    "BalanceLine",
    # Constants
    "NATIVE_ASSET_CODE",
    "PAYMENT",
    "PATH_PAYMENT_STRICT_RECEIVE",
    "PATH_PAYMENT_STRICT_SEND",
    "CREATE_ACCOUNT",
    "PAYMENT_OPERATION_TYPES",
    # Payments
    "PaymentRecord",
    "PaymentStatus",
    "PaymentDirection",
    "BalanceMap",
]
