"""
Operation classifier - maps ledger operations to normalized payment records.

classify() is a pure function of (transaction, operation, watched account):
no I/O, no mutation, and the same inputs always give an equal record, so it
is safe to re-run over data that was already seen.

Direction rules for payment / path payments:
- incoming  iff `to` is the watched account and neither `from` nor
            `source_account` is
- outgoing  iff `from` or `source_account` is the watched account
- otherwise the operation does not touch the watched account; the
  unrelated policy decides (outgoing by default, or excluded)

create_account is incoming iff the created `account` is the watched one.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, List, Optional

from ...models.ledger import (
    NATIVE_ASSET_CODE,
    CreateAccountOperation,
    Transaction,
    TransferOperation,
)
from ...models.payment import PaymentDirection, PaymentRecord, PaymentStatus
from ...utils.logging_setup import get_logger
from ..exceptions import ParseError

logger = get_logger(__name__)


class UnrelatedPolicy(Enum):
    """What to do with a payment operation that does not touch the watched account."""
    OUTGOING = "outgoing"
    EXCLUDE = "exclude"


def parse_amount(raw: Optional[str], field_name: str = "amount") -> Decimal:
    """
    Parse a ledger decimal string.

    Raises:
        ParseError: Missing, malformed or non-finite value.
    """
    if raw is None:
        raise ParseError(f"Missing {field_name}")
    try:
        value = Decimal(str(raw).strip())
    except (InvalidOperation, ValueError) as e:
        raise ParseError(f"Invalid {field_name} {raw!r}") from e
    if not value.is_finite():
        raise ParseError(f"Non-finite {field_name} {raw!r}")
    return value


class OperationClassifier:
    """Classifies operations against a watched account."""

    def __init__(self, unrelated_policy: UnrelatedPolicy = UnrelatedPolicy.OUTGOING):
        self.unrelated_policy = unrelated_policy

    def classify(
        self,
        transaction: Transaction,
        operation: Any,
        watched_account: str,
    ) -> Optional[PaymentRecord]:
        """
        Classify a single operation.

        Args:
            transaction: Parent transaction (supplies date, hash, status, fee, memo).
            operation: One of the Operation variants.
            watched_account: Account the direction is computed against.

        Returns:
            PaymentRecord, or None for non-payment operations (and, under the
            EXCLUDE policy, payments unrelated to the watched account).

        Raises:
            ParseError: The amount is not a valid decimal.
        """
        if isinstance(operation, CreateAccountOperation):
            return self._classify_create_account(transaction, operation, watched_account)
        if isinstance(operation, TransferOperation):
            return self._classify_transfer(transaction, operation, watched_account)
        return None

    def classify_transaction(
        self,
        transaction: Transaction,
        watched_account: str,
    ) -> List[PaymentRecord]:
        """
        Classify every operation of a transaction, in operation order.

        A malformed operation is logged and skipped; it never aborts the batch.
        """
        records: List[PaymentRecord] = []
        for operation in transaction.operations:
            try:
                record = self.classify(transaction, operation, watched_account)
            except ParseError as e:
                logger.warning(
                    f"Dropping operation {operation.id} of tx {transaction.hash[:12]}: {e}"
                )
                continue
            if record is not None:
                records.append(record)
        return records

    # -------------------------------------------------------------------------
    # Variants
    # -------------------------------------------------------------------------

    def _classify_create_account(
        self,
        transaction: Transaction,
        operation: CreateAccountOperation,
        watched_account: str,
    ) -> PaymentRecord:
        amount = parse_amount(operation.starting_balance, "starting_balance")
        if operation.account == watched_account:
            direction = PaymentDirection.INCOMING
        else:
            direction = PaymentDirection.OUTGOING

        return self._build(
            transaction,
            operation,
            amount=amount,
            token=NATIVE_ASSET_CODE,
            direction=direction,
            from_account=operation.funder or operation.source_account,
            to_account=operation.account,
        )

    def _classify_transfer(
        self,
        transaction: Transaction,
        operation: TransferOperation,
        watched_account: str,
    ) -> Optional[PaymentRecord]:
        amount = parse_amount(operation.amount)
        token = operation.asset_code or NATIVE_ASSET_CODE

        sends = watched_account in (operation.from_account, operation.source_account)
        receives = operation.to_account == watched_account

        if receives and not sends:
            direction = PaymentDirection.INCOMING
        elif sends:
            direction = PaymentDirection.OUTGOING
        elif self.unrelated_policy is UnrelatedPolicy.EXCLUDE:
            return None
        else:
            direction = PaymentDirection.OUTGOING

        return self._build(
            transaction,
            operation,
            amount=amount,
            token=token,
            direction=direction,
            from_account=operation.from_account or operation.source_account,
            to_account=operation.to_account,
        )

    @staticmethod
    def _build(
        transaction: Transaction,
        operation: Any,
        amount: Decimal,
        token: str,
        direction: PaymentDirection,
        from_account: Optional[str],
        to_account: Optional[str],
    ) -> PaymentRecord:
        status = PaymentStatus.COMPLETED if transaction.successful else PaymentStatus.FAILED
        return PaymentRecord(
            id=operation.id,
            date=transaction.created_at,
            amount=amount,
            token=token,
            status=status,
            hash=transaction.hash,
            direction=direction,
            operation_type=operation.type,
            from_account=from_account,
            to_account=to_account,
            fee=transaction.fee_charged,
            memo=transaction.memo,
        )


_default_classifier = OperationClassifier()


def classify(
    transaction: Transaction,
    operation: Any,
    watched_account: str,
) -> Optional[PaymentRecord]:
    """Classify with the default (outgoing fallback) policy."""
    return _default_classifier.classify(transaction, operation, watched_account)
