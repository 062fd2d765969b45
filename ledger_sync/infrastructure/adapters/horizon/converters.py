"""
Horizon JSON → ledger model converters.

Horizon wraps collections as {"_embedded": {"records": [...]}}. Records are
validated into the frozen models; a malformed operation or listed
transaction is dropped on its own, a malformed single transaction or
account raises ParseError.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import TypeAdapter, ValidationError

from ....domain.exceptions import ParseError
from ....models.ledger import AccountRecord, Operation, Transaction, TransactionPage
from ....utils.logging_setup import get_logger

logger = get_logger(__name__)

_operation_adapter: TypeAdapter = TypeAdapter(Operation)


def embedded_records(payload: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Extract `_embedded.records` from a Horizon collection response."""
    try:
        records = payload["_embedded"]["records"]
    except (KeyError, TypeError) as e:
        raise ParseError("Horizon collection response has no _embedded.records") from e
    if not isinstance(records, list):
        raise ParseError("Horizon _embedded.records is not a list")
    return records


def parse_transaction(record: Dict[str, Any]) -> Transaction:
    try:
        return Transaction.model_validate(record)
    except ValidationError as e:
        label = record.get("hash", "?") if isinstance(record, dict) else "?"
        raise ParseError(f"Malformed transaction {label}: {e}") from e


def parse_operation(record: Dict[str, Any]) -> Operation:
    try:
        return _operation_adapter.validate_python(record)
    except ValidationError as e:
        raise ParseError(f"Malformed operation {record.get('id', '?')}: {e}") from e


def parse_operations(records: List[Dict[str, Any]]) -> List[Operation]:
    """Parse operations, dropping (and logging) any malformed one."""
    operations: List[Operation] = []
    for record in records:
        try:
            operations.append(parse_operation(record))
        except ParseError as e:
            logger.warning(str(e))
    return operations


def parse_transaction_page(payload: Dict[str, Any]) -> TransactionPage:
    """
    Parse a transaction listing, dropping (and logging) any malformed record.

    The next cursor comes from the last raw record so paging moves past
    a dropped record instead of stopping on it.
    """
    raw_records = embedded_records(payload)
    records: List[Transaction] = []
    for record in raw_records:
        try:
            records.append(parse_transaction(record))
        except ParseError as e:
            logger.warning(f"Skipping listed record: {e}")

    next_cursor: Optional[str] = None
    if raw_records and isinstance(raw_records[-1], dict):
        last = raw_records[-1]
        next_cursor = last.get("paging_token") or last.get("id")
    if next_cursor is None and records:
        next_cursor = records[-1].cursor
    return TransactionPage(records=records, next_cursor=next_cursor, fetched=len(raw_records))


def parse_account(payload: Dict[str, Any]) -> AccountRecord:
    try:
        return AccountRecord.model_validate(payload)
    except ValidationError as e:
        raise ParseError(f"Malformed account {payload.get('account_id', '?')}: {e}") from e
