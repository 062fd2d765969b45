"""
Rich renderables for payments, balances and live events.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Iterable, Optional

from rich.table import Table
from rich.text import Text

from ..domain.events.domain_events import (
    BalancesUpdated,
    LiveStateChanged,
    SessionChanged,
    SyncErrorEvent,
    TransactionReceived,
)
from ..models.payment import BalanceMap, PaymentDirection, PaymentRecord, PaymentStatus

_STATUS_STYLES = {
    PaymentStatus.COMPLETED: "green",
    PaymentStatus.FAILED: "red",
    PaymentStatus.PENDING: "yellow",
    PaymentStatus.CONVERTING: "yellow",
}

_STATE_STYLES = {
    "streaming": "green",
    "connecting": "yellow",
    "reconnecting": "yellow",
    "disconnected": "red",
}


def short_account(account: Optional[str]) -> str:
    """GABC...WXYZ"""
    if not account:
        return "-"
    if len(account) <= 8:
        return account
    return f"{account[:4]}...{account[-4:]}"


def format_amount(amount: Decimal) -> str:
    # Ledger amounts carry 7 decimal places; drop trailing zeros for display
    return format(amount.normalize(), "f")


def render_payments(records: Iterable[PaymentRecord], account: str) -> Table:
    """Payments table, one row per record in the given order."""
    table = Table(title=f"Payments for {short_account(account)}", show_header=True, padding=(0, 1))
    table.add_column("Date", style="dim", no_wrap=True)
    table.add_column("Dir", no_wrap=True, width=4)
    table.add_column("Amount", justify="right")
    table.add_column("Token", style="cyan", no_wrap=True)
    table.add_column("Counterparty", no_wrap=True)
    table.add_column("Type", style="dim")
    table.add_column("Status", no_wrap=True)
    table.add_column("Hash", style="dim", no_wrap=True)

    for record in records:
        incoming = record.direction is PaymentDirection.INCOMING
        counterparty = record.from_account if incoming else record.to_account
        table.add_row(
            record.date.strftime("%Y-%m-%d %H:%M:%S"),
            Text("IN", style="green") if incoming else Text("OUT", style="magenta"),
            format_amount(record.amount),
            record.token,
            short_account(counterparty),
            record.operation_type,
            Text(record.status.value, style=_STATUS_STYLES.get(record.status, "")),
            record.hash[:12],
        )

    if table.row_count == 0:
        table.caption = "No payments"
    return table


def render_balances(balances: BalanceMap, account: str) -> Table:
    table = Table(title=f"Balances for {short_account(account)}", show_header=True, padding=(0, 1))
    table.add_column("Asset", style="cyan", no_wrap=True)
    table.add_column("Balance", justify="right")

    # Native asset first, then alphabetical
    for code in sorted(balances, key=lambda c: (c != "XLM", c)):
        table.add_row(code, format_amount(balances[code]))

    if not balances:
        table.caption = "Account not found or holds no assets"
    return table


def format_event(event: Any) -> Text:
    """One-line description of a bus event for the watch command."""
    if isinstance(event, TransactionReceived) and event.record is not None:
        record = event.record
        arrow = "←" if record.is_incoming else "→"
        style = "green" if record.is_incoming else "magenta"
        counterparty = record.from_account if record.is_incoming else record.to_account
        return Text(
            f"{record.date:%H:%M:%S} {arrow} {format_amount(record.amount)} {record.token} "
            f"{short_account(counterparty)} ({record.operation_type}, {record.hash[:12]})",
            style=style,
        )

    if isinstance(event, LiveStateChanged):
        suffix = f" (attempt {event.reconnect_attempt})" if event.reconnect_attempt else ""
        return Text(
            f"stream {event.previous} → {event.state}{suffix}",
            style=_STATE_STYLES.get(event.state, "dim"),
        )

    if isinstance(event, SyncErrorEvent):
        return Text(f"{event.phase.value} error for {short_account(event.account)}: {event.message}", style="bold red")

    if isinstance(event, BalancesUpdated):
        assets = ", ".join(f"{format_amount(v)} {k}" for k, v in sorted(event.balances.items()))
        return Text(f"balances {short_account(event.account)}: {assets or 'none'}", style="cyan")

    if isinstance(event, SessionChanged):
        status = "connected" if event.active else "disconnected"
        return Text(f"wallet {status}: {short_account(event.account)}", style="dim")

    return Text(str(event), style="dim")
