"""Terminal rendering for the CLI."""

from .console import (
    format_event,
    render_balances,
    render_payments,
    short_account,
)

__all__ = [
    "render_payments",
    "render_balances",
    "format_event",
    "short_account",
]
