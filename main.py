"""
Ledger Sync - Main Entry Point

Usage:
    python main.py payments GABC... --limit 50     # Classified payment history
    python main.py balances GABC...                # Current balances
    python main.py watch GABC...                   # Live payments until Ctrl-C
    python main.py fund GABC...                    # Testnet friendbot
    python main.py connect GABC...                 # Remember a wallet account
    python main.py --env prod payments             # Uses the connected account
"""

from __future__ import annotations
import asyncio
import argparse
import sys
from typing import Any, Optional

from rich.console import Console

from config.config_manager import ConfigManager
from config.models import AppConfig
from ledger_sync.application import LedgerSyncService
from ledger_sync.domain.events import EventType, LocalEventBus
from ledger_sync.domain.exceptions import LedgerSyncError
from ledger_sync.infrastructure.adapters import HorizonClient, network_for
from ledger_sync.infrastructure.session import FileSessionStore, InMemorySessionStore, WalletSession
from ledger_sync.infrastructure.stores import FileCursorStore, InMemoryCursorStore
from ledger_sync.presentation import format_event, render_balances, render_payments
from ledger_sync.utils import set_log_timezone, setup_category_logging, shutdown_logging
from ledger_sync.utils.backoff import BackoffPolicy

console = Console()


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Stellar payment history, balances and live sync",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py payments GABC... --limit 50
  python main.py --network public balances GABC...
  python main.py watch GABC... --cursor 1234567890
        """
    )

    parser.add_argument(
        "--env",
        type=str,
        default="dev",
        help="Environment config to layer over base.yaml (default: dev)"
    )
    parser.add_argument(
        "--config-dir",
        type=str,
        default="config",
        help="Directory holding base.yaml and environment overrides"
    )
    parser.add_argument(
        "--network",
        type=str,
        choices=["testnet", "public"],
        default=None,
        help="Override the configured network"
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Verbose (DEBUG) logging"
    )

    commands = parser.add_subparsers(dest="command", required=True)

    payments = commands.add_parser("payments", help="Show classified payment history")
    payments.add_argument("account", nargs="?", help="Account id (default: connected wallet)")
    payments.add_argument("--limit", type=int, default=None, help="Transactions to scan")

    balances = commands.add_parser("balances", help="Show current balances")
    balances.add_argument("account", nargs="?", help="Account id (default: connected wallet)")

    watch = commands.add_parser("watch", help="Stream new payments until Ctrl-C")
    watch.add_argument("account", nargs="?", help="Account id (default: connected wallet)")
    watch.add_argument("--cursor", type=str, default=None, help="Resume cursor (default: stored or 'now')")

    fund = commands.add_parser("fund", help="Fund a testnet account through friendbot")
    fund.add_argument("account")

    connect = commands.add_parser("connect", help="Remember an account as the connected wallet")
    connect.add_argument("account")
    connect.add_argument("--wallet-type", type=str, default="stellar-wallet")

    commands.add_parser("disconnect", help="Forget the connected wallet")

    return parser.parse_args(argv)


def build_client(config: AppConfig, network_override: Optional[str] = None) -> HorizonClient:
    network = network_for(
        network_override or config.network.name,
        None if network_override else config.network.horizon_url,
    )
    return HorizonClient(
        network=network,
        timeout=config.horizon.timeout_sec,
        max_retries=config.horizon.max_retries,
        backoff=BackoffPolicy(initial=0.5, max_delay=10.0),
        stream_read_timeout=config.horizon.stream_read_timeout_sec,
    )


def build_session(config: AppConfig, event_bus: LocalEventBus) -> WalletSession:
    path = config.storage.session_file
    store = FileSessionStore(path) if path else InMemorySessionStore()
    return WalletSession(store, event_bus)


async def run_payments(service: LedgerSyncService, account: str, args: argparse.Namespace) -> int:
    records = await service.fetch_payments(account, args.limit)
    console.print(render_payments(records, account))
    return 0


async def run_balances(service: LedgerSyncService, account: str) -> int:
    balances = await service.refresh_balances(account)
    console.print(render_balances(balances, account))
    return 0


async def run_watch(service: LedgerSyncService, account: str, args: argparse.Namespace) -> int:
    def print_event(event: Any) -> None:
        console.print(format_event(event))

    async def refresh_on_payment(event: Any) -> None:
        try:
            await service.refresh_balances(event.account)
        except LedgerSyncError:
            # Already published as an ERROR event
            pass

    for event_type in (
        EventType.TRANSACTION_RECEIVED,
        EventType.LIVE_STATE_CHANGED,
        EventType.BALANCES_UPDATED,
        EventType.ERROR,
    ):
        service.subscribe(event_type, print_event)
    service.subscribe(EventType.TRANSACTION_RECEIVED, refresh_on_payment)

    try:
        await service.refresh_balances(account)
    except LedgerSyncError:
        # Printed through the ERROR subscription; keep watching
        pass

    await service.start_live(account, cursor=args.cursor)
    console.print(f"[dim]Watching {account} (Ctrl-C to stop)[/dim]")
    await asyncio.Event().wait()
    return 0


async def run_fund(client: HorizonClient, args: argparse.Namespace) -> int:
    if await client.fund_testnet_account(args.account):
        console.print(f"[green]Funded {args.account}[/green]")
        return 0
    console.print(f"[yellow]Friendbot refused {args.account} (already funded?)[/yellow]")
    return 1


async def run_session_command(session: WalletSession, args: argparse.Namespace) -> int:
    if args.command == "connect":
        await session.connect(args.account, args.wallet_type)
        console.print(f"Connected {session.format_account()} ({args.wallet_type})")
    else:
        await session.disconnect()
        console.print("Disconnected")
    return 0


def resolve_account(args: argparse.Namespace, session: WalletSession) -> str:
    account = getattr(args, "account", None) or session.current_account()
    if not account:
        raise SystemExit("No account given and no wallet connected (use: python main.py connect ACCOUNT)")
    return account


async def main_async(args: argparse.Namespace) -> int:
    """Main async entry point."""
    config = ConfigManager(config_dir=args.config_dir, env=args.env).load()

    log_tz = config.logging.timezone
    if log_tz and log_tz.lower() != "local":
        set_log_timezone(log_tz)
    else:
        set_log_timezone(None)

    setup_category_logging(
        env=args.env,
        log_dir=config.logging.dir,
        level=config.logging.level,
        console=args.verbose or (config.logging.console and args.command == "watch"),
        verbose=args.verbose,
    )

    event_bus = LocalEventBus()
    session = build_session(config, event_bus)

    if args.command in ("connect", "disconnect"):
        try:
            return await run_session_command(session, args)
        finally:
            shutdown_logging()

    client = build_client(config, args.network)
    cursor_path = config.storage.cursor_file
    cursor_store = FileCursorStore(cursor_path) if cursor_path else InMemoryCursorStore()
    service = LedgerSyncService.from_config(config, client, event_bus=event_bus, cursor_store=cursor_store)

    try:
        if args.command == "payments":
            return await run_payments(service, resolve_account(args, session), args)
        if args.command == "balances":
            return await run_balances(service, resolve_account(args, session))
        if args.command == "watch":
            return await run_watch(service, resolve_account(args, session), args)
        if args.command == "fund":
            return await run_fund(client, args)
        return 2
    finally:
        await service.close()
        shutdown_logging()


def main() -> None:
    """Main entry point."""
    args = parse_args()

    try:
        exit_code = asyncio.run(main_async(args))
        sys.exit(exit_code)
    except KeyboardInterrupt:
        print("Shutdown requested")
        sys.exit(0)
    except LedgerSyncError as e:
        print(f"Error: {e}")
        sys.exit(1)
    except Exception as e:
        print(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
