"""Balance aggregation - raw account balance lines to an asset → amount map."""

from __future__ import annotations

from typing import Iterable

from ...models.ledger import NATIVE_ASSET_CODE, BalanceLine
from ...models.payment import BalanceMap
from ...utils.logging_setup import get_logger
from ..exceptions import ParseError
from ..interfaces.ledger_client import LedgerClient
from .operation_classifier import parse_amount

logger = get_logger(__name__)


def balance_key(line: BalanceLine, qualify_issuer: bool = False) -> str | None:
    """
    Map key for a balance line.

    Native → "XLM"; issued → asset code (or "CODE:ISSUER" when
    qualify_issuer is set). Liquidity pool shares have no asset code and
    map to None.
    """
    if line.is_native:
        return NATIVE_ASSET_CODE
    if not line.asset_code:
        return None
    if qualify_issuer and line.asset_issuer:
        return f"{line.asset_code}:{line.asset_issuer}"
    return line.asset_code


def aggregate_balances(lines: Iterable[BalanceLine], qualify_issuer: bool = False) -> BalanceMap:
    """
    Build a fresh BalanceMap from balance lines.

    Same-code assets from different issuers are summed under the code unless
    qualify_issuer is set.

    Raises:
        ParseError: A balance is not a valid decimal. The whole map is
            rejected rather than returned partially.
    """
    balances: BalanceMap = {}
    for line in lines:
        key = balance_key(line, qualify_issuer)
        if key is None:
            logger.debug(f"Skipping balance line without asset code ({line.asset_type})")
            continue

        amount = parse_amount(line.balance, "balance")
        if key in balances:
            logger.warning(
                f"Asset code collision for {key} (issuer {line.asset_issuer}); summing balances"
            )
            balances[key] += amount
        else:
            balances[key] = amount
    return balances


class BalanceAggregator:
    """Fetches an account and aggregates its balances."""

    def __init__(self, client: LedgerClient, qualify_issuer: bool = False):
        self._client = client
        self._qualify_issuer = qualify_issuer

    async def refresh_balances(self, account: str) -> BalanceMap:
        """
        Fetch current balances for `account`.

        Either returns the full map or raises; never a partial map.

        Raises:
            NotFoundError: Account does not exist on the ledger.
            FetchError: Transport failure.
            ParseError: Malformed balance in the response.
        """
        record = await self._client.get_account(account)
        try:
            balances = aggregate_balances(record.balances, self._qualify_issuer)
        except ParseError as e:
            logger.error(f"Malformed balances for {account}: {e}")
            raise
        logger.info(f"Balances for {account[:8]}...: {len(balances)} assets")
        return balances
