import logging
from datetime import date, timedelta
from typing import Iterable, List

from helpers.constants import DEFAULT_RETENTION_DAYS
from helpers.types.errors import ValidationError
from helpers.types.partition import PartitionKey, days_ago, describe_partition
from helpers.utils import SymbolReport, isolate
from store.console import ConsoleSession

logger = logging.getLogger(__name__)


def cutoff_day(retention_days: int, today: date | None = None) -> date:
    if retention_days < 0:
        raise ValidationError(f"retention_days must be >= 0, got {retention_days}")
    return days_ago(retention_days, today)


def sweep_days(
    retention_days: int = DEFAULT_RETENTION_DAYS,
    lookback_days: int = 1,
    today: date | None = None,
) -> List[date]:
    """The cutoff day and the lookback_days - 1 days before it, newest first"""
    if lookback_days < 1:
        raise ValidationError(f"lookback_days must be >= 1, got {lookback_days}")
    cutoff = cutoff_day(retention_days, today)
    return [cutoff - timedelta(days=i) for i in range(lookback_days)]


def _delete(console: ConsoleSession, symbol: str, day: date) -> SymbolReport:
    key = PartitionKey(symbol, day)
    deleted = console.delete_partition(key)
    return SymbolReport(symbol, key.name, ok=True, count=int(deleted))


def sweep(
    console: ConsoleSession,
    symbols: Iterable[str],
    retention_days: int = DEFAULT_RETENTION_DAYS,
    lookback_days: int = 1,
    today: date | None = None,
) -> List[SymbolReport]:
    """Deletes the partitions that fell out of the retention window.

    Logs in once and reuses the session for every delete, one at a time. A
    failed login raises AuthError and nothing is deleted; a failed delete is
    reported and the sweep carries on."""
    days = sweep_days(retention_days, lookback_days, today)
    symbols = list(symbols)
    reports: List[SymbolReport] = []
    with console:
        for symbol in symbols:
            for day in days:
                reports.append(
                    isolate(
                        symbol,
                        describe_partition(symbol, day),
                        lambda: _delete(console, symbol, day),
                    )
                )
    logger.info(
        "sweep done: %d deleted, %d failed",
        sum(r.count for r in reports),
        sum(not r.ok for r in reports),
    )
    return reports
