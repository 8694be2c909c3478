import logging
from dataclasses import dataclass
from multiprocessing.pool import ThreadPool
from typing import Callable, Iterable, List, TypeVar

from rich.table import Table

from helpers.types.errors import PipelineError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class SymbolReport:
    """Outcome of one phase for one symbol/partition"""

    symbol: str
    partition: str
    ok: bool
    reason: str | None = None
    # Records pushed, loaded or partitions deleted, depending on the phase
    count: int = 0

    @classmethod
    def failure(cls, symbol: str, partition: str, error: Exception) -> "SymbolReport":
        return cls(symbol, partition, ok=False, reason=f"{type(error).__name__}: {error}")


def isolate(symbol: str, partition: str, job: Callable[[], SymbolReport]) -> SymbolReport:
    """Runs a per symbol job and turns a pipeline failure into a report.

    Anything else is a bug and propagates."""
    try:
        return job()
    except PipelineError as e:
        logger.error("%s (%s) failed: %s", symbol, partition, e)
        return SymbolReport.failure(symbol, partition, e)


def run_per_symbol(
    func: Callable[[T], SymbolReport], items: Iterable[T], workers: int = 1
) -> List[SymbolReport]:
    """Runs func for every item on a bounded pool. Order of the output matches
    the input. One item failing has no effect on the others"""
    items = list(items)
    if workers <= 1 or len(items) <= 1:
        return [func(item) for item in items]
    with ThreadPool(processes=workers) as pool:
        return pool.map(func, items)


def all_ok(reports: Iterable[SymbolReport]) -> bool:
    return all(report.ok for report in reports)


def generate_table(title: str, reports: Iterable[SymbolReport]) -> Table:
    table = Table(show_header=True, header_style="bold", title=title)

    table.add_column("Symbol", style="cyan", width=12)
    table.add_column("Partition", width=24)
    table.add_column("Status", width=8)
    table.add_column("Count", justify="right", width=8)
    table.add_column("Reason")

    for report in reports:
        table.add_row(
            report.symbol,
            report.partition,
            "ok" if report.ok else "failed",
            str(report.count),
            report.reason or "",
            style=None if report.ok else "red",
        )

    return table
