import logging
import time
from time import sleep
from typing import Callable, Iterable, List

from exchange.interface import ExchangeInterface
from helpers.types.config import SymbolConfig
from helpers.types.orderbook import StoredRecord, aggregate
from helpers.types.partition import PartitionKey
from helpers.utils import SymbolReport, isolate, run_per_symbol
from store.interface import SnapshotStore

logger = logging.getLogger(__name__)


def collect_symbol(
    exchange_interface: ExchangeInterface,
    store: SnapshotStore,
    symbol_config: SymbolConfig,
    now: Callable[[], float] = time.time,
) -> SymbolReport:
    """Fetches depth for one symbol, buckets it and pushes it to today's partition"""
    depth = exchange_interface.get_depth(symbol_config.symbol)
    bids, asks = depth.to_levels()
    snapshot = aggregate(symbol_config.symbol, symbol_config.delta, bids, asks, now=now)
    key = PartitionKey.for_timestamp(snapshot.symbol, snapshot.created)
    store.push(key, StoredRecord.from_snapshot(snapshot, store.source))
    logger.info(
        "%s: %d bid buckets, %d ask buckets -> %s",
        snapshot.symbol,
        len(snapshot.bids),
        len(snapshot.asks),
        key,
    )
    return SymbolReport(snapshot.symbol, key.name, ok=True, count=1)


def collect_orderbooks(
    exchange_interface: ExchangeInterface,
    store: SnapshotStore,
    symbols: Iterable[SymbolConfig],
    workers: int = 1,
    now: Callable[[], float] = time.time,
) -> List[SymbolReport]:
    """One collection cycle over every symbol. Push at most once per symbol"""

    def job(symbol_config: SymbolConfig) -> SymbolReport:
        partition = PartitionKey.for_timestamp(symbol_config.symbol, int(now())).name
        return isolate(
            symbol_config.symbol,
            partition,
            lambda: collect_symbol(exchange_interface, store, symbol_config, now=now),
        )

    return run_per_symbol(job, symbols, workers)


def collect_periodically(
    exchange_interface: ExchangeInterface,
    store: SnapshotStore,
    symbols: List[SymbolConfig],
    interval: float,
    workers: int = 1,
    cycles: int | None = None,
    on_cycle: Callable[[List[SymbolReport]], None] | None = None,
):
    """Runs a collection cycle every interval seconds, cycles times (or forever).

    A cycle that overruns the interval starts the next one right away"""
    completed = 0
    while cycles is None or completed < cycles:
        started = time.monotonic()
        reports = collect_orderbooks(exchange_interface, store, symbols, workers)
        if on_cycle:
            on_cycle(reports)
        completed += 1
        if cycles is not None and completed >= cycles:
            break
        sleep(max(0.0, interval - (time.monotonic() - started)))
