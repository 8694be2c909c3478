import logging
import pathlib
from datetime import date
from typing import Iterable, List

from data.backends.github import GithubPublisher, remote_path
from data.export.parquet import export_filename, export_records
from helpers.types.errors import PipelineError
from helpers.types.partition import PartitionKey, describe_partition
from helpers.utils import SymbolReport, isolate, run_per_symbol
from store.interface import SnapshotStore

logger = logging.getLogger(__name__)


def export_symbol(
    store: SnapshotStore, symbol: str, day: date, export_dir: pathlib.Path
) -> SymbolReport:
    """Loads a partition and writes it to <export_dir>/<symbol>-<YYYYMMDD>.parquet"""
    key = PartitionKey(symbol, day)
    records = store.load(key)
    export_records(key, records, export_dir / export_filename(key))
    return SymbolReport(symbol, key.name, ok=True, count=len(records))


def export_day(
    store: SnapshotStore,
    symbols: Iterable[str],
    day: date,
    export_dir: pathlib.Path,
    workers: int = 1,
    publisher: GithubPublisher | None = None,
) -> List[SymbolReport]:
    """Exports every symbol's partition for the day, then optionally publishes
    the files. Publishing is sequential since every upload is a commit on the
    same branch"""

    def job(symbol: str) -> SymbolReport:
        return isolate(
            symbol,
            describe_partition(symbol, day),
            lambda: export_symbol(store, symbol, day, export_dir),
        )

    reports = run_per_symbol(job, symbols, workers)
    if publisher is not None:
        for report in reports:
            if report.ok:
                _publish(publisher, report, day, export_dir)
    return reports


def _publish(
    publisher: GithubPublisher,
    report: SymbolReport,
    day: date,
    export_dir: pathlib.Path,
):
    key = PartitionKey(report.symbol, day)
    filename = export_filename(key)
    try:
        publisher.publish(export_dir / filename, remote_path(key, filename))
    except (PipelineError, OSError) as e:
        logger.error("publishing %s failed: %s", key, e)
        report.ok = False
        report.reason = f"{type(e).__name__}: {e}"
