"""Columnar export of a day of snapshots.

One parquet file per (symbol, day):
  <export dir>/<symbol>-<YYYYMMDD>.parquet

Every price level of every record becomes one row, bids before asks, each
side in the order it was stored. The schema below is part of the contract
with whoever reads these files; bump SCHEMA_VERSION if it ever changes.

Writes are atomic: the file is written next to its final name and renamed
into place, so readers never see a truncated file.
"""

import logging
import os
import pathlib
from typing import Iterable, Iterator, List

import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq

from helpers.types.errors import ExportError
from helpers.types.orderbook import ColumnarRow, StoredRecord
from helpers.types.partition import DAY_FORMAT, PartitionKey

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

ORDERBOOK_SCHEMA = pa.schema(
    [
        pa.field("timestamp", pa.int64(), nullable=False),
        pa.field("price", pa.float64(), nullable=False),
        pa.field("volume", pa.float64(), nullable=False),
        pa.field("source", pa.string(), nullable=False),
    ],
    metadata={"schema_version": str(SCHEMA_VERSION)},
)

COMPRESSION = "snappy"
TMP_SUFFIX = ".tmp"


def export_filename(key: PartitionKey) -> str:
    return f"{key.symbol.lower()}-{key.day.strftime(DAY_FORMAT)}.parquet"


def flatten_records(records: Iterable[StoredRecord]) -> Iterator[ColumnarRow]:
    for record in records:
        for level in record.bids:
            yield ColumnarRow(record.created, level.price, level.volume, record.source)
        for level in record.asks:
            yield ColumnarRow(record.created, level.price, level.volume, record.source)


def rows_to_table(rows: List[ColumnarRow]) -> pa.Table:
    return pa.table(
        {
            "timestamp": pa.array([r.timestamp for r in rows], type=pa.int64()),
            "price": pa.array([r.price for r in rows], type=pa.float64()),
            "volume": pa.array([r.volume for r in rows], type=pa.float64()),
            "source": pa.array([r.source for r in rows], type=pa.string()),
        },
        schema=ORDERBOOK_SCHEMA,
    )


def _write_table(table: pa.Table, path: pathlib.Path):
    # Everything goes into one row group
    pq.write_table(
        table,
        str(path),
        compression=COMPRESSION,
        row_group_size=max(table.num_rows, 1),
    )


def export_records(
    key: PartitionKey,
    records: Iterable[StoredRecord],
    output_path: pathlib.Path | str,
) -> pathlib.Path:
    """Writes the records of a partition to output_path and returns it.

    Raises ExportError on any failure, in which case nothing exists at
    output_path that wasn't there before."""
    output_path = pathlib.Path(output_path)
    tmp_path = output_path.with_name(output_path.name + TMP_SUFFIX)
    try:
        table = rows_to_table(list(flatten_records(records)))
        output_path.parent.mkdir(parents=True, exist_ok=True)
        _write_table(table, tmp_path)
        os.replace(tmp_path, output_path)
    except (OSError, pa.ArrowException) as e:
        _remove_quietly(tmp_path)
        raise ExportError(f"Could not export {key} to {output_path}: {e}") from e

    logger.info("exported %s: %d rows -> %s", key, table.num_rows, output_path)
    return output_path


def _remove_quietly(path: pathlib.Path):
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning("could not remove temp file %s: %s", path, e)


def read_export(path: pathlib.Path | str) -> pd.DataFrame:
    """Loads an exported file for analysis"""
    return pq.read_table(str(path), schema=ORDERBOOK_SCHEMA).to_pandas()
