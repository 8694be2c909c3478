import json
import logging
from types import TracebackType
from typing import List

from helpers.connection import ConnectionAdapter
from helpers.constants import STORE_CLASSES_URL, STORE_MAX_PAGE_SIZE
from helpers.types.api import ExternalApi
from helpers.types.config import StoreConfig
from helpers.types.errors import StoreError, ValidationError
from helpers.types.orderbook import StoredRecord
from helpers.types.partition import PartitionKey
from store.connection import Connection

logger = logging.getLogger(__name__)


class LoadResponse(ExternalApi):
    results: List[StoredRecord]


class DeleteResponse(ExternalApi):
    count: int = 0


class SnapshotStore:
    def __init__(
        self,
        config: StoreConfig,
        test_client: ConnectionAdapter | None = None,
        page_size: int = STORE_MAX_PAGE_SIZE,
    ):
        """Pushes, loads and deletes snapshots in the partitioned store.

        Each partition is one store class (see PartitionKey). Classes are
        created by the store on first push.

        with SnapshotStore(config) as store:
            store.push(key, record)

        Pushes are not idempotent: pushing the same record twice stores it twice.
        """
        if not 0 < page_size <= STORE_MAX_PAGE_SIZE:
            raise ValueError(f"page_size must be in (0, {STORE_MAX_PAGE_SIZE}]")
        self._config = config
        self._page_size = page_size
        self._connection = Connection(config, test_client)

    @property
    def source(self) -> str:
        return self._config.source

    def push(self, key: PartitionKey, record: StoredRecord):
        """Appends one record to the partition"""
        resp = self._connection.post(_class_url(key), body=record.model_dump())
        logger.info("pushed %s created=%d -> %s", key, record.created, resp)

    def load(self, key: PartitionKey) -> List[StoredRecord]:
        """All records currently held in the partition, fetched page by page.

        A partition that was never written to has no class yet, so we get
        back an empty list rather than an error"""
        records: List[StoredRecord] = []
        skip = 0
        while True:
            raw = self._connection.get(
                _class_url(key),
                params={
                    "limit": str(self._page_size),
                    "skip": str(skip),
                    "order": "createdAt",
                },
                allow_not_found=True,
            )
            if raw is None:
                break
            page = _parse(LoadResponse, raw, key).results
            records.extend(page)
            if len(page) < self._page_size:
                break
            skip += len(page)

        logger.info("loaded %d records from %s", len(records), key)
        return records

    def delete_range(self, key: PartitionKey, start: int, end: int) -> int:
        """Deletes records with start <= created < end. Returns how many went"""
        if start > end:
            raise ValidationError(f"Delete range start {start} is after end {end}")
        where = {"created": {"$gte": start, "$lt": end}}
        raw = self._connection.delete(
            _class_url(key), params={"where": json.dumps(where)}
        )
        count = _parse(DeleteResponse, raw, key).count
        logger.info("deleted %d records from %s in [%d, %d)", count, key, start, end)
        return count

    def __enter__(self) -> "SnapshotStore":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ):
        self._connection.close()


def _class_url(key: PartitionKey):
    return STORE_CLASSES_URL.add(key.name).add_slash()


def _parse(model, raw, key: PartitionKey):
    try:
        return model.model_validate(raw)
    except ValueError as e:
        raise StoreError(f"Unexpected response from {key}: {e}") from e
