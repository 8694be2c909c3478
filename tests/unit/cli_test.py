import os
import pathlib
from datetime import date

from fastapi.testclient import TestClient
from mock import patch  # type:ignore

from exchange.interface import ExchangeInterface
from helpers.types.partition import PartitionKey, days_ago, partition_key
from obpilot.cli import EXIT_FAILURES, EXIT_FATAL, EXIT_OK, main
from store.console import ConsoleSession
from store.interface import SnapshotStore
from tests.fake_store import FakeStoreStorage
from tests.utils import random_record


def store_flags(storage: FakeStoreStorage):
    return [
        "--lc-baseuri",
        "http://testserver",
        "--lc-id",
        storage.app_id,
        "--lc-key",
        storage.app_key,
    ]


def test_collect(
    store_client: TestClient,
    store_storage: FakeStoreStorage,
    exchange_client: TestClient,
):
    with patch(
        "obpilot.cli.SnapshotStore", lambda config: SnapshotStore(config, store_client)
    ), patch(
        "obpilot.cli.ExchangeInterface",
        lambda config: ExchangeInterface(config, exchange_client),
    ):
        code = main(
            ["collect", "--symbol", "BTCUSDT=100", "--symbol", "ethusdt=5"]
            + store_flags(store_storage)
        )
        assert code == EXIT_OK
        assert sum(len(v) for v in store_storage.classes.values()) == 2

        # One unknown symbol fails the run but not the others
        code = main(
            ["collect", "--symbol", "BTCUSDT=100", "--symbol", "NOPE=1"]
            + store_flags(store_storage)
        )
        assert code == EXIT_FAILURES
        assert sum(len(v) for v in store_storage.classes.values()) == 3


def test_collect_reads_env_and_yaml(
    store_client: TestClient,
    store_storage: FakeStoreStorage,
    exchange_client: TestClient,
    tmp_path: pathlib.Path,
):
    config = tmp_path / "symbols.yaml"
    config.write_text("symbols:\n  - symbol: BTCUSDT\n    aggregate: 10\n")
    os.environ.update(
        {
            "LEANCLOUD_URL": "http://testserver",
            "LEANCLOUD_ID": store_storage.app_id,
            "LEANCLOUD_KEY": store_storage.app_key,
        }
    )
    with patch(
        "obpilot.cli.SnapshotStore", lambda config: SnapshotStore(config, store_client)
    ), patch(
        "obpilot.cli.ExchangeInterface",
        lambda config: ExchangeInterface(config, exchange_client),
    ):
        assert main(["collect", "--config", str(config)]) == EXIT_OK
    assert sum(len(v) for v in store_storage.classes.values()) == 1


def test_missing_credentials_is_fatal():
    assert main(["collect", "--symbol", "BTCUSDT=100"]) == EXIT_FATAL
    # No symbols at all
    assert (
        main(["export", "--lc-baseuri", "x", "--lc-id", "x", "--lc-key", "x"])
        == EXIT_FATAL
    )
    # Unreadable symbols file
    assert main(["collect", "--config", "missing.yaml"]) == EXIT_FATAL


def test_export(
    snapshot_store: SnapshotStore,
    store_client: TestClient,
    store_storage: FakeStoreStorage,
    tmp_path: pathlib.Path,
):
    day = date(2024, 1, 5)
    snapshot_store.push(PartitionKey("BTCUSDT", day), random_record(created=1704412800))
    with patch(
        "obpilot.cli.SnapshotStore", lambda config: SnapshotStore(config, store_client)
    ):
        code = main(
            [
                "export",
                "--symbol",
                "BTCUSDT=100",
                "--day",
                "20240105",
                "--export-dir",
                str(tmp_path),
            ]
            + store_flags(store_storage)
        )
    assert code == EXIT_OK
    assert (tmp_path / "btcusdt-20240105.parquet").exists()


def test_sweep(store_client: TestClient, store_storage: FakeStoreStorage):
    cutoff = partition_key("BTCUSDT", days_ago(2))
    newer = partition_key("BTCUSDT", days_ago(1))
    store_storage.classes[cutoff] = []
    store_storage.classes[newer] = []

    flags = [
        "sweep",
        "--symbol",
        "BTCUSDT",
        "--lc-id",
        store_storage.app_id,
        "--lc-email",
        store_storage.email,
    ]
    with patch(
        "obpilot.cli.ConsoleSession", lambda config: ConsoleSession(config, store_client)
    ):
        assert main(flags + ["--lc-pass", "wrong"]) == EXIT_FATAL
        assert cutoff in store_storage.classes

        assert main(flags + ["--lc-pass", store_storage.password]) == EXIT_OK
    assert cutoff not in store_storage.classes
    assert newer in store_storage.classes