import os

import pytest
from fastapi.testclient import TestClient

from exchange.interface import ExchangeInterface
from helpers.types.auth import ConsoleAuth, StoreAuth
from helpers.types.config import ConsoleConfig, ExchangeConfig, StoreConfig
from store.console import ConsoleSession
from store.interface import SnapshotStore
from tests.fake_exchange import FakeExchangeStorage, fake_exchange_factory
from tests.fake_store import FakeStoreStorage, fake_store_factory
from tests.utils import NO_WAIT_RETRY, TEST_BASE_URL

"""This file contains configuration information for testing.
Please place any test fixtures in this file"""


@pytest.fixture(autouse=True)
def env_vars():
    """Nothing in the tests may pick up real credentials from the env"""
    old_environ = dict(os.environ)
    for env_var in list(os.environ):
        if env_var.startswith("LEANCLOUD_") or env_var in (
            "EXCHANGE_URL",
            "GITHUB_TOKEN",
        ):
            del os.environ[env_var]
    try:
        yield
    finally:
        os.environ.clear()
        os.environ.update(old_environ)


@pytest.fixture
def store_storage() -> FakeStoreStorage:
    return FakeStoreStorage()


@pytest.fixture
def store_client(store_storage: FakeStoreStorage):
    with TestClient(fake_store_factory(store_storage)) as test_client:
        yield test_client


@pytest.fixture
def store_config(store_storage: FakeStoreStorage) -> StoreConfig:
    return StoreConfig(
        base_url=TEST_BASE_URL,
        auth=StoreAuth(store_storage.app_id, store_storage.app_key),
        retry=NO_WAIT_RETRY,
    )


@pytest.fixture
def snapshot_store(store_config: StoreConfig, store_client: TestClient):
    with SnapshotStore(store_config, store_client) as store:
        yield store


@pytest.fixture
def console_config(store_storage: FakeStoreStorage) -> ConsoleConfig:
    return ConsoleConfig(
        app_id=store_storage.app_id,
        auth=ConsoleAuth(store_storage.email, store_storage.password),
        base_url=TEST_BASE_URL,
        retry=NO_WAIT_RETRY,
    )


@pytest.fixture
def console(console_config: ConsoleConfig, store_client: TestClient):
    return ConsoleSession(console_config, store_client)


@pytest.fixture
def exchange_storage() -> FakeExchangeStorage:
    return FakeExchangeStorage(
        depths={
            "BTCUSDT": {
                "bids": [["30060.5", "1.0"], ["30050.0", "2.0"], ["29990.0", "1.0"]],
                "asks": [["30100.0", "0.5"], ["30150.0", "1.0"], ["30210.0", "2.0"]],
            },
            "ETHUSDT": {
                "bids": [["2000.00", "3.0"], ["1999.50", "1.0"]],
                "asks": [["2001.00", "2.0"], ["2006.00", "1.0"]],
            },
        }
    )


@pytest.fixture
def exchange_client(exchange_storage: FakeExchangeStorage):
    with TestClient(fake_exchange_factory(exchange_storage)) as test_client:
        yield test_client


@pytest.fixture
def exchange_interface(exchange_client: TestClient):
    config = ExchangeConfig(base_url=TEST_BASE_URL, depth_limit=50, retry=NO_WAIT_RETRY)
    with ExchangeInterface(config, exchange_client) as exchange_interface:
        yield exchange_interface
