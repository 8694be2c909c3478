from datetime import date, datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from helpers.types.auth import ConsoleAuth
from helpers.types.config import ConsoleConfig
from helpers.types.errors import AuthError, TransientError
from helpers.types.partition import PartitionKey
from store.console import ConsoleSession
from tests.fake_store import FakeStoreStorage
from tests.utils import NO_WAIT_RETRY

KEY = PartitionKey("BTCUSDT", date(2024, 1, 3))


def test_delete_partition(console: ConsoleSession, store_storage: FakeStoreStorage):
    store_storage.classes[KEY.name] = [{"created": 1}]
    store_storage.classes["ob_btcusdt_20240104"] = [{"created": 2}]

    with console:
        assert console.is_open
        assert console.delete_partition(KEY)
        # Already gone
        assert not console.delete_partition(KEY)

    assert KEY.name not in store_storage.classes
    assert "ob_btcusdt_20240104" in store_storage.classes
    assert store_storage.logins == 1


def test_session_is_scoped(console: ConsoleSession):
    with console:
        assert console.token.is_valid()
    assert not console.is_open
    assert not console.token.is_valid()
    with pytest.raises(ValueError):
        console.token.xsrf_token
    with pytest.raises(ValueError):
        console.delete_partition(KEY)


def test_sessions_do_not_share_tokens(
    console_config: ConsoleConfig, store_client: TestClient
):
    first = ConsoleSession(console_config, store_client)
    second = ConsoleSession(console_config, store_client)
    with first:
        assert first.token.is_valid()
        assert not second.token.is_valid()
    with second:
        assert second.token.is_valid()
        assert not first.token.is_valid()


def test_session_closed_on_error(console: ConsoleSession):
    with pytest.raises(RuntimeError):
        with console:
            raise RuntimeError("boom")
    assert not console.is_open


def test_bad_login(store_client: TestClient, store_storage: FakeStoreStorage):
    config = ConsoleConfig(
        app_id=store_storage.app_id,
        auth=ConsoleAuth(store_storage.email, "wrong-password"),
        retry=NO_WAIT_RETRY,
    )
    console = ConsoleSession(config, store_client)
    with pytest.raises(AuthError):
        console.open()
    assert not console.is_open
    # Rejected credentials are never retried
    assert store_storage.requests == [("POST", "/1.1/signin")]


def test_login_server_error_is_retried(
    console: ConsoleSession, store_storage: FakeStoreStorage
):
    store_storage.fail_next = [503]
    console.open()
    assert console.is_open
    assert store_storage.logins == 1
    console.close()


def test_login_server_error_exhausts_retries(
    console: ConsoleSession, store_storage: FakeStoreStorage
):
    store_storage.fail_next = [500, 500, 500]
    with pytest.raises(AuthError) as e:
        console.open()
    assert isinstance(e.value.__cause__, TransientError)
    assert not console.is_open
    assert len(store_storage.requests) == 3


def test_delete_server_error_is_retried(
    console: ConsoleSession, store_storage: FakeStoreStorage
):
    store_storage.classes[KEY.name] = []
    with console:
        store_storage.fail_next = [503]
        assert console.delete_partition(KEY)
    assert KEY.name not in store_storage.classes


def test_delete_server_error_exhausts_retries(
    console: ConsoleSession, store_storage: FakeStoreStorage
):
    store_storage.classes[KEY.name] = []
    with console:
        store_storage.fail_next = [500, 500, 500]
        with pytest.raises(TransientError):
            console.delete_partition(KEY)
    assert KEY.name in store_storage.classes


def test_expired_token_is_refreshed(
    console: ConsoleSession, store_storage: FakeStoreStorage
):
    store_storage.classes[KEY.name] = []
    with console:
        console.token._token_time = datetime.now() - timedelta(days=30)
        assert not console.token.is_valid()
        assert console.delete_partition(KEY)
        assert console.token.is_valid()
        assert ("GET", "/1.1/xsrf-token") in store_storage.requests[2:]


def test_wrong_xsrf_token(console: ConsoleSession, store_storage: FakeStoreStorage):
    store_storage.classes[KEY.name] = []
    with console:
        store_storage.xsrf_token = "rotated"
        with pytest.raises(AuthError):
            console.delete_partition(KEY)
    assert KEY.name in store_storage.classes
