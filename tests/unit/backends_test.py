import pathlib
from datetime import date

import pytest
from fastapi.testclient import TestClient

from data.backends.github import GithubPublisher, git_blob_sha, remote_path
from helpers.types.config import PublisherConfig
from helpers.types.errors import AuthError
from helpers.types.partition import PartitionKey
from tests.fake_github import FakeGithubStorage, fake_github_factory
from tests.utils import NO_WAIT_RETRY


@pytest.fixture
def github_storage() -> FakeGithubStorage:
    return FakeGithubStorage()


@pytest.fixture
def publisher(github_storage: FakeGithubStorage):
    config = PublisherConfig(
        token=github_storage.token, owner="me", repo="books", retry=NO_WAIT_RETRY
    )
    with TestClient(fake_github_factory(github_storage)) as test_client:
        yield GithubPublisher(config, test_client)


def test_git_blob_sha():
    # What `git hash-object` prints for these
    assert git_blob_sha(b"") == "e69de29bb2d1d6434b8b29ae775ad8c2e48c5391"
    assert git_blob_sha(b"hello\n") == "ce013625030ba8dba906f756967f9e9ca394464a"


def test_remote_path():
    key = PartitionKey("BTCUSDT", date(2024, 1, 5))
    assert (
        remote_path(key, "btcusdt-20240105.parquet")
        == "btcusdt/btcusdt-20240105.parquet"
    )


def test_publish_create_then_update(
    publisher: GithubPublisher, github_storage: FakeGithubStorage, tmp_path: pathlib.Path
):
    local = tmp_path / "btcusdt-20240105.parquet"
    local.write_bytes(b"first")
    path = "btcusdt/btcusdt-20240105.parquet"

    assert publisher.publish(local, path)
    assert github_storage.files[path] == b"first"
    assert github_storage.commits == [f"commit {path}"]

    local.write_bytes(b"second")
    assert publisher.publish(local, path)
    assert github_storage.files[path] == b"second"
    assert len(github_storage.commits) == 2


def test_publish_identical_is_skipped(
    publisher: GithubPublisher, github_storage: FakeGithubStorage, tmp_path: pathlib.Path
):
    local = tmp_path / "a.parquet"
    local.write_bytes(b"same")
    assert publisher.publish(local, "a/a.parquet")
    assert not publisher.publish(local, "a/a.parquet")
    assert len(github_storage.commits) == 1


def test_publish_retries_and_auth(
    publisher: GithubPublisher, github_storage: FakeGithubStorage, tmp_path: pathlib.Path
):
    local = tmp_path / "a.parquet"
    local.write_bytes(b"data")
    github_storage.fail_next = [502]
    assert publisher.publish(local, "a/a.parquet")

    github_storage.token = "rotated"
    local.write_bytes(b"new data")
    with pytest.raises(AuthError):
        publisher.publish(local, "a/a.parquet")
