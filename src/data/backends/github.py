import base64
import hashlib
import logging
import pathlib
from typing import Any, Dict

from helpers.connection import (
    ConnectionAdapter,
    Method,
    SessionsWrapper,
    check_status,
    parse_json,
    retrying,
    send,
)
from helpers.constants import REPOS_URL
from helpers.types.common import URL
from helpers.types.config import PublisherConfig
from helpers.types.errors import PublishError
from helpers.types.partition import PartitionKey

logger = logging.getLogger(__name__)

NOT_FOUND = 404


def git_blob_sha(content: bytes) -> str:
    """The sha github reports for a file with this content"""
    header = f"blob {len(content)}\0".encode()
    return hashlib.sha1(header + content).hexdigest()


def remote_path(key: PartitionKey, filename: str) -> str:
    """<symbol>/<symbol>-<YYYYMMDD>.parquet"""
    return f"{key.symbol.lower()}/{filename}"


class GithubPublisher:
    """Commits exported files into a github repository through the contents api"""

    def __init__(
        self,
        config: PublisherConfig,
        connection_adapter: ConnectionAdapter | None = None,
    ):
        self._config = config
        self._connection_adapter = connection_adapter or SessionsWrapper(
            base_url=config.base_url
        )
        retry = config.retry
        self._retrying = retrying(retry.attempts, retry.multiplier, retry.max_wait)

    def _contents_url(self, path: str) -> URL:
        return (
            REPOS_URL.add(self._config.owner)
            .add(self._config.repo)
            .add("contents")
            .add(path)
            .add_slash()
        )

    def _request(self, method: Method, url: URL, **kwargs):
        headers = {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {self._config.token}",
        }
        return send(self._connection_adapter, method, url, headers=headers, **kwargs)

    def _remote_sha(self, path: str) -> str | None:
        resp = self._request(
            Method.GET, self._contents_url(path), params={"ref": self._config.branch}
        )
        if resp.status_code == NOT_FOUND:
            return None
        check_status(resp, f"get {path}", error=PublishError)
        return parse_json(resp).get("sha")

    def _put(self, path: str, content: bytes) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "message": f"commit {path}",
            "content": base64.b64encode(content).decode(),
            "branch": self._config.branch,
            "committer": {
                "name": self._config.committer_name,
                "email": self._config.committer_email,
            },
        }
        sha = self._remote_sha(path)
        if sha == git_blob_sha(content):
            logger.info("%s is already up to date", path)
            return {}
        if sha is not None:
            body["sha"] = sha
        resp = self._request(Method.PUT, self._contents_url(path), json=body)
        check_status(resp, f"put {path}", error=PublishError)
        return parse_json(resp)

    def publish(self, local: pathlib.Path, path: str) -> bool:
        """Uploads local to path in the repo. Returns False if nothing changed"""
        content = local.read_bytes()
        resp = self._retrying(self._put, path, content)
        if resp:
            logger.info("published %s -> %s", local, path)
        return bool(resp)

    def close(self):
        if isinstance(self._connection_adapter, SessionsWrapper):
            self._connection_adapter.close()
