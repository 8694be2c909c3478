import logging
from typing import Any, Dict

from helpers.connection import (
    ConnectionAdapter,
    Method,
    RateLimiter,
    SessionsWrapper,
    check_status,
    parse_json,
    retrying,
    send,
)
from helpers.types.api import RateLimit
from helpers.types.common import URL
from helpers.types.config import StoreConfig

logger = logging.getLogger(__name__)

NOT_FOUND = 404


class Connection:
    """Connection to the snapshot store's REST api.

    The app id and key go on every request. Transient failures are retried
    according to the store config; auth failures never are."""

    def __init__(
        self,
        config: StoreConfig,
        connection_adapter: ConnectionAdapter | None = None,
    ):
        self._config = config
        self._auth = config.auth
        self._connection_adapter: ConnectionAdapter
        if connection_adapter:
            # This is a test connection. We don't need rate limiting
            self._connection_adapter = connection_adapter
            self._rate_limiter = RateLimiter(limits=[])
        else:
            self._connection_adapter = SessionsWrapper(base_url=config.base_url)
            # The free tier allows a handful of requests per second per app
            self._rate_limiter = RateLimiter([RateLimit(transactions=3, seconds=1)])
        retry = config.retry
        self._retrying = retrying(retry.attempts, retry.multiplier, retry.max_wait)

    def _request(
        self,
        method: Method,
        url: URL,
        body: Dict[str, Any] | None = None,
        params: Dict[str, str] | None = None,
        allow_not_found: bool = False,
    ):
        """All HTTP requests go through this function. Returns the json body,
        or None when the resource is missing and allow_not_found is set"""
        self._rate_limiter.check_limits()
        resp = send(
            self._connection_adapter,
            method,
            url,
            params=params,
            json=body,
            headers=self._auth.headers(),
        )
        if allow_not_found and resp.status_code == NOT_FOUND:
            return None
        check_status(resp, f"{method.value} {url}")
        return parse_json(resp)

    def get(self, url: URL, params: Dict[str, str] | None = None, **kwargs):
        return self._retrying(self._request, Method.GET, url, params=params, **kwargs)

    def post(self, url: URL, body: Dict[str, Any]):
        return self._retrying(self._request, Method.POST, url, body=body)

    def delete(self, url: URL, params: Dict[str, str] | None = None):
        return self._retrying(self._request, Method.DELETE, url, params=params)

    def close(self):
        if isinstance(self._connection_adapter, SessionsWrapper):
            self._connection_adapter.close()
