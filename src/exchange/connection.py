import logging
from typing import Dict

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
from helpers.types.config import ExchangeConfig
from helpers.types.errors import ExchangeError

logger = logging.getLogger(__name__)


class Connection:
    """The purpose of this class is to establish a connection to the
    exchange. You can pass in a test client so that we can
    test requests against a test exchange"""

    def __init__(
        self,
        config: ExchangeConfig,
        connection_adapter: ConnectionAdapter | None = None,
    ):
        self._config = config
        self._connection_adapter: ConnectionAdapter
        if connection_adapter:
            # This is a test connection. We don't need rate limiting
            self._connection_adapter = connection_adapter
            self._rate_limiter = RateLimiter(limits=[])
        else:
            self._connection_adapter = SessionsWrapper(base_url=config.base_url)
            # A full depth request weighs 250 and the weight budget is 6000
            # per minute. Stay under it with some room for other clients
            self._rate_limiter = RateLimiter(
                [
                    RateLimit(transactions=5, seconds=1),
                    RateLimit(transactions=20, seconds=60),
                ]
            )
        retry = config.retry
        self._retrying = retrying(retry.attempts, retry.multiplier, retry.max_wait)

    def _request(
        self,
        method: Method,
        url: URL,
        params: Dict[str, str] | None = None,
    ):
        """All HTTP requests go through this function"""
        headers = {"accept": "application/json"}
        self._rate_limiter.check_limits()
        resp = send(
            self._connection_adapter, method, url, params=params, headers=headers
        )
        check_status(resp, f"{method.value} {url}", error=ExchangeError)
        return parse_json(resp)

    def get(self, url: URL, params: Dict[str, str] | None = None):
        return self._retrying(self._request, Method.GET, url, params=params)

    def close(self):
        if isinstance(self._connection_adapter, SessionsWrapper):
            self._connection_adapter.close()
