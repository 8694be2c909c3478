import logging
from enum import Enum
from typing import List, Protocol

import requests  # type:ignore
from requests import Session
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from helpers.types.api import RateLimit
from helpers.types.common import URL
from helpers.types.errors import AuthError, StoreError, TransientError

logger = logging.getLogger(__name__)


class Method(Enum):
    DELETE = "DELETE"
    GET = "GET"
    POST = "POST"
    PUT = "PUT"


class ConnectionAdapter(Protocol):
    """Anything that can send a request: a SessionsWrapper or a test client"""

    def request(self, method: str, url: str, *args, **kwargs):
        ...  # pragma: no cover


class SessionsWrapper:
    """This class provides a wrapper aroud the requests session class so that
    we can normalize the interface for the connection adapter"""

    def __init__(self, base_url: URL, timeout: float = 30):
        self.base_url = base_url
        self.timeout = timeout
        self._session = Session()

    def request(self, method: str, url: URL, *args, **kwargs):
        kwargs.setdefault("timeout", self.timeout)
        return self._session.request(method, self.base_url.add(url), *args, **kwargs)

    def close(self):
        self._session.close()


class RateLimiter:
    """Ratelimiter for outbound requests

    This class provides a buffer between us and the remote service
    so we don't send it too many requests."""

    def __init__(self, limits: List[RateLimit]):
        self._rate_limits = limits

    def check_limits(self):
        """Checks rate limits and makes sure we don't go over"""
        for rate_limit in self._rate_limits:
            rate_limit.check()


# Statuses the remote side uses to tell us to slow down or come back later
RETRYABLE_STATUS_CODES = (429,)
AUTH_STATUS_CODES = (401, 403)


def send(adapter: ConnectionAdapter, method: Method, url: URL, **kwargs):
    """Sends a request and turns network failures into TransientError.

    Works for both a requests session and an in process test client."""
    try:
        return adapter.request(method.value, url, **kwargs)
    except (requests.ConnectionError, requests.Timeout) as e:
        raise TransientError(f"{method.value} {url} failed: {e}") from e


def check_status(resp, what: str, error: type[Exception] = StoreError):
    """Maps an http status onto our error types. 2xx passes through

    Anything that is neither an auth problem nor retryable raises `error`"""
    status = resp.status_code
    if status < 400:
        return
    body = resp.text
    if status in AUTH_STATUS_CODES:
        raise AuthError(f"{what}: status={status} body={body}")
    if status >= 500 or status in RETRYABLE_STATUS_CODES:
        raise TransientError(f"{what}: status={status} body={body}")
    raise error(f"{what}: status={status} body={body}")


def parse_json(resp):
    """Returns the json body or an empty dict when there is none"""
    try:
        return resp.json()
    except ValueError:
        return {}


def retrying(attempts: int, multiplier: float = 1, max_wait: float = 15) -> Retrying:
    """Retries TransientError with exponential backoff, re-raising the last one.

    Every other error goes straight through on the first attempt"""
    return Retrying(
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=multiplier, max=max_wait),
        retry=retry_if_exception_type(TransientError),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
