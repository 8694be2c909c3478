import logging
from types import TracebackType

from helpers.connection import (
    ConnectionAdapter,
    Method,
    SessionsWrapper,
    check_status,
    parse_json,
    retrying,
    send,
)
from helpers.constants import (
    CONSOLE_DATA_URL,
    CONSOLE_LOGIN_URL,
    CONSOLE_XSRF_URL,
    XSRF_HEADER,
)
from helpers.types.auth import ConsoleToken, XsrfTokenResponse
from helpers.types.config import ConsoleConfig
from helpers.types.errors import AuthError, PipelineError
from helpers.types.partition import PartitionKey

logger = logging.getLogger(__name__)

NOT_FOUND = 404


class ConsoleSession:
    """An authenticated session against the store console.

    The console deletes whole classes, which the REST api can't do. It wants a
    cookie session plus an xsrf token bound to that session on every write.
    Use it as a context manager so the session is closed and the token
    dropped however the block exits:

        with ConsoleSession(config) as console:
            console.delete_partition(key)

    Transient failures are retried according to the console config. A session
    is not safe to share between threads."""

    def __init__(
        self,
        config: ConsoleConfig,
        connection_adapter: ConnectionAdapter | None = None,
    ):
        self._config = config
        self._auth = config.auth
        # The token belongs to this session, never to the shared config
        self.token = ConsoleToken()
        self._test_adapter = connection_adapter
        self._connection_adapter: ConnectionAdapter | None = None
        retry = config.retry
        self._retrying = retrying(retry.attempts, retry.multiplier, retry.max_wait)

    @property
    def is_open(self) -> bool:
        return self._connection_adapter is not None

    def open(self):
        """Logs in and fetches the xsrf token. Any failure is an AuthError"""
        # A fresh requests session per console session keeps cookies scoped
        self._connection_adapter = self._test_adapter or SessionsWrapper(
            base_url=self._config.base_url
        )
        try:
            self._retrying(self._log_in)
        except PipelineError as e:
            self.close()
            if isinstance(e, AuthError):
                raise
            raise AuthError(f"Could not log in to the console: {e}") from e
        logger.info("console session opened for %s", self._auth)

    def _log_in(self):
        resp = send(
            self._adapter,
            Method.POST,
            CONSOLE_LOGIN_URL,
            json=self._auth.log_in_request().model_dump(),
        )
        check_status(resp, "console login", error=AuthError)
        self._refresh_token()

    def _refresh_token(self):
        resp = send(self._adapter, Method.GET, CONSOLE_XSRF_URL)
        check_status(resp, "xsrf token", error=AuthError)
        try:
            token = XsrfTokenResponse.model_validate(parse_json(resp))
        except ValueError as e:
            raise AuthError(f"Bad xsrf token response: {e}") from e
        self.token.refresh(token)

    def delete_partition(self, key: PartitionKey) -> bool:
        """Drops the whole partition. Returns False if it was already gone"""
        return self._retrying(self._delete_partition, key)

    def _delete_partition(self, key: PartitionKey) -> bool:
        if not self.token.is_valid():
            self._refresh_token()
        url = (
            CONSOLE_DATA_URL.add(self._config.app_id)
            .add("classes")
            .add(key.name)
            .add_slash()
        )
        resp = send(
            self._adapter,
            Method.DELETE,
            url,
            headers={XSRF_HEADER: str(self.token.xsrf_token)},
        )
        if resp.status_code == NOT_FOUND:
            logger.info("partition %s does not exist", key)
            return False
        check_status(resp, f"delete {key}")
        logger.info("deleted partition %s", key)
        return True

    def close(self):
        self.token.remove_credentials()
        if isinstance(self._connection_adapter, SessionsWrapper):
            self._connection_adapter.close()
        self._connection_adapter = None

    @property
    def _adapter(self) -> ConnectionAdapter:
        if self._connection_adapter is None:
            raise ValueError("Console session is not open")
        return self._connection_adapter

    def __enter__(self) -> "ConsoleSession":
        self.open()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ):
        self.close()
