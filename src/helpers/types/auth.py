import os
import typing
from datetime import datetime, timedelta
from typing import Dict, List, Mapping

from pydantic import ConfigDict, Field

from helpers.constants import (
    CONSOLE_EMAIL_ENV_VAR,
    CONSOLE_PASSWORD_ENV_VAR,
    STORE_ID_ENV_VAR,
    STORE_KEY_ENV_VAR,
)
from helpers.types.api import ExternalApi
from helpers.types.common import NonNullStr


class AppId(NonNullStr):
    """Identity of the store application, sent as X-LC-Id"""


class AppKey(NonNullStr):
    """Secret key of the store application, sent as X-LC-Key"""


class Password(NonNullStr):
    """Type that encapsulates password"""


class Email(NonNullStr):
    """Login of the store console account"""


class XsrfToken(NonNullStr):
    """Cross site request token bound to a console session"""


def require_env_vars(names: List[str], environ: Mapping[str, str] | None = None):
    environ = os.environ if environ is None else environ
    for env_var in names:
        if env_var not in environ:
            raise ValueError(f"{env_var} not set in env vars")


class StoreAuth:
    """Static credentials attached to every store request"""

    def __init__(self, app_id: str, app_key: str):
        self.app_id = AppId(app_id)
        self._app_key = AppKey(app_key)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "StoreAuth":
        environ = os.environ if environ is None else environ
        require_env_vars([STORE_ID_ENV_VAR, STORE_KEY_ENV_VAR], environ)
        return cls(environ[STORE_ID_ENV_VAR], environ[STORE_KEY_ENV_VAR])

    def headers(self) -> Dict[str, str]:
        return {
            "X-LC-Id": str(self.app_id),
            "X-LC-Key": str(self._app_key),
            "Content-Type": "application/json",
        }

    def __repr__(self):
        # Keep the key out of logs
        return f"StoreAuth(app_id={self.app_id!r})"


class LogInRequest(ExternalApi):
    email: Email
    password: Password


class XsrfTokenResponse(ExternalApi):
    model_config = ConfigDict(populate_by_name=True)
    xsrf_token: XsrfToken = Field(alias="xsrf-token")
    # Seconds the token stays valid
    ttl: int


class ConsoleAuth:
    """The purpose of this class is to store the login credentials
    for the store console (used for bulk deletes)"""

    def __init__(self, email: str, password: str):
        self._email = Email(email)
        self._password = Password(password)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ConsoleAuth":
        environ = os.environ if environ is None else environ
        require_env_vars([CONSOLE_EMAIL_ENV_VAR, CONSOLE_PASSWORD_ENV_VAR], environ)
        return cls(environ[CONSOLE_EMAIL_ENV_VAR], environ[CONSOLE_PASSWORD_ENV_VAR])

    def log_in_request(self) -> LogInRequest:
        return LogInRequest(email=self._email, password=self._password)

    def __repr__(self):
        return f"ConsoleAuth(email={self._email!r})"


class ConsoleToken:
    """Xsrf token of one console session. Filled after logging in"""

    def __init__(self):
        self._xsrf_token: XsrfToken | None = None
        self._ttl: timedelta | None = None
        self._token_time: datetime | None = None

    @property
    def xsrf_token(self) -> XsrfToken:
        if self._xsrf_token is None:
            raise ValueError("Xsrf token is null")
        return self._xsrf_token

    def is_valid(self):
        """Checks that we hold a token and that it has not expired"""
        if not (self._xsrf_token and self._ttl is not None and self._token_time):
            return False
        token_time = typing.cast(datetime, self._token_time)
        return datetime.now() - token_time < self._ttl

    def refresh(self, response: XsrfTokenResponse):
        self._xsrf_token = response.xsrf_token
        self._ttl = timedelta(seconds=response.ttl)
        self._token_time = datetime.now()

    def remove_credentials(self):
        """Forgets the token so it can't outlive the session it belongs to"""
        self._xsrf_token = None
        self._ttl = None
        self._token_time = None
