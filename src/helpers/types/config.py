"""Configuration for the snapshot pipeline.

Every component receives its configuration at construction time. Values come
from command line flags first and fall back to environment variables (see
helpers.constants for the names). Nothing here is a process wide singleton.

The symbol list is either a set of SYMBOL=WIDTH strings or a yaml file:

    symbols:
      - symbol: BTCUSDT
        aggregate: 100.0
      - symbol: ETHUSDT
        aggregate: 5
"""

import os
import pathlib
from dataclasses import dataclass, field
from typing import Iterable, List, Mapping

import pydantic
import yaml
from pydantic import BaseModel, field_validator

from helpers.constants import (
    CONSOLE_ENV_VARS,
    CONSOLE_URL_ENV_VAR,
    DEFAULT_CONSOLE_URL,
    DEFAULT_DEPTH_LIMIT,
    DEFAULT_EXCHANGE_URL,
    DEFAULT_GITHUB_URL,
    DEFAULT_RETRY_ATTEMPTS,
    DEFAULT_SOURCE,
    EXCHANGE_URL_ENV_VAR,
    GITHUB_TOKEN_ENV_VAR,
    STORE_ENV_VARS,
    STORE_ID_ENV_VAR,
    STORE_URL_ENV_VAR,
)
from helpers.types.auth import AppId, ConsoleAuth, StoreAuth, require_env_vars
from helpers.types.common import URL
from helpers.types.errors import ValidationError
from helpers.types.orderbook import validate_delta
from helpers.types.partition import validate_symbol


@dataclass(frozen=True)
class SymbolConfig:
    """A symbol and the width of the price buckets used to aggregate its book"""

    symbol: str
    delta: float

    def __post_init__(self):
        object.__setattr__(self, "symbol", self.symbol.upper())
        validate_symbol(self.symbol)
        validate_delta(self.delta)

    @classmethod
    def parse(cls, spec: str) -> "SymbolConfig":
        """Parses BTCUSDT=100.0"""
        parts = spec.split("=")
        if len(parts) != 2:
            raise ValidationError(f"Bad symbol spec {spec!r}. format: BTCUSDT=100.0")
        symbol, width = parts[0].strip(), parts[1].strip()
        try:
            delta = float(width)
        except ValueError as e:
            raise ValidationError(f"Bad bucket width in {spec!r}") from e
        return cls(symbol=symbol, delta=delta)


class _SymbolEntry(BaseModel):
    symbol: str
    aggregate: float

    @field_validator("symbol")
    @classmethod
    def _upper(cls, v: str) -> str:
        return v.upper()


class _SymbolsFile(BaseModel):
    symbols: List[_SymbolEntry]


def parse_symbols(specs: Iterable[str]) -> List[SymbolConfig]:
    return [SymbolConfig.parse(spec) for spec in specs]


def load_symbols_file(path: pathlib.Path | str) -> List[SymbolConfig]:
    """Reads the yaml symbol file described in the module docstring"""
    try:
        with open(path) as f:
            raw = yaml.safe_load(f)
    except OSError as e:
        raise ValidationError(f"Could not read symbols file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ValidationError(f"Symbols file {path} is not valid yaml: {e}") from e
    try:
        parsed = _SymbolsFile.model_validate(raw)
    except pydantic.ValidationError as e:
        raise ValidationError(f"Bad symbols file {path}: {e}") from e
    return [SymbolConfig(entry.symbol, entry.aggregate) for entry in parsed.symbols]


@dataclass(frozen=True)
class RetryConfig:
    attempts: int = DEFAULT_RETRY_ATTEMPTS
    # Exponential backoff: min(max_wait, multiplier * 2 ** attempt) seconds
    multiplier: float = 1
    max_wait: float = 15


@dataclass(frozen=True)
class StoreConfig:
    base_url: URL
    auth: StoreAuth
    source: str = DEFAULT_SOURCE
    retry: RetryConfig = field(default_factory=RetryConfig)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **kwargs):
        environ = os.environ if environ is None else environ
        require_env_vars(STORE_ENV_VARS, environ)
        return cls(
            base_url=URL(environ[STORE_URL_ENV_VAR]),
            auth=StoreAuth.from_env(environ),
            **kwargs,
        )


@dataclass(frozen=True)
class ConsoleConfig:
    """Console access, used by the retention sweep for bulk deletes"""

    app_id: str
    # Login credentials only. Each ConsoleSession keeps its own xsrf token
    auth: ConsoleAuth
    base_url: URL = DEFAULT_CONSOLE_URL
    retry: RetryConfig = field(default_factory=RetryConfig)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **kwargs):
        environ = os.environ if environ is None else environ
        require_env_vars(CONSOLE_ENV_VARS, environ)
        return cls(
            app_id=AppId(environ[STORE_ID_ENV_VAR]),
            auth=ConsoleAuth.from_env(environ),
            base_url=URL(environ.get(CONSOLE_URL_ENV_VAR, DEFAULT_CONSOLE_URL)),
            **kwargs,
        )


@dataclass(frozen=True)
class ExchangeConfig:
    base_url: URL = DEFAULT_EXCHANGE_URL
    depth_limit: int = DEFAULT_DEPTH_LIMIT
    retry: RetryConfig = field(default_factory=RetryConfig)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None):
        environ = os.environ if environ is None else environ
        return cls(base_url=URL(environ.get(EXCHANGE_URL_ENV_VAR, DEFAULT_EXCHANGE_URL)))


@dataclass(frozen=True)
class PublisherConfig:
    """Where exported files get committed"""

    token: str
    owner: str
    repo: str
    branch: str = "main"
    committer_name: str = "orderbook-pilot"
    committer_email: str = "orderbook-pilot@users.noreply.github.com"
    base_url: URL = DEFAULT_GITHUB_URL
    retry: RetryConfig = field(default_factory=RetryConfig)

    @classmethod
    def from_env(
        cls, owner: str, repo: str, environ: Mapping[str, str] | None = None, **kwargs
    ):
        environ = os.environ if environ is None else environ
        require_env_vars([GITHUB_TOKEN_ENV_VAR], environ)
        return cls(token=environ[GITHUB_TOKEN_ENV_VAR], owner=owner, repo=repo, **kwargs)
