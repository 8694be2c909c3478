import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta

import pytz

from helpers.types.errors import ValidationError

PARTITION_PREFIX = "ob"
# Store class names allow [A-Za-z0-9_]. The underscore separates the parts of
# the key so it can't appear in a symbol.
SYMBOL_PATTERN = re.compile(r"^[A-Za-z0-9]+$")
DAY_FORMAT = "%Y%m%d"


def validate_symbol(symbol: str) -> str:
    if not isinstance(symbol, str) or not SYMBOL_PATTERN.match(symbol):
        raise ValidationError(f"Symbol {symbol!r} can't be used in a partition key")
    return symbol


def utc_day(value: date | datetime) -> date:
    """Calendar day in UTC. Naive datetimes are assumed to already be UTC"""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(pytz.UTC)
        return value.date()
    return value


def day_of_timestamp(ts: int) -> date:
    return datetime.fromtimestamp(ts, tz=pytz.UTC).date()


def today_utc() -> date:
    return datetime.now(tz=pytz.UTC).date()


def days_ago(days: int, today: date | None = None) -> date:
    """Midnight-truncated day arithmetic, so a sweep at 23:59 and one at 00:01
    pick partitions a whole day apart rather than drifting by hours"""
    return (today or today_utc()) - timedelta(days=days)


@dataclass(frozen=True)
class PartitionKey:
    """All snapshots of one symbol on one UTC day live in one store class"""

    symbol: str
    day: date

    def __post_init__(self):
        validate_symbol(self.symbol)
        # frozen dataclass, so normalize through object.__setattr__
        object.__setattr__(self, "day", utc_day(self.day))

    @property
    def name(self) -> str:
        return (
            f"{PARTITION_PREFIX}_{self.symbol.lower()}_{self.day.strftime(DAY_FORMAT)}"
        )

    @classmethod
    def for_timestamp(cls, symbol: str, ts: int) -> "PartitionKey":
        return cls(symbol, day_of_timestamp(ts))

    def __str__(self):
        return self.name


def partition_key(symbol: str, day: date | datetime) -> str:
    """ob_<symbol lowercase>_<YYYYMMDD>"""
    return PartitionKey(symbol, day).name


def describe_partition(symbol: str, day: date) -> str:
    """Partition name for logs and reports, even for a symbol we'd reject"""
    try:
        return partition_key(symbol, day)
    except ValidationError:
        return f"{PARTITION_PREFIX}_{symbol!r}_{day.strftime(DAY_FORMAT)}"
