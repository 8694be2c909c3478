import math
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Sequence, Tuple

from pydantic import AliasChoices, ConfigDict, Field

from helpers.types.api import ExternalApi
from helpers.types.errors import ValidationError

# A bucket quotient this close to an integer is treated as that integer.
# price / delta can land a hair under an integer (0.3 / 0.1 == 2.9999999999999996)
QUANTIZE_EPSILON = 1e-9
# Large quotients are snapped within a few units in the last place instead
QUANTIZE_ULPS = 4


@dataclass(frozen=True)
class RawLevel:
    """One level of one side of the exchange's depth response.

    Quantity is in units of the base asset"""

    price: float
    quantity: float

    def __post_init__(self):
        if not (math.isfinite(self.price) and math.isfinite(self.quantity)):
            raise ValidationError(
                f"Price level must be finite. price={self.price} qty={self.quantity}"
            )

    @property
    def notional(self) -> float:
        """Volume expressed in the quote currency"""
        return self.price * self.quantity

    @classmethod
    def from_exchange(cls, level: Sequence[str | float]) -> "RawLevel":
        """Maps an exchange [price, qty] pair (decimal strings) to a RawLevel"""
        if len(level) < 2:
            raise ValidationError(f"Expected [price, quantity], got {level}")
        try:
            price = float(level[0])
            quantity = float(level[1])
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Could not parse price level {level}") from e
        return cls(price=price, quantity=quantity)


def levels_from_exchange(levels: Iterable[Sequence[str | float]]) -> List[RawLevel]:
    return [RawLevel.from_exchange(level) for level in levels]


@dataclass(frozen=True)
class AggregatedLevel:
    """All raw levels that fall into one price bucket.

    price is the bucket's lower edge and volume the summed notional volume"""

    price: float
    volume: float


@dataclass(frozen=True)
class Snapshot:
    """Aggregated order book for one symbol at one point in time.

    Both sides are sorted by price, highest first. For the asks that means
    the best ask is the last element, which is how the books have always been
    stored. Do not flip it without migrating the data that is already stored."""

    symbol: str
    created: int
    asks: Tuple[AggregatedLevel, ...] = field(default_factory=tuple)
    bids: Tuple[AggregatedLevel, ...] = field(default_factory=tuple)

    def __post_init__(self):
        for name, side in (("asks", self.asks), ("bids", self.bids)):
            if not _is_strictly_descending(side):
                raise ValidationError(f"{name} must be strictly descending by price")


def _is_strictly_descending(levels: Sequence[AggregatedLevel]) -> bool:
    return all(a.price > b.price for a, b in zip(levels, levels[1:]))


def bucket_index(price: float, delta: float) -> int:
    """Integer id of the bucket the price falls into (truncated toward zero)"""
    quotient = price / delta
    if not math.isfinite(quotient):
        raise ValidationError(f"Price {price} is out of range for width {delta}")
    nearest = round(quotient)
    tolerance = max(QUANTIZE_EPSILON, QUANTIZE_ULPS * math.ulp(quotient))
    if abs(quotient - nearest) < tolerance:
        return int(nearest)
    return int(math.trunc(quotient))


def aggregate_side(
    levels: Iterable[RawLevel], delta: float
) -> Tuple[AggregatedLevel, ...]:
    """Merges raw levels into buckets of width delta, highest price first"""
    buckets: Dict[int, float] = {}
    for level in levels:
        notional = level.notional
        if not math.isfinite(notional):
            raise ValidationError(f"Notional volume overflowed for {level}")
        index = bucket_index(level.price, delta)
        total = buckets.get(index, 0.0) + notional
        if not math.isfinite(total):
            raise ValidationError(f"Volume of bucket {index * delta} overflowed")
        buckets[index] = total

    return tuple(
        AggregatedLevel(price=index * delta, volume=volume)
        for index, volume in sorted(buckets.items(), reverse=True)
    )


def validate_delta(delta: float):
    if not (math.isfinite(delta) and delta > 0):
        raise ValidationError(f"Bucket width must be a positive number, got {delta}")


def aggregate(
    symbol: str,
    delta: float,
    raw_bids: Iterable[RawLevel],
    raw_asks: Iterable[RawLevel],
    now: Callable[[], float] = time.time,
) -> Snapshot:
    """Builds a snapshot with both sides bucketed to multiples of delta.

    created is our own clock at assembly time; the depth feed has no timestamp.
    """
    validate_delta(delta)
    bids = aggregate_side(raw_bids, delta)
    asks = aggregate_side(raw_asks, delta)
    return Snapshot(symbol=symbol, created=int(now()), asks=asks, bids=bids)


class ApiLevel(ExternalApi):
    price: float = Field(allow_inf_nan=False)
    volume: float = Field(allow_inf_nan=False)


class StoredRecord(ExternalApi):
    """A snapshot the way the store keeps it.

    Older records carry the provenance under "from", newer ones under "source".
    Store metadata such as objectId is dropped."""

    model_config = ConfigDict(populate_by_name=True)

    asks: List[ApiLevel] = Field(default_factory=list)
    bids: List[ApiLevel] = Field(default_factory=list)
    created: int
    source: str = Field(validation_alias=AliasChoices("source", "from"))

    @classmethod
    def from_snapshot(cls, snapshot: Snapshot, source: str) -> "StoredRecord":
        return cls(
            asks=[ApiLevel(price=a.price, volume=a.volume) for a in snapshot.asks],
            bids=[ApiLevel(price=b.price, volume=b.volume) for b in snapshot.bids],
            created=snapshot.created,
            source=source,
        )

    def num_levels(self) -> int:
        return len(self.asks) + len(self.bids)


@dataclass
class ColumnarRow:
    """One price level of one record, flattened for the columnar export"""

    timestamp: int
    price: float
    volume: float
    source: str
