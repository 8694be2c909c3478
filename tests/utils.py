import random
import typing
from enum import Enum

from polyfactory.factories import DataclassFactory, pydantic_factory
from pydantic import BaseModel

from helpers.types.common import URL
from helpers.types.config import RetryConfig
from helpers.types.orderbook import ApiLevel, RawLevel, StoredRecord

# Dataclasses don't have native type hints
BM = typing.TypeVar("BM", bound=BaseModel | typing.Any)

TEST_BASE_URL = URL("http://testserver")
# No sleeping between retries in tests
NO_WAIT_RETRY = RetryConfig(attempts=3, multiplier=0, max_wait=0)


class FactoryType(Enum):
    BASEMODEL = "basemodel"
    DATACLASS = "dataclass"


def random_data(
    base_model_class: type[BM],
    custom_args: typing.Dict[typing.Any, typing.Any] = {},
    factory_type: FactoryType = FactoryType.BASEMODEL,
) -> BM:
    """Fills in a basemodel with random data. Custom args lets you specify a
    mapping of custom types to their output.
    For example: {float: lambda: random.uniform(1, 100)}.
    """

    factory = (
        pydantic_factory.ModelFactory
        if factory_type == FactoryType.BASEMODEL
        else DataclassFactory
    )

    class Factory(factory[base_model_class]):  # type:ignore
        __model__ = base_model_class

        @classmethod
        def get_provider_map(cls) -> typing.Dict[typing.Type, typing.Any]:
            providers_map = super().get_provider_map()
            return {
                **providers_map,
                **custom_args,
            }

    return Factory.build()


def positive_float() -> float:
    return random.uniform(0.01, 100_000)


def random_levels(n: int) -> typing.List[RawLevel]:
    return [
        random_data(
            RawLevel,
            custom_args={float: positive_float},
            factory_type=FactoryType.DATACLASS,
        )
        for _ in range(n)
    ]


def random_record(
    created: int, source: str = "binance", levels_per_side: int | None = None
) -> StoredRecord:
    """A stored record with random levels on each side"""
    n = random.randint(0, 5) if levels_per_side is None else levels_per_side
    return StoredRecord(
        asks=[ApiLevel(price=l.price, volume=l.notional) for l in random_levels(n)],
        bids=[ApiLevel(price=l.price, volume=l.notional) for l in random_levels(n)],
        created=created,
        source=source,
    )


def almost_equal(x: float, y: float, rel: float = 1e-9):
    return abs(x - y) <= rel * max(abs(x), abs(y), 1.0)
