from abc import ABC, abstractmethod
from typing import List, Tuple

from helpers.types.api import ExternalApi
from helpers.types.orderbook import RawLevel, levels_from_exchange


class GetDepthRequest(ExternalApi):
    symbol: str
    limit: int


class GetDepthResponse(ExternalApi):
    """Raw depth from the exchange. Prices and quantities are decimal strings"""

    lastUpdateId: int | None = None
    bids: List[List[str]]
    asks: List[List[str]]

    def to_levels(self) -> Tuple[List[RawLevel], List[RawLevel]]:
        """Returns (bids, asks), validating every level on the way in"""
        return levels_from_exchange(self.bids), levels_from_exchange(self.asks)


class BaseExchangeInterface(ABC):
    @abstractmethod
    def get_depth(self, symbol: str) -> GetDepthResponse:
        pass
