import logging
from types import TracebackType

from exchange.connection import Connection
from helpers.connection import ConnectionAdapter
from helpers.constants import DEPTH_URL
from helpers.types.config import ExchangeConfig
from helpers.types.errors import ExchangeError
from helpers.types.exchange import (
    BaseExchangeInterface,
    GetDepthRequest,
    GetDepthResponse,
)

logger = logging.getLogger(__name__)


class ExchangeInterface(BaseExchangeInterface):
    def __init__(
        self,
        config: ExchangeConfig | None = None,
        test_client: ConnectionAdapter | None = None,
    ):
        """This class provides a high level interface with the exchange's
        public market data. No credentials are needed for depth.

        with ExchangeInterface() as exchange_interface:
            ...

        :param ExchangeConfig config: where the exchange lives and retry policy
        :param test_client: local test client
        """
        self._config = config or ExchangeConfig()
        self._connection = Connection(self._config, test_client)

    def get_depth(self, symbol: str) -> GetDepthResponse:
        """Full depth of market for a symbol, up to the configured limit"""
        request = GetDepthRequest(symbol=symbol, limit=self._config.depth_limit)
        raw = self._connection.get(
            DEPTH_URL, params={k: str(v) for k, v in request.model_dump().items()}
        )
        try:
            depth = GetDepthResponse.model_validate(raw)
        except ValueError as e:
            raise ExchangeError(f"Unexpected depth response for {symbol}: {e}") from e
        logger.debug(
            "depth %s: %d bids, %d asks", symbol, len(depth.bids), len(depth.asks)
        )
        return depth

    def __enter__(self) -> "ExchangeInterface":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ):
        self._connection.close()
