from typing import Callable

import ratelimit
from pydantic import BaseModel


class ExternalApi(BaseModel):
    """This class is a type for api requests and responses"""


class RateLimit:
    """Represents the num transactions per time period in seconds for a rate limit"""

    def __init__(self, transactions: int, seconds: float):
        self._limiter: Callable = ratelimit.sleep_and_retry(
            ratelimit.limits(transactions, seconds)(lambda: None)
        )

    def check(self):
        """Performs the rate limiting based on the specified values"""
        return self._limiter()
