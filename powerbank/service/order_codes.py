"""
Order Codes
-----------

Every closed order gets a human readable code, made up of ``ORD``,
the time to the millisecond, the last four digits of the user id
and a five digit random disambiguator::

    ORD20240101123000123004200042
"""

from random import Random
from typing import Optional

from powerbank.service.clock import Clock, SystemClock


class OrderCodeGenerator:

    def __init__(self, clock: Optional[Clock] = None, rng: Optional[Random] = None):
        self._clock = clock if clock is not None else SystemClock()
        self._random = rng if rng is not None else Random()

    def __call__(self, user_id: int) -> str:
        now = self._clock.now()
        timestamp = now.strftime("%Y%m%d%H%M%S") + f"{now.microsecond // 1000:03d}"
        disambiguator = self._random.randrange(100000)
        return f"ORD{timestamp}{user_id % 10000:04d}{disambiguator:05d}"
