"""
Order numbers: `ORD-YYMMDD-NNNN`, short enough to read over the phone.

The random suffix can collide; the store's uniqueness check catches it
and the caller draws again.
"""

from __future__ import annotations

import random
import re
from datetime import datetime

ORDER_NUMBER = re.compile(r"^ORD-\d{6}-\d{4}$")

_rng = random.SystemRandom()


def order_number(now: datetime) -> str:
    return f"ORD-{now:%y%m%d}-{_rng.randrange(10_000):04d}"


__all__ = ("ORDER_NUMBER", "order_number")
