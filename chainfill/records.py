"""Option price records and helpers shared by chain computations."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable, Mapping, TypeVar

T = TypeVar("T")


@dataclass(frozen=True, eq=False)
class PriceWeight:
    """A price with its weight (size); a weight of 0 means no price."""

    price: float = 0.0
    weight: int = 0

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PriceWeight):
            return NotImplemented
        # Empty prices may hold nan, so only their weights are compared.
        if self.weight == 0 and other.weight == 0:
            return True
        return self.weight == other.weight and self.price == other.price

    def __hash__(self) -> int:
        if self.weight == 0:
            return hash(0)
        return hash((self.price, self.weight))


@dataclass
class Record:
    """Last trade and best bid/ask of one option."""

    price: PriceWeight = field(default_factory=PriceWeight)
    price_time: datetime | None = None
    ask: PriceWeight = field(default_factory=PriceWeight)
    bid: PriceWeight = field(default_factory=PriceWeight)
    recv_time: datetime | None = None
    comment: str = ""

    def bid_price(self) -> float:
        """The bid price, or nan when there is no bid."""
        return math.nan if self.bid.weight == 0 else self.bid.price

    def ask_price(self) -> float:
        """The ask price, or nan when there is no ask."""
        return math.nan if self.ask.weight == 0 else self.ask.price

    def mid_price(self) -> float:
        return (self.ask_price() + self.bid_price()) / 2.0

    def is_valid(self) -> bool:
        return self.price.weight > 0 and self.ask.weight > 0 and self.bid.weight > 0

    def bid_ask_valid(self) -> bool:
        return self.ask.weight > 0 and self.bid.weight > 0

    def any_bid_ask_valid(self) -> bool:
        return self.ask.weight > 0 or self.bid.weight > 0

    def spread(self) -> float:
        return self.ask.price - self.bid.price

    def trade_price(self) -> float:
        """The last trade price, or nan when there was no trade."""
        return math.nan if self.price.weight == 0 else self.price.price

    def trade_time(self) -> datetime | None:
        """The last trade time, or None when there was no trade."""
        return None if self.price.weight == 0 else self.price_time

    def effective_recv_time(self) -> datetime | None:
        """The receive time when a bid or ask is present, else None."""
        return self.recv_time if self.any_bid_ask_valid() else None

    def is_empty(self) -> bool:
        return self.price.weight == 0 and self.ask.weight == 0 and self.bid.weight == 0


RecordMap = dict[str, Record]


def fit_least_squares_line(points: Iterable[tuple[float, float]]) -> tuple[float, float]:
    """Slope and intercept of the least squares line through (x, y) points."""
    pairs = list(points)
    n = len(pairs)
    if n < 2:
        raise ValueError(f"Least squares fit needs at least 2 points, got {n}")
    sum_x = sum(x for x, _ in pairs)
    sum_y = sum(y for _, y in pairs)
    sum_xx = sum(x * x for x, _ in pairs)
    sum_xy = sum(x * y for x, y in pairs)
    denominator = n * sum_xx - sum_x * sum_x
    if denominator == 0:
        raise ValueError("Least squares fit is undefined for points sharing one x value")
    slope = (n * sum_xy - sum_x * sum_y) / denominator
    intercept = (sum_y - slope * sum_x) / n
    return slope, intercept


def on_all_put_call_records(
    puts: Mapping[str, Record],
    calls: Mapping[str, Record],
    callback: Callable[[str, Record, Record], T],
    only_valid: bool = True,
    relaxed_bid_ask_valid: bool = False,
) -> dict[str, T]:
    """Apply ``callback(strike_key, put, call)`` to puts and calls matched on strike key.

    With ``only_valid`` only fully valid pairs are used; ``relaxed_bid_ask_valid``
    also admits pairs that merely have valid bids and asks. Results are ordered by key.
    """
    results: dict[str, T] = {}
    for key in sorted(calls):
        put = puts.get(key)
        if put is None:
            continue
        call = calls[key]
        if (
            not only_valid
            or (relaxed_bid_ask_valid and put.bid_ask_valid() and call.bid_ask_valid())
            or (put.is_valid() and call.is_valid())
        ):
            results[key] = callback(key, put, call)
    return results