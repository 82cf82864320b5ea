"""Put-call parity rates of an option chain and line fits over their gaps."""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass
from typing import Iterable, Mapping, MutableMapping

from chainfill.osioption import from_strike_key
from chainfill.records import Record, fit_least_squares_line, on_all_put_call_records

# Lower bound for prices whose logarithm is taken.
LOG_LOWER_LIMIT = 1e-9
# Number of valid points sought for fits at the ends of a chain.
EXTRAPOLATION_POINTS = 24
# Fewest valid points that allow a fit at the ends of a chain.
MIN_EXTRAPOLATION_POINTS = EXTRAPOLATION_POINTS // 6


@dataclass(frozen=True)
class PcpResult:
    """Put-call parity rate of a put and call pair sharing a strike."""

    rate: float = math.nan
    put_price: float = math.nan
    call_price: float = math.nan
    valid: bool = False


class FitType(enum.Enum):
    """Whether a fit extrapolates at the start or end, or interpolates a gap."""

    START = "start"
    GAP = "gap"
    END = "end"


@dataclass(frozen=True)
class LineFit:
    """A least squares line fitted over the valid values around a gap.

    ``fit`` holds slope and intercept. ``lower_key`` and ``upper_key`` are the
    strike keys with valid values bounding the gap; the missing side is "".
    """

    fit: tuple[float, float]
    kind: FitType
    lower_key: str
    upper_key: str


def parity_rate(put: Record, call: Record, strike: float, discount_factor: float) -> float:
    """The underlier price consistent with put-call parity: C + K*B - P."""
    return call.mid_price() + strike * discount_factor - put.mid_price()


def match_put_call(
    puts: Mapping[str, Record], calls: Mapping[str, Record], discount_factor: float
) -> dict[str, PcpResult]:
    """Parity results for all strike keys present among both puts and calls.

    Pairs lacking a valid bid and ask on either side give an invalid result.
    """

    def compute(key: str, put: Record, call: Record) -> PcpResult:
        if put.bid_ask_valid() and call.bid_ask_valid():
            rate = parity_rate(put, call, from_strike_key(key), discount_factor)
            return PcpResult(rate, put.mid_price(), call.mid_price(), True)
        return PcpResult()

    return on_all_put_call_records(puts, calls, compute, only_valid=False)


def remove_keys_not_in(target: MutableMapping[str, object], keys: Iterable[str]) -> list[str]:
    """Delete entries of ``target`` whose key is not in ``keys``; return the deleted keys."""
    kept = set(keys)
    removed = [key for key in sorted(target) if key not in kept]
    for key in removed:
        del target[key]
    return removed


def _rate_point(key: str, result: PcpResult) -> tuple[float, float]:
    return from_strike_key(key), result.rate


def _log_point(key: str, price: float) -> tuple[float, float]:
    return from_strike_key(key), math.log(max(LOG_LOWER_LIMIT, price))


def fit_pcp_rate_for_gaps(pcp_map: Mapping[str, PcpResult]) -> dict[str, LineFit]:
    """Map each strike key without a valid parity rate to a line fit covering it.

    Gaps between valid rates get a fit of the rates around them. A gap before
    the first valid rate gets a fit of log put prices, one after the last valid
    rate a fit of log call prices, each when enough valid points exist.
    """
    items = sorted(pcp_map.items())
    fits: dict[str, LineFit] = {}

    def put_fit(gap: list[str], points: list[tuple[float, float]], kind: FitType,
                lower_key: str, upper_key: str) -> None:
        fit = LineFit(fit_least_squares_line(points), kind, lower_key, upper_key)
        for key in gap:
            fits.setdefault(key, fit)

    def fit_gap(gap: list[str], previous: int, following: int) -> None:
        points = []
        before = next(
            ((k, r) for k, r in reversed(items[:previous]) if r.valid), None
        )
        if before is not None:
            points.append(_rate_point(*before))
        previous_key, previous_result = items[previous]
        following_key, following_result = items[following]
        points.append(_rate_point(previous_key, previous_result))
        points.append(_rate_point(following_key, following_result))
        after = next(
            ((k, r) for k, r in items[following + 1:] if r.valid), None
        )
        if after is not None:
            points.append(_rate_point(*after))
        put_fit(gap, points, FitType.GAP, previous_key, following_key)

    def fit_start(gap: list[str], following: int) -> None:
        points = []
        for key, result in items[following:]:
            if result.valid:
                points.append(_log_point(key, result.put_price))
                if len(points) >= EXTRAPOLATION_POINTS:
                    break
        if len(points) >= MIN_EXTRAPOLATION_POINTS:
            put_fit(gap, points, FitType.START, "", items[following][0])

    def fit_end(gap: list[str], last: int) -> None:
        # The first entry of the chain is only used when it is the last valid one.
        candidates = items[last:0:-1] or items[:1]
        points = []
        for key, result in candidates:
            if result.valid:
                points.append(_log_point(key, result.call_price))
            if len(points) >= EXTRAPOLATION_POINTS:
                break
        points.reverse()
        if len(points) >= MIN_EXTRAPOLATION_POINTS:
            put_fit(gap, points, FitType.END, items[last][0], "")

    gap: list[str] = []
    previous_valid: int | None = None
    for index, (key, result) in enumerate(items):
        if not result.valid:
            gap.append(key)
            continue
        if gap:
            if previous_valid is not None:
                fit_gap(gap, previous_valid, index)
            else:
                fit_start(gap, index)
            gap = []
        previous_valid = index
    if gap and previous_valid is not None:
        fit_end(gap, previous_valid)
    return fits