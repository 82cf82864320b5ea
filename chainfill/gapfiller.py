"""Filling of missing bid/ask prices in the put and call records of a chain."""

from __future__ import annotations

import logging
import math
from bisect import bisect_left
from dataclasses import replace
from datetime import datetime
from typing import Mapping, MutableMapping

from chainfill.osioption import from_strike_key, to_strike_key
from chainfill.pcpfit import (
    FitType,
    LineFit,
    fit_pcp_rate_for_gaps,
    match_put_call,
    remove_keys_not_in,
)
from chainfill.records import PriceWeight, Record, RecordMap, fit_least_squares_line

logger = logging.getLogger(__name__)

PCP_FIT_COMMENT = "pcp-fit"
SPREAD_FIT_COMMENT = "spread-fit"
LIN_INTERPOL_COMMENT = "lin-interpol"
LOG_EXTRAPOLATE_COMMENT = "log-extrapolate"

# Spreads fitted to incomplete records never fall below this value.
MIN_FITTED_SPREAD = 0.01
# ATM neighbours further apart than this (in records) give no ATM estimate.
MAX_ATM_DISTANCE = 4


def add_comment(target: str, source: str) -> str:
    """Append ``source`` to a colon separated comment."""
    return f"{target}:{source}" if target else source


def recv_time_of(records: Mapping[str, Record], key: str) -> datetime | None:
    """Receive time of the record under ``key``."""
    record = records.get(key)
    if record is None:
        raise ValueError(f"recv_time_of: no record for key {key}")
    return record.recv_time


def _single_spread(records: Mapping[str, Record], key: str) -> float:
    record = records.get(key)
    if record is None:
        raise ValueError(f"compute_spread: no record for key {key}")
    if not record.bid_ask_valid():
        raise ValueError(f"compute_spread: no valid spread value for key {key}")
    return record.spread()


def compute_spread(records: Mapping[str, Record], *keys: str) -> float:
    """Bid-ask spread of one record, or the average spread of two records."""
    if len(keys) == 1:
        return _single_spread(records, keys[0])
    if len(keys) == 2:
        return (_single_spread(records, keys[0]) + _single_spread(records, keys[1])) / 2.0
    raise TypeError(f"compute_spread takes one or two keys, got {len(keys)}")


def estimate_atm_price(records: Mapping[str, Record], pcp_rate: float) -> float:
    """Average mid price of the valid records nearest below and at or above the ATM strike."""
    keys = sorted(records)
    index = bisect_left(keys, to_strike_key(pcp_rate))
    if index > 0:
        previous = index - 1
        while previous > 0 and not records[keys[previous]].bid_ask_valid():
            previous -= 1
        following = index
        while following < len(keys) and not records[keys[following]].bid_ask_valid():
            following += 1
        if records[keys[previous]].bid_ask_valid() and following < len(keys):
            if following - previous < MAX_ATM_DISTANCE:
                lower = records[keys[previous]].mid_price()
                upper = records[keys[following]].mid_price()
                return (lower + upper) / 2
    raise ValueError(f"Failed to estimate ATM price for PCP rate {pcp_rate}")


def interpolate(
    records: Mapping[str, Record], target_strike: float, lower_key: str, upper_key: str
) -> float:
    """Mid price at ``target_strike`` interpolated linearly between two valid records."""
    lower = records.get(lower_key)
    upper = records.get(upper_key)
    if lower is not None and upper is not None and lower.bid_ask_valid() and upper.bid_ask_valid():
        lower_mid = lower.mid_price()
        upper_mid = upper.mid_price()
        lower_strike = from_strike_key(lower_key)
        upper_strike = from_strike_key(upper_key)
        return lower_mid + (upper_mid - lower_mid) * (target_strike - lower_strike) / (
            upper_strike - lower_strike
        )
    raise ValueError(
        "Unable to perform linear interpolation on strike and keys "
        f"{target_strike},{lower_key},{upper_key}"
    )


def _set_quote(
    record: Record, price: float, spread: float, comment: str, recv_time: datetime | None
) -> None:
    record.ask = PriceWeight(price + spread / 2.0, 1)
    record.bid = PriceWeight(max(0.0, price - spread / 2.0), 1)
    record.comment = add_comment(record.comment, comment)
    record.recv_time = recv_time


def _fill_gap(
    key: str,
    strike: float,
    fit: LineFit,
    discount_factor: float,
    puts: MutableMapping[str, Record],
    calls: MutableMapping[str, Record],
    atm_price: float,
) -> None:
    put, call = puts[key], calls[key]
    slope, intercept = fit.fit
    pcp_rate = slope * strike + intercept
    # Put-call parity: C + K*B = P + S
    if not put.bid_ask_valid() and call.bid_ask_valid():
        computed = call.mid_price() + strike * discount_factor - pcp_rate
        target, target_map = put, puts
        recv_time = recv_time_of(puts, fit.upper_key)
    elif not call.bid_ask_valid() and put.bid_ask_valid():
        computed = put.mid_price() + pcp_rate - strike * discount_factor
        target, target_map = call, calls
        recv_time = recv_time_of(calls, fit.lower_key)
    else:
        return
    spread = compute_spread(target_map, fit.lower_key, fit.upper_key)
    comment = PCP_FIT_COMMENT
    # Parity estimates that are low compared to ATM prices are unreliable.
    threshold = atm_price / 4
    if computed < threshold:
        interpolated = interpolate(target_map, strike, fit.lower_key, fit.upper_key)
        logger.info(
            "Overwrite PCP computed price from %s to %s because it's less than threshold %s",
            computed, interpolated, threshold,
        )
        computed = interpolated
        comment = LIN_INTERPOL_COMMENT
    _set_quote(target, computed, spread, comment, recv_time)


def fill_fit_values(
    discount_factor: float,
    fits: Mapping[str, LineFit],
    puts: MutableMapping[str, Record],
    calls: MutableMapping[str, Record],
    atm_price: float,
) -> None:
    """Fill missing quotes in place from the fits of parity rates and log prices."""
    for key in sorted(fits):
        if key not in puts or key not in calls:
            continue
        fit = fits[key]
        strike = from_strike_key(key)
        if fit.kind is FitType.GAP:
            _fill_gap(key, strike, fit, discount_factor, puts, calls, atm_price)
            continue
        at_start = fit.kind is FitType.START
        source = puts if at_start else calls
        source_key = fit.upper_key if at_start else fit.lower_key
        target = puts[key] if at_start else calls[key]
        spread = compute_spread(source, source_key)
        recv_time = recv_time_of(source, source_key)
        slope, intercept = fit.fit
        price = math.exp(strike * slope + intercept)
        _set_quote(target, price, spread, LOG_EXTRAPOLATE_COMMENT, recv_time)


def spread_fit(records: MutableMapping[str, Record]) -> None:
    """Complete records having only a bid or only an ask using a line fit of spreads."""
    points = []
    fit_keys = []
    for key in sorted(records):
        record = records[key]
        if record.bid_ask_valid():
            points.append((from_strike_key(key), record.spread()))
        elif record.any_bid_ask_valid():
            fit_keys.append(key)
    if not fit_keys:
        return
    try:
        slope, intercept = fit_least_squares_line(points)
    except ValueError as error:
        logger.warning("Unable to perform spread-fit: %s", error)
        return
    for key in fit_keys:
        record = records[key]
        fitted = max(from_strike_key(key) * slope + intercept, MIN_FITTED_SPREAD)
        if record.ask.weight > 0:
            record.bid = PriceWeight(max(record.ask.price - fitted, 0.0), 1)
        else:
            record.ask = PriceWeight(record.bid.price + fitted, 1)
        record.comment = add_comment(record.comment, SPREAD_FIT_COMMENT)


class GapFiller:
    """Fills gaps in put and call records using put-call parity and line fits."""

    def __init__(self, discount_factor: float, parity_rate: float) -> None:
        self.discount_factor = discount_factor
        self.parity_rate = parity_rate
        self.orphaned_calls: list[str] = []
        self.orphaned_puts: list[str] = []

    def fill(
        self, puts: Mapping[str, Record], calls: Mapping[str, Record]
    ) -> tuple[RecordMap, RecordMap]:
        """Return filled copies of ``puts`` and ``calls``; the inputs stay untouched.

        Strike keys lacking a counterpart on the other side are dropped and
        listed in ``orphaned_puts`` and ``orphaned_calls``.
        """
        filled_puts = {key: replace(record) for key, record in puts.items()}
        filled_calls = {key: replace(record) for key, record in calls.items()}
        spread_fit(filled_calls)
        spread_fit(filled_puts)
        pcp_map = match_put_call(filled_puts, filled_calls, self.discount_factor)
        self.orphaned_calls = remove_keys_not_in(filled_calls, pcp_map)
        self.orphaned_puts = remove_keys_not_in(filled_puts, pcp_map)
        try:
            put_atm = estimate_atm_price(filled_puts, self.parity_rate)
            call_atm = estimate_atm_price(filled_calls, self.parity_rate)
            fits = fit_pcp_rate_for_gaps(pcp_map)
            fill_fit_values(
                self.discount_factor, fits, filled_puts, filled_calls, (put_atm + call_atm) / 2
            )
        except ValueError as error:
            logger.warning("Failed to perform advanced fill operations: %s", error)
        return filled_puts, filled_calls