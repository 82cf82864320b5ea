"""OSI option identifiers and strike keys."""

from __future__ import annotations

import re

CALL = "C"
PUT = "P"

_OSI_PATTERN = re.compile(r"([A-Z]+)\s*(\d{2})(\d{2})(\d{2})(C|P)(\d{5})(\d{3})")


def format_strike(dollars: str, decimals: str) -> str:
    """Render dollar and decimal strike digits without padding zeros."""
    dollars = dollars.lstrip("0")
    decimals = decimals.rstrip("0")
    if not decimals:
        return dollars
    return f"{dollars}.{decimals}"


def to_strike_key(strike: float) -> str:
    """Turn a float strike into an eight digit strike key (5 dollars, 3 decimals)."""
    whole = int(strike)
    decimals = f"{strike - whole:f}"[2:5].ljust(3, "0")
    dollars = str(whole)[-5:].rjust(5, "0")
    return dollars + decimals


def _split_strike_key(strike_key: str) -> tuple[str, str]:
    if len(strike_key) != 8:
        raise ValueError(f"Invalid strike key format: {strike_key}")
    return strike_key[:5], strike_key[5:]


def from_strike_key(strike_key: str) -> float:
    """Convert an eight digit strike key back to a float strike."""
    dollars, decimals = _split_strike_key(strike_key)
    return float(int(dollars)) + int(decimals) / 1000.0


def from_strike_key_as_string(strike_key: str) -> str:
    """Convert an eight digit strike key to its display string."""
    dollars, decimals = _split_strike_key(strike_key)
    return format_strike(dollars, decimals)


class OsiOption:
    """An option described by an OSI identifier such as ``SPY 240610C00123000``."""

    def __init__(self, identifier: str) -> None:
        match = _OSI_PATTERN.fullmatch(identifier)
        if match is None:
            raise ValueError(f"Invalid OSI identifier format: {identifier}")
        underlier, year, month, day, kind, dollars, decimals = match.groups()
        self.identifier = identifier
        self.underlier = underlier
        self.expiry_date = f"20{year}-{month}-{day}"
        self.type = kind
        self.strike_dollars = dollars
        self.strike_decimal = decimals
        self.strike = format_strike(dollars, decimals)

    def is_call(self) -> bool:
        return self.type == CALL

    def is_put(self) -> bool:
        return self.type == PUT

    def __str__(self) -> str:
        return f"{self.underlier} {self.expiry_date} {self.type} {self.strike}"

    def __repr__(self) -> str:
        return f"OsiOption({self.identifier!r})"