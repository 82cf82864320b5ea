"""Market data needed for option chain computations."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class MarketEnvironment:
    """Risk free rate and exchange closing information; immutable so it can be shared."""

    risk_free_rate: float
    exchange_close: Any

    def risk_free_rate_for(self, valuation_time: datetime, expiry_time: datetime) -> float:
        """Continuously compounded rate for the period; flat in the base environment."""
        return self.risk_free_rate