"""
Market Registry — exchange metadata the data layer needs (session hours, tz).
Adding a new market = add one MarketConfig entry here.
"""
from __future__ import annotations
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from enum import Enum
from zoneinfo import ZoneInfo


class MarketCode(str, Enum):
    US = "US"   # NYSE / NASDAQ / BATS


@dataclass(frozen=True)
class MarketConfig:
    code:                  MarketCode
    name:                  str
    exchange:              str
    currency:              str            # ISO 4217
    timezone:              ZoneInfo
    session_open:          str            # "09:30" local time
    session_close:         str            # "16:00" local time

    def session_window(self, day: date) -> tuple[datetime, datetime]:
        """Regular-hours session of ``day`` as a (start, end) pair in UTC."""
        return (
            self._at(day, self.session_open).astimezone(timezone.utc),
            self._at(day, self.session_close).astimezone(timezone.utc),
        )

    def _at(self, day: date, hhmm: str) -> datetime:
        return datetime.combine(day, time.fromisoformat(hhmm), tzinfo=self.timezone)


MARKET_REGISTRY: dict[MarketCode, MarketConfig] = {

    MarketCode.US: MarketConfig(
        code=MarketCode.US,
        name="United States",
        exchange="NYSE/NASDAQ",
        currency="USD",
        timezone=ZoneInfo("America/New_York"),
        session_open="09:30",
        session_close="16:00",
    ),
}


def get_market(code: str) -> MarketConfig:
    try:
        return MARKET_REGISTRY[MarketCode(code.upper())]
    except (ValueError, KeyError):
        valid = [m.value for m in MARKET_REGISTRY]
        raise ValueError(f"Unknown market '{code}'. Valid: {valid}")
