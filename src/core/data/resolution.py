"""Bar resolution tokens ("1Min", "1Day", ...) and default query windows."""
import re
from datetime import datetime, timedelta, timezone

_TOKEN = re.compile(r"^(\d+)(Min|Hour|Day|Week|Month)$", re.IGNORECASE)

_UNIT_MINUTES = {
    "min": 1,
    "hour": 60,
    "day": 60 * 24,
    "week": 60 * 24 * 7,
    "month": 60 * 24 * 30,
}

_UNIT_NAMES = {"min": "Min", "hour": "Hour", "day": "Day", "week": "Week", "month": "Month"}

MAX_LOOKBACK = timedelta(days=365)


def normalize_resolution(token: str) -> str:
    """Canonical spelling of a resolution token, e.g. ``"5min"`` -> ``"5Min"``."""
    m = _TOKEN.match(token.strip()) if token else None
    if not m or int(m.group(1)) <= 0:
        raise ValueError(f"Unknown resolution {token!r}. Expected e.g. 1Min, 15Min, 1Hour, 1Day")
    return f"{int(m.group(1))}{_UNIT_NAMES[m.group(2).lower()]}"


def resolution_minutes(token: str) -> int:
    m = _TOKEN.match(normalize_resolution(token))
    return int(m.group(1)) * _UNIT_MINUTES[m.group(2).lower()]


def default_start(resolution: str, limit: int, now: datetime) -> datetime:
    """Start of a "latest ``limit`` bars" window ending at ``now``.

    The window is ``resolution x limit`` wide, capped at 365 days.
    """
    span = timedelta(minutes=resolution_minutes(resolution) * max(limit, 1))
    return now - min(span, MAX_LOOKBACK)


def to_utc_iso(ts: datetime) -> str:
    """RFC-3339 UTC string with a ``Z`` suffix; naive datetimes are taken as UTC."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
