"""Time helpers.

All timestamps are UTC and serialized as ISO 8601. Services take an optional
``now`` so tests can pin the clock.
"""

from __future__ import annotations

from datetime import date, datetime, timezone


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def iso(moment: datetime | None = None) -> str:
    """Serialize a datetime (default: now) as ISO 8601."""
    return (moment or utc_now()).isoformat()


def today_str(moment: datetime | None = None) -> str:
    """Calendar date as YYYY-MM-DD."""
    return (moment or utc_now()).date().isoformat()


def parse_iso(value: str | datetime | date | None) -> datetime | None:
    """Parse an ISO timestamp or date into an aware UTC datetime.

    Naive values are assumed to be UTC. Unparseable values yield None.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, date):
        moment = datetime(value.year, value.month, value.day)
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            moment = datetime.fromisoformat(text)
        except ValueError:
            return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)
