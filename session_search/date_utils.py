"""Shared date parsing, range filtering, and duration helpers."""
from __future__ import annotations

import re
import time
from dataclasses import dataclass
from datetime import datetime, timezone

_DATE_ONLY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _parse_datetime_token(token: str) -> datetime | None:
    cleaned = token.strip()
    if not cleaned:
        return None
    try:
        return datetime.fromisoformat(cleaned.replace("Z", "+00:00"))
    except ValueError:
        pass
    for fmt in ("%Y/%m/%d", "%Y-%m-%d %H:%M:%S"):
        try:
            return datetime.strptime(cleaned, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    return None


def parse_iso(value: str | None) -> datetime | None:
    """Parse an ISO-8601 string into an aware UTC datetime.

    Date-only values and naive datetimes are interpreted as UTC.
    """
    if not isinstance(value, str):
        return None
    token = value.strip()
    if not token:
        return None
    if _DATE_ONLY_RE.match(token):
        try:
            parsed = datetime.fromisoformat(token)
        except ValueError:
            return None
    else:
        parsed = _parse_datetime_token(token)
        if parsed is None:
            return None
    dt = parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def iso_to_epoch(value: str | None) -> float | None:
    """Seconds since the epoch for an ISO string, or None when unparseable."""
    parsed = parse_iso(value)
    if parsed is None:
        return None
    return parsed.timestamp()


def sort_epoch(value: str | None) -> float:
    """Epoch used for ordering; unparseable timestamps sort as the epoch itself."""
    epoch = iso_to_epoch(value)
    return epoch if epoch is not None else 0.0


def ms_to_iso(value: int | float) -> str:
    """Format epoch milliseconds as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
    dt = datetime.fromtimestamp(float(value) / 1000.0, timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def format_duration(ms: int | float) -> str:
    seconds = int(max(0, ms) // 1000)
    minutes = seconds // 60
    hours = minutes // 60

    if hours > 0:
        return f"{hours}h {minutes % 60}m"
    if minutes > 0:
        return f"{minutes}m {seconds % 60}s"
    return f"{seconds}s"


def duration_ms(started_at: str | None, ended_at: str | None) -> int:
    start = iso_to_epoch(started_at)
    end = iso_to_epoch(ended_at)
    if start is None or end is None:
        return 0
    return int(round((end - start) * 1000))


@dataclass(frozen=True)
class DateRange:
    """Inclusive ``[since, until]`` window in epoch seconds."""

    since: float
    until: float

    @classmethod
    def from_args(cls, since: str | None = None, until: str | None = None) -> "DateRange":
        since_epoch = iso_to_epoch(since) if since else None
        until_epoch = iso_to_epoch(until) if until else None
        return cls(
            since=since_epoch if since_epoch is not None else 0.0,
            until=until_epoch if until_epoch is not None else time.time(),
        )

    def contains_epoch(self, epoch: float) -> bool:
        return self.since <= epoch <= self.until

    def contains(self, timestamp: str | None) -> bool:
        """Whether an ISO timestamp lies in the window.

        Unparseable timestamps are never filtered out.
        """
        epoch = iso_to_epoch(timestamp)
        if epoch is None:
            return True
        return self.contains_epoch(epoch)
