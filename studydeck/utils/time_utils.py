"""Helpers for the naive-UTC timestamps stored by the session engine."""

from __future__ import annotations

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Return the current UTC time without tzinfo, as persisted in the database."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: datetime | None) -> datetime | None:
    """Convert *value* to naive UTC; naive inputs are assumed to already be UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def elapsed_seconds(since: datetime | None, now: datetime) -> int:
    """Whole seconds elapsed between *since* and *now*, never negative."""
    if since is None:
        return 0
    delta = (as_naive_utc(now) - as_naive_utc(since)).total_seconds()
    return max(int(delta), 0)
