from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def days_ago(days: int, *, now: Optional[datetime] = None) -> datetime:
    """UTC-naive timestamp `days` before now. Non-positive values mean now."""
    base = now or utcnow()
    if days <= 0:
        return base
    return base - timedelta(days=days)


def period_prefix(dt: Optional[datetime] = None) -> str:
    """
    Two-digit year + two-digit month ("YYMM") used to partition
    reception numbers by allocation month.
    """
    return (dt or utcnow()).strftime("%y%m")


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")
