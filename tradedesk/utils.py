from __future__ import annotations

import locale
import math
from datetime import datetime, timezone
from typing import Any, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def safe_div(n: float, d: float) -> float:
    return float(n) / float(d) if d else 0.0


def age_in_days(received: datetime, now: Optional[datetime] = None) -> int:
    """Whole days elapsed since `received`, floored."""
    now = as_utc(now or utcnow())
    seconds = (now - as_utc(received)).total_seconds()
    return int(math.floor(seconds / 86400.0))


def month_label(value: datetime) -> str:
    # "October 2026"
    return value.strftime("%B %Y")


def norm_email(email: Optional[str]) -> str:
    return str(email or "").strip().lower()


def split_serials(text: Optional[str]) -> list[str]:
    """One serial per line; blank lines dropped, whitespace trimmed."""
    if not text:
        return []
    return [s.strip() for s in str(text).splitlines() if s.strip()]


def sort_records(rows: list[dict], key: str, descending: bool = False) -> list[dict]:
    """
    Strings compare locale-aware, numbers (and dates) by value.
    Missing values sort with the empty/first value.
    """
    if not rows:
        return rows
    sample: Any = next((r.get(key) for r in rows if r.get(key) is not None), "")
    if isinstance(sample, str):
        return sorted(rows, key=lambda r: locale.strxfrm(str(r.get(key) or "")), reverse=descending)
    return sorted(rows, key=lambda r: r.get(key) if r.get(key) is not None else sample, reverse=descending)
