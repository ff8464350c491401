"""Dealership subscription buckets and end-date arithmetic.

All comparisons happen on naive UTC datetimes. A bare date (or a
``YYYY-MM-DD`` string) is read as midnight UTC of that day.
"""

from __future__ import annotations

import calendar
import enum
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Iterable

WARNING_WINDOW_DAYS = 30


class SubscriptionStatus(str, enum.Enum):
    ACTIVE = "Active"
    EXPIRING_SOON = "Expiring Soon"
    EXPIRED = "Expired"


def to_utc_datetime(value: str | date | datetime) -> datetime:
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        value = datetime.fromisoformat(text)
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    return datetime.combine(value, time.min)


def _now(now: datetime | None) -> datetime:
    return to_utc_datetime(now) if now is not None else datetime.utcnow()


def classify_subscription(
    end_date: str | date | datetime,
    now: datetime | None = None,
    warning_days: int = WARNING_WINDOW_DAYS,
) -> SubscriptionStatus:
    current = _now(now)
    end = to_utc_datetime(end_date)
    if end < current:
        return SubscriptionStatus.EXPIRED
    if end <= current + timedelta(days=warning_days):
        return SubscriptionStatus.EXPIRING_SOON
    return SubscriptionStatus.ACTIVE


def is_subscription_active(end_date: str | date | datetime, now: datetime | None = None) -> bool:
    return to_utc_datetime(end_date) >= _now(now)


def add_months(value: date, months: int) -> date:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def extended_end_date(current_end: date, months: int, now: datetime | None = None) -> date:
    """New end date after extending by ``months``.

    Lapsed subscriptions restart from today; live ones extend from their
    current end date.
    """
    if months < 1:
        raise ValueError("months must be at least 1")
    today = _now(now).date()
    start = max(today, current_end)
    return add_months(start, months)


@dataclass
class SubscriptionStats:
    active: int = 0
    expiring: int = 0
    expired: int = 0
    expired_items: list[Any] = field(default_factory=list)
    expiring_items: list[Any] = field(default_factory=list)


def subscription_stats(
    dealerships: Iterable[Any],
    now: datetime | None = None,
    warning_days: int = WARNING_WINDOW_DAYS,
) -> SubscriptionStats:
    """Bucket counts over objects exposing ``subscription_end_date``."""
    stats = SubscriptionStats()
    for d in dealerships:
        bucket = classify_subscription(d.subscription_end_date, now, warning_days)
        if bucket is SubscriptionStatus.EXPIRED:
            stats.expired += 1
            stats.expired_items.append(d)
        elif bucket is SubscriptionStatus.EXPIRING_SOON:
            stats.expiring += 1
            stats.expiring_items.append(d)
        else:
            stats.active += 1
    return stats
