from __future__ import annotations

import logging
from datetime import date, datetime

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models import AutoClip, Car, Dealership
from .subscription import extended_end_date, to_utc_datetime


logger = logging.getLogger("fleetmarket.dealerships")


def apply_subscription_cascade(db: Session, dealership_id, extending: bool) -> dict[str, int]:
    """Flip a dealership's cars and clips to match its subscription state.

    Extending: pending cars -> available, archived clips -> published.
    Expiring: available cars -> pending, published clips -> archived.
    Runs inside the caller's transaction.
    """
    car_from, car_to = ("pending", "available") if extending else ("available", "pending")
    clip_from, clip_to = ("archived", "published") if extending else ("published", "archived")
    cars = (
        db.query(Car)
        .filter(Car.dealership_id == dealership_id, Car.status == car_from)
        .update({Car.status: car_to}, synchronize_session=False)
    )
    clips = (
        db.query(AutoClip)
        .filter(AutoClip.dealership_id == dealership_id, AutoClip.status == clip_from)
        .update({AutoClip.status: clip_to}, synchronize_session=False)
    )
    db.flush()
    logger.info(
        "dealership %s subscription %s: %d cars -> %s, %d clips -> %s",
        dealership_id, "extended" if extending else "expired", cars, car_to, clips, clip_to,
    )
    return {"cars": cars, "autoclips": clips}


def change_subscription_end(db: Session, dealership: Dealership, new_end: date, now: datetime | None = None) -> str | None:
    """Store a new end date and cascade when the subscription crosses 'now'.

    Returns "extended", "expired" or None when the state did not change.
    """
    current = now or datetime.utcnow()
    was_expired = to_utc_datetime(dealership.subscription_end_date) < current
    will_be_expired = to_utc_datetime(new_end) < current
    dealership.subscription_end_date = new_end
    db.flush()
    if was_expired and not will_be_expired:
        apply_subscription_cascade(db, dealership.id, extending=True)
        return "extended"
    if not was_expired and will_be_expired:
        apply_subscription_cascade(db, dealership.id, extending=False)
        return "expired"
    return None


def extend_subscription(db: Session, dealership: Dealership, months: int, now: datetime | None = None) -> date:
    new_end = extended_end_date(dealership.subscription_end_date, months, now)
    dealership.subscription_end_date = new_end
    db.flush()
    apply_subscription_cascade(db, dealership.id, extending=True)
    return new_end


def end_subscription(db: Session, dealership: Dealership, now: datetime | None = None) -> date:
    """End today. A bare end date counts from midnight UTC, so the dealership reads as Expired at once."""
    today = (now or datetime.utcnow()).date()
    dealership.subscription_end_date = today
    db.flush()
    apply_subscription_cascade(db, dealership.id, extending=False)
    return today


def car_counts(db: Session, dealership_ids) -> dict:
    ids = list(dealership_ids)
    if not ids:
        return {}
    rows = (
        db.query(Car.dealership_id, func.count(Car.id))
        .filter(Car.dealership_id.in_(ids), Car.status != "deleted")
        .group_by(Car.dealership_id)
        .all()
    )
    return {did: int(cnt) for did, cnt in rows}
