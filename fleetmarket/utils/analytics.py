"""Back-office analytics snapshot.

Everything is computed from the live tables in one pass per request; there
is no caching. Deleted listings are excluded from every figure.
"""

from __future__ import annotations

from datetime import datetime, time, timedelta
from typing import Any

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..constants import DELETED
from ..models import AutoClip, Car, Dealership, NumberPlate, RentalCar, User
from .subscription import SubscriptionStatus, classify_subscription

WEEKS = 8
TOP_N = 10
PRICE_BUCKETS = (
    (0, 10_000), (10_000, 25_000), (25_000, 50_000), (50_000, 100_000), (100_000, None),
)


def _count(db: Session, model, *conds) -> int:
    return db.query(func.count(model.id)).filter(model.status != DELETED, *conds).scalar() or 0


def _sum(db: Session, column, model, *conds) -> float:
    return float(db.query(func.coalesce(func.sum(column), 0)).filter(model.status != DELETED, *conds).scalar() or 0)


def _status_counts(db: Session, model) -> dict[str, int]:
    rows = (
        db.query(model.status, func.count(model.id))
        .filter(model.status != DELETED)
        .group_by(model.status)
        .all()
    )
    return {s: int(n) for s, n in rows}


def _distribution(db: Session, column) -> dict[str, int]:
    rows = (
        db.query(column, func.count(Car.id))
        .filter(Car.status != DELETED)
        .group_by(column)
        .all()
    )
    return {(k or "Unknown"): int(n) for k, n in rows}


def overview(db: Session, now: datetime) -> dict[str, Any]:
    sale = _status_counts(db, Car)
    rent = _status_counts(db, RentalCar)
    plates = _status_counts(db, NumberPlate)
    cars_sale = {
        "total": sum(sale.values()),
        "available": sale.get("available", 0),
        "pending": sale.get("pending", 0),
        "sold": sale.get("sold", 0),
        "views": int(_sum(db, Car.views, Car)),
        "likes": int(_sum(db, Car.likes, Car)),
        "revenue": _sum(db, Car.sold_price, Car, Car.status == "sold"),
    }
    cars_rent = {
        "total": sum(rent.values()),
        "available": rent.get("available", 0),
        "views": int(_sum(db, RentalCar.views, RentalCar)),
        "likes": int(_sum(db, RentalCar.likes, RentalCar)),
    }
    number_plates = {
        "total": sum(plates.values()),
        "available": plates.get("available", 0),
        "pending": plates.get("pending", 0),
        "sold": plates.get("sold", 0),
        "views": int(_sum(db, NumberPlate.views, NumberPlate)),
        "revenue": _sum(db, NumberPlate.price, NumberPlate, NumberPlate.status == "sold"),
    }
    ends = [d for (d,) in db.query(Dealership.subscription_end_date).all()]
    active = sum(1 for end in ends if classify_subscription(end, now) is not SubscriptionStatus.EXPIRED)
    return {
        "cars_sale": cars_sale,
        "cars_rent": cars_rent,
        "number_plates": number_plates,
        "total_listings": cars_sale["total"] + cars_rent["total"] + number_plates["total"],
        "total_views": cars_sale["views"] + cars_rent["views"] + number_plates["views"],
        "total_likes": cars_sale["likes"] + cars_rent["likes"],
        "total_dealerships": len(ends),
        "total_users": db.query(func.count(User.id)).scalar() or 0,
        "active_subscriptions": active,
    }


def week_starts(now: datetime, weeks: int = WEEKS) -> list[datetime]:
    """Monday midnight of the current week and the ``weeks - 1`` before it, oldest first."""
    monday = datetime.combine(now.date() - timedelta(days=now.weekday()), time.min)
    return [monday - timedelta(weeks=i) for i in range(weeks - 1, -1, -1)]


def weekly_breakdown(db: Session, now: datetime, weeks: int = WEEKS) -> list[dict[str, Any]]:
    out = []
    for start in week_starts(now, weeks):
        end = start + timedelta(days=7)
        out.append({
            "week_start": start.date().isoformat(),
            "cars_sale": _count(db, Car, Car.listed_at >= start, Car.listed_at < end),
            "cars_rent": _count(db, RentalCar, RentalCar.listed_at >= start, RentalCar.listed_at < end),
            "number_plates": _count(db, NumberPlate, NumberPlate.created_at >= start, NumberPlate.created_at < end),
            "sales": _count(db, Car, Car.status == "sold", Car.date_sold >= start, Car.date_sold < end),
            "new_users": db.query(func.count(User.id)).filter(User.created_at >= start, User.created_at < end).scalar() or 0,
        })
    return out


def filtered_metrics(db: Session, now: datetime, days_back: int) -> dict[str, Any]:
    since = now - timedelta(days=days_back) if days_back > 0 else datetime.min
    return {
        "period_days": days_back,
        "cars_sale": {
            "new_listings": _count(db, Car, Car.listed_at >= since),
            "sold": _count(db, Car, Car.status == "sold", Car.date_sold >= since),
            "revenue": _sum(db, Car.sold_price, Car, Car.status == "sold", Car.date_sold >= since),
            "views": int(_sum(db, Car.views, Car, Car.listed_at >= since)),
        },
        "cars_rent": {
            "new_listings": _count(db, RentalCar, RentalCar.listed_at >= since),
            "views": int(_sum(db, RentalCar.views, RentalCar, RentalCar.listed_at >= since)),
        },
        "number_plates": {
            "new_listings": _count(db, NumberPlate, NumberPlate.created_at >= since),
            "sold": _count(db, NumberPlate, NumberPlate.status == "sold", NumberPlate.created_at >= since),
            "views": int(_sum(db, NumberPlate.views, NumberPlate, NumberPlate.created_at >= since)),
        },
        "new_users": db.query(func.count(User.id)).filter(User.created_at >= since).scalar() or 0,
        "new_dealerships": db.query(func.count(Dealership.id)).filter(Dealership.created_at >= since).scalar() or 0,
    }


def _per_dealership(db: Session, model, *columns) -> dict:
    rows = (
        db.query(model.dealership_id, func.count(model.id), *columns)
        .filter(model.status != DELETED, model.dealership_id.isnot(None))
        .group_by(model.dealership_id)
        .all()
    )
    return {r[0]: r[1:] for r in rows}


def top_dealerships(db: Session, limit: int = TOP_N) -> list[dict[str, Any]]:
    sale = _per_dealership(db, Car, func.coalesce(func.sum(Car.views), 0), func.coalesce(func.sum(Car.likes), 0))
    sold = {
        did: (n, rev)
        for did, n, rev in db.query(Car.dealership_id, func.count(Car.id), func.coalesce(func.sum(Car.sold_price), 0))
        .filter(Car.status == "sold", Car.dealership_id.isnot(None))
        .group_by(Car.dealership_id)
        .all()
    }
    rent = _per_dealership(db, RentalCar, func.coalesce(func.sum(RentalCar.views), 0), func.coalesce(func.sum(RentalCar.likes), 0))
    plates = _per_dealership(db, NumberPlate, func.coalesce(func.sum(NumberPlate.views), 0))
    out = []
    for d in db.query(Dealership).all():
        s = sale.get(d.id, (0, 0, 0))
        r = rent.get(d.id, (0, 0, 0))
        p = plates.get(d.id, (0, 0))
        n_sold, revenue = sold.get(d.id, (0, 0))
        out.append({
            "id": str(d.id),
            "name": d.name,
            "location": d.location,
            "total_listings": int(s[0] + r[0] + p[0]),
            "cars_sale": int(s[0]),
            "cars_rent": int(r[0]),
            "number_plates": int(p[0]),
            "total_views": int(s[1] + r[1] + p[1]),
            "total_likes": int(s[2] + r[2]),
            "total_sales": int(n_sold),
            "total_revenue": float(revenue),
        })
    out.sort(key=lambda x: (x["total_listings"], x["total_views"]), reverse=True)
    return out[:limit]


def top_cars(db: Session, limit: int = TOP_N) -> list[dict[str, Any]]:
    rows = (
        db.query(Car)
        .filter(Car.status != DELETED)
        .order_by(Car.views.desc(), Car.likes.desc(), Car.id.asc())
        .limit(limit)
        .all()
    )
    return [
        {"id": str(c.id), "make": c.make, "model": c.model, "year": c.year, "price": c.price,
         "views": c.views or 0, "likes": c.likes or 0, "status": c.status}
        for c in rows
    ]


def top_rentals(db: Session, limit: int = TOP_N) -> list[dict[str, Any]]:
    rows = (
        db.query(RentalCar)
        .filter(RentalCar.status != DELETED)
        .order_by(RentalCar.views.desc(), RentalCar.likes.desc(), RentalCar.id.asc())
        .limit(limit)
        .all()
    )
    return [
        {"id": str(c.id), "make": c.make, "model": c.model, "year": c.year, "price": c.price,
         "views": c.views or 0, "likes": c.likes or 0, "status": c.status, "rental_period": c.rental_period}
        for c in rows
    ]


def top_plates(db: Session, limit: int = TOP_N) -> list[dict[str, Any]]:
    rows = (
        db.query(NumberPlate)
        .filter(NumberPlate.status != DELETED)
        .order_by(NumberPlate.views.desc(), NumberPlate.price.desc(), NumberPlate.id.asc())
        .limit(limit)
        .all()
    )
    return [
        {"id": str(p.id), "letter": p.letter, "digits": p.digits, "price": p.price,
         "views": p.views or 0, "status": p.status}
        for p in rows
    ]


def price_distribution(db: Session) -> list[dict[str, Any]]:
    out = []
    for low, high in PRICE_BUCKETS:
        conds = [Car.price >= low]
        if high is not None:
            conds.append(Car.price < high)
        label = f"{low:,}+" if high is None else f"{low:,}-{high:,}"
        out.append({"range": label, "count": _count(db, Car, *conds)})
    return out


def performance_metrics(db: Session) -> dict[str, float]:
    sold = (
        db.query(Car)
        .filter(Car.status == "sold", Car.date_sold.isnot(None))
        .all()
    )
    total = _count(db, Car)
    days = [max((c.date_sold - (c.date_bought or c.listed_at)).days, 0) for c in sold]
    avg_listing = _sum(db, Car.price, Car) / total if total else 0.0
    sale_prices = [c.sold_price for c in sold if c.sold_price is not None]
    avg_sale = sum(sale_prices) / len(sale_prices) if sale_prices else 0.0
    return {
        "avg_time_to_sell": round(sum(days) / len(days), 1) if days else 0.0,
        "conversion_rate": round(len(sold) / total, 4) if total else 0.0,
        "avg_listing_price": round(avg_listing, 2),
        "avg_sale_price": round(avg_sale, 2),
        "price_difference": round(avg_sale - avg_listing, 2) if sale_prices else 0.0,
        "views_per_listing": round(_sum(db, Car.views, Car) / total, 2) if total else 0.0,
        "likes_per_listing": round(_sum(db, Car.likes, Car) / total, 2) if total else 0.0,
    }


def autoclip_counts(db: Session) -> dict[str, int]:
    rows = db.query(AutoClip.status, func.count(AutoClip.id)).group_by(AutoClip.status).all()
    by_status = {s: int(n) for s, n in rows}
    views, likes = db.query(
        func.coalesce(func.sum(AutoClip.views), 0), func.coalesce(func.sum(AutoClip.likes), 0)
    ).one()
    return {
        "total": sum(by_status.values()),
        "published": by_status.get("published", 0),
        "draft": by_status.get("draft", 0),
        "under_review": by_status.get("under_review", 0),
        "rejected": by_status.get("rejected", 0),
        "archived": by_status.get("archived", 0),
        "total_views": int(views),
        "total_likes": int(likes),
    }


def analytics_snapshot(db: Session, days_back: int = 0, now: datetime | None = None) -> dict[str, Any]:
    now = now or datetime.utcnow()
    ov = overview(db, now)
    return {
        "generated_at": now.isoformat(),
        "overview": ov,
        "weekly_breakdown": weekly_breakdown(db, now),
        "filtered_metrics": filtered_metrics(db, now, days_back),
        "top_dealerships": top_dealerships(db),
        "top_cars": top_cars(db),
        "top_rentals": top_rentals(db),
        "top_plates": top_plates(db),
        "inventory_summary": {
            "condition_distribution": _distribution(db, Car.condition),
            "transmission_distribution": _distribution(db, Car.transmission),
            "drivetrain_distribution": _distribution(db, Car.drivetrain),
            "category_distribution": _distribution(db, Car.category),
        },
        "price_distribution": price_distribution(db),
        "performance_metrics": performance_metrics(db),
        "autoclips": autoclip_counts(db),
        "listing_type_distribution": [
            {"type": "Cars for Sale", "count": ov["cars_sale"]["total"]},
            {"type": "Cars for Rent", "count": ov["cars_rent"]["total"]},
            {"type": "Number Plates", "count": ov["number_plates"]["total"]},
        ],
    }
