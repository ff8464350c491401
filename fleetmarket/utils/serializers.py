from datetime import datetime

from ..config import settings
from ..models import AutoClip, Car, Dealership, NumberPlate, RentalCar
from ..schemas import AutoClipOut, DealershipOut, ListingOut
from .subscription import classify_subscription


def _id(value) -> str | None:
    return str(value) if value is not None else None


def listing_out(kind: str, row) -> ListingOut:
    d = row.dealership
    base = dict(
        id=str(row.id), kind=kind, status=row.status, price=row.price,
        dealership_id=_id(row.dealership_id), dealership_name=d.name if d else None,
    )
    if isinstance(row, NumberPlate):
        return ListingOut(
            **base, user_id=_id(row.user_id), letter=row.letter, digits=row.digits,
            views=row.views or 0, listed_at=row.created_at,
        )
    vehicle = dict(
        make=row.make, model=row.model, trim=row.trim, year=row.year, color=row.color,
        category=row.category, fuel_type=row.fuel_type, transmission=row.transmission,
        drivetrain=row.drivetrain, features=list(row.features or []), images=list(row.images or []),
        description=row.description, is_boosted=bool(row.is_boosted), views=row.views or 0,
        likes=row.likes or 0, listed_at=row.listed_at,
    )
    if isinstance(row, RentalCar):
        return ListingOut(**base, **vehicle, rental_period=row.rental_period)
    return ListingOut(
        **base, **vehicle, user_id=_id(row.user_id), condition=row.condition, mileage=row.mileage,
        source=row.source, sold_price=row.sold_price, date_sold=row.date_sold, buyer_name=row.buyer_name,
    )


def dealership_out(d: Dealership, cars_listed: int = 0, now: datetime | None = None) -> DealershipOut:
    return DealershipOut(
        id=str(d.id), name=d.name, location=d.location, phone=d.phone,
        latitude=d.latitude, longitude=d.longitude, logo=d.logo,
        subscription_end_date=d.subscription_end_date,
        subscription_status=classify_subscription(
            d.subscription_end_date, now, settings.SUBSCRIPTION_WARNING_DAYS
        ).value,
        cars_listed=cars_listed, user_id=_id(d.user_id), created_at=d.created_at,
    )


def car_label(c: Car | None) -> str | None:
    if c is None:
        return None
    return f"{c.year} {c.make} {c.model}"


def autoclip_out(a: AutoClip) -> AutoClipOut:
    return AutoClipOut(
        id=str(a.id), dealership_id=str(a.dealership_id),
        dealership_name=a.dealership.name if a.dealership else None,
        car_id=_id(a.car_id), car_label=car_label(a.car),
        title=a.title, description=a.description, video_url=a.video_url,
        thumbnail_url=a.thumbnail_url, status=a.status, views=a.views or 0, likes=a.likes or 0,
        submitted_at=a.submitted_at, reviewed_at=a.reviewed_at, reviewed_by=a.reviewed_by,
        rejection_reason=a.rejection_reason, created_at=a.created_at,
    )
