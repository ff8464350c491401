import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..config import settings
from ..constants import DELETED
from ..database import get_db
from ..models import Car, Dealership, Favorite, NumberPlate, RentalCar, User
from ..schemas import ListingOut, ListingsPageOut
from ..utils.dealerships import car_counts
from ..utils.listing_query import Page, apply_search, apply_sort, paginate
from ..utils.serializers import dealership_out, listing_out


router = APIRouter(tags=["public"])

CAR_SORT_KEYS = ("listed_at", "price", "year", "mileage", "views")


def _active_dealership(now: datetime):
    return Dealership.subscription_end_date > now.date()


def _visible(model, query, now: datetime):
    """Available rows owned by a live dealership (or by a private user where the model allows it)."""
    query = query.outerjoin(Dealership, model.dealership_id == Dealership.id).filter(model.status == "available")
    if hasattr(model, "user_id"):
        return query.filter(or_(and_(model.dealership_id.is_(None), model.user_id.isnot(None)), _active_dealership(now)))
    return query.filter(_active_dealership(now))


def _page_out(kind: str, rows, total: int, page: int, page_size: int, pages: int) -> ListingsPageOut:
    return ListingsPageOut(
        items=[listing_out(kind, r) for r in rows],
        total=total, page=page, page_size=page_size, total_pages=pages,
    )


@router.get("/cars", response_model=ListingsPageOut)
def browse_cars(
    q: str | None = Query(None),
    make: str | None = Query(None),
    model: str | None = Query(None),
    category: str | None = Query(None),
    fuel_type: str | None = Query(None),
    transmission: str | None = Query(None),
    drivetrain: str | None = Query(None),
    color: str | None = Query(None),
    condition: str | None = Query(None),
    dealership_id: uuid.UUID | None = Query(None),
    min_price: float | None = Query(None),
    max_price: float | None = Query(None),
    year_min: int | None = Query(None),
    year_max: int | None = Query(None),
    sort_by: str = Query("listed_at"),
    order: str = Query("desc", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=100),
    db: Session = Depends(get_db),
):
    query = _visible(Car, db.query(Car), datetime.utcnow())
    conds = []
    for column, value in (
        (Car.make, make), (Car.model, model), (Car.category, category), (Car.fuel_type, fuel_type),
        (Car.transmission, transmission), (Car.drivetrain, drivetrain), (Car.color, color),
        (Car.condition, condition),
    ):
        if value:
            conds.append(column.ilike(value))
    if dealership_id is not None:
        conds.append(Car.dealership_id == dealership_id)
    if min_price is not None:
        conds.append(Car.price >= min_price)
    if max_price is not None:
        conds.append(Car.price <= max_price)
    if year_min is not None:
        conds.append(Car.year >= year_min)
    if year_max is not None:
        conds.append(Car.year <= year_max)
    if conds:
        query = query.filter(and_(*conds))
    query = apply_search(query, [Car.make, Car.model, Car.description, Car.color], q)
    query = apply_sort(query.order_by(Car.is_boosted.desc()), Car, sort_by, order, CAR_SORT_KEYS, "listed_at")
    rows, total, pages = paginate(query, Page(page, page_size))
    return _page_out("sale", rows, total, page, page_size, pages)


@router.get("/cars/{car_id}", response_model=ListingOut)
def car_details(car_id: uuid.UUID, db: Session = Depends(get_db)):
    c = db.get(Car, car_id)
    if c is None or c.status == DELETED:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Car not found")
    c.views = (c.views or 0) + 1
    db.flush()
    return listing_out("sale", c)


@router.post("/cars/{car_id}/like")
def like_car(car_id: uuid.UUID, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    c = db.get(Car, car_id)
    if c is None or c.status == DELETED:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Car not found")
    exists = db.query(Favorite).filter(Favorite.user_id == user.id, Favorite.car_id == c.id).one_or_none()
    if exists is None:
        db.add(Favorite(user_id=user.id, car_id=c.id))
        c.likes = (c.likes or 0) + 1
        db.flush()
    return {"liked": True, "likes": c.likes}


@router.delete("/cars/{car_id}/like")
def unlike_car(car_id: uuid.UUID, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    c = db.get(Car, car_id)
    if c is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Car not found")
    fav = db.query(Favorite).filter(Favorite.user_id == user.id, Favorite.car_id == c.id).one_or_none()
    if fav:
        db.delete(fav)
        c.likes = max((c.likes or 0) - 1, 0)
        db.flush()
    return {"liked": False, "likes": c.likes}


@router.get("/favorites", response_model=ListingsPageOut)
def list_favorites(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    rows = (
        db.query(Car)
        .join(Favorite, Favorite.car_id == Car.id)
        .filter(Favorite.user_id == user.id, Car.status != DELETED)
        .order_by(Favorite.created_at.desc())
        .all()
    )
    return _page_out("sale", rows, len(rows), 1, max(len(rows), 1), 1 if rows else 0)


@router.get("/dealerships")
def browse_dealerships(
    q: str | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=100),
    db: Session = Depends(get_db),
):
    now = datetime.utcnow()
    query = apply_search(db.query(Dealership).filter(_active_dealership(now)), [Dealership.name, Dealership.location], q)
    query = query.order_by(Dealership.name.asc(), Dealership.id.asc())
    rows, total, pages = paginate(query, Page(page, page_size))
    counts = car_counts(db, [d.id for d in rows])
    return {
        "items": [dealership_out(d, counts.get(d.id, 0), now) for d in rows],
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": pages,
    }


@router.get("/dealerships/{dealership_id}")
def dealership_details(dealership_id: uuid.UUID, db: Session = Depends(get_db)):
    d = db.get(Dealership, dealership_id)
    if d is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Dealership not found")
    cars = (
        db.query(Car)
        .filter(Car.dealership_id == d.id, Car.status == "available")
        .order_by(Car.is_boosted.desc(), Car.listed_at.desc())
        .all()
    )
    return {
        "dealership": dealership_out(d, car_counts(db, [d.id]).get(d.id, 0)),
        "cars": [listing_out("sale", c) for c in cars],
    }


@router.get("/rentals", response_model=ListingsPageOut)
def browse_rentals(
    q: str | None = Query(None),
    rental_period: str | None = Query(None),
    dealership_id: uuid.UUID | None = Query(None),
    sort_by: str = Query("listed_at"),
    order: str = Query("desc", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=100),
    db: Session = Depends(get_db),
):
    query = _visible(RentalCar, db.query(RentalCar), datetime.utcnow())
    if rental_period:
        query = query.filter(RentalCar.rental_period == rental_period)
    if dealership_id is not None:
        query = query.filter(RentalCar.dealership_id == dealership_id)
    query = apply_search(query, [RentalCar.make, RentalCar.model, RentalCar.description, RentalCar.color], q)
    query = apply_sort(query, RentalCar, sort_by, order, ("listed_at", "price", "year", "views"), "listed_at")
    rows, total, pages = paginate(query, Page(page, page_size))
    return _page_out("rent", rows, total, page, page_size, pages)


@router.get("/plates", response_model=ListingsPageOut)
def browse_plates(
    q: str | None = Query(None),
    sort_by: str = Query("created_at"),
    order: str = Query("desc", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=100),
    db: Session = Depends(get_db),
):
    query = _visible(NumberPlate, db.query(NumberPlate), datetime.utcnow())
    query = apply_search(query, [NumberPlate.letter, NumberPlate.digits], q)
    query = apply_sort(query, NumberPlate, sort_by, order, ("created_at", "price"), "created_at")
    rows, total, pages = paginate(query, Page(page, page_size))
    return _page_out("plates", rows, total, page, page_size, pages)
