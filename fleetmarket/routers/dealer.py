import logging
import uuid
from collections import OrderedDict
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from ..auth import require_dealer
from ..config import settings
from ..constants import AUTOCLIP_STATUSES, DELETED
from ..database import get_db
from ..models import AutoClip, Car, Dealership, User
from ..storage import storage
from ..schemas import (
    AutoClipIn, AutoClipOut, AutoClipsPageOut, DealershipOut, ListingIn, ListingOut, ListingsPageOut,
    ProfilePatchIn, SaleOut, SalesOut, SoldIn,
)
from ..utils.dealerships import car_counts
from ..utils.listing_query import Page, apply_search, apply_sort, paginate
from ..utils.serializers import autoclip_out, dealership_out, listing_out
from ..utils.subscription import is_subscription_active, to_utc_datetime
from ..utils.validation import validate_dealership_form, validate_listing_form
from .admin_listings import SALE_FIELDS, apply_fields, current_values, image_limit_error
from .media import receive_upload


router = APIRouter(prefix="/dealer", tags=["dealer"])

logger = logging.getLogger("fleetmarket.dealer")

DEALER_FIELDS = tuple(f for f in SALE_FIELDS if f != "is_boosted")
SORT_KEYS = ("listed_at", "price", "views", "likes", "year")


def my_dealership(db: Session, user: User) -> Dealership:
    d = db.query(Dealership).filter(Dealership.user_id == user.id).one_or_none()
    if d is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Dealership not found")
    return d


def _require_active(d: Dealership) -> None:
    if not is_subscription_active(d.subscription_end_date):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="subscription_expired")


def _my_car(db: Session, d: Dealership, car_id) -> Car:
    c = db.get(Car, car_id)
    if c is None or c.status == DELETED:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Car not found")
    if c.dealership_id != d.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return c


def _my_clip(db: Session, d: Dealership, clip_id) -> AutoClip:
    a = db.get(AutoClip, clip_id)
    if a is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="AutoClip not found")
    if a.dealership_id != d.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return a


def _profile_out(db: Session, d: Dealership) -> DealershipOut:
    return dealership_out(d, car_counts(db, [d.id]).get(d.id, 0))


@router.get("/profile", response_model=DealershipOut)
def get_profile(user: User = Depends(require_dealer), db: Session = Depends(get_db)):
    return _profile_out(db, my_dealership(db, user))


@router.patch("/profile", response_model=DealershipOut)
def update_profile(payload: ProfilePatchIn, user: User = Depends(require_dealer), db: Session = Depends(get_db)):
    d = my_dealership(db, user)
    changes = payload.model_dump(exclude_unset=True)
    merged = {
        "name": d.name, "location": d.location, "phone": d.phone,
        "subscription_end_date": d.subscription_end_date,
    } | changes
    errors = validate_dealership_form(merged, allow_past=True)
    if errors:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail={"errors": errors})
    for name, value in changes.items():
        setattr(d, name, value.strip() if isinstance(value, str) else value)
    db.flush()
    return _profile_out(db, d)


@router.put("/profile/logo", response_model=DealershipOut)
async def upload_profile_logo(request: Request, filename: str | None = Query(None), user: User = Depends(require_dealer), db: Session = Depends(get_db)):
    d = my_dealership(db, user)
    obj = await receive_upload(request, "logos", str(d.id), filename or "logo")
    d.logo = obj.url
    db.flush()
    return _profile_out(db, d)


@router.get("/inventory", response_model=ListingsPageOut)
def my_inventory(
    status_filter: str | None = Query(None, alias="status"),
    q: str | None = Query(None),
    sort_by: str = Query("listed_at"),
    order: str = Query("desc", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=100),
    user: User = Depends(require_dealer),
    db: Session = Depends(get_db),
):
    d = my_dealership(db, user)
    query = db.query(Car).filter(Car.dealership_id == d.id, Car.status != DELETED)
    if status_filter and status_filter != "all":
        query = query.filter(Car.status == status_filter)
    query = apply_search(query, [Car.make, Car.model, Car.description, Car.color], q)
    query = apply_sort(query, Car, sort_by, order, SORT_KEYS, "listed_at")
    rows, total, pages = paginate(query, Page(page, page_size))
    return ListingsPageOut(
        items=[listing_out("sale", c) for c in rows],
        total=total, page=page, page_size=page_size, total_pages=pages,
    )


@router.post("/inventory", response_model=ListingOut)
def add_car(payload: ListingIn, user: User = Depends(require_dealer), db: Session = Depends(get_db)):
    d = my_dealership(db, user)
    _require_active(d)
    data = payload.model_dump()
    errors = validate_listing_form("sale", data, images=payload.images or [])
    errors.update(image_limit_error(payload.images))
    if errors:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail={"errors": errors})
    c = Car(dealership_id=d.id)
    apply_fields("sale", c, {k: v for k, v in data.items() if k in DEALER_FIELDS})
    c.status = "pending"
    c.is_boosted = False
    c.views = 0
    c.likes = 0
    db.add(c)
    db.flush()
    logger.info("dealership %s listed car %s", d.id, c.id)
    return listing_out("sale", c)


@router.patch("/inventory/{car_id}", response_model=ListingOut)
def update_car(car_id: uuid.UUID, payload: ListingIn, user: User = Depends(require_dealer), db: Session = Depends(get_db)):
    d = my_dealership(db, user)
    c = _my_car(db, d, car_id)
    changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if k in DEALER_FIELDS}
    merged = current_values("sale", c) | changes
    errors = validate_listing_form("sale", merged, images=merged.get("images") or [])
    errors.update(image_limit_error(merged.get("images")))
    if errors:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail={"errors": errors})
    apply_fields("sale", c, changes)
    db.flush()
    return listing_out("sale", c)


@router.delete("/inventory/{car_id}")
def delete_car(car_id: uuid.UUID, user: User = Depends(require_dealer), db: Session = Depends(get_db)):
    d = my_dealership(db, user)
    c = _my_car(db, d, car_id)
    c.status = DELETED
    db.flush()
    return {"detail": "deleted"}


@router.post("/inventory/{car_id}/sold", response_model=ListingOut)
def mark_sold(car_id: uuid.UUID, payload: SoldIn, user: User = Depends(require_dealer), db: Session = Depends(get_db)):
    d = my_dealership(db, user)
    c = _my_car(db, d, car_id)
    if c.status == "sold":
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Car is already sold")
    c.status = "sold"
    c.sold_price = payload.sold_price
    c.date_sold = to_utc_datetime(payload.date_sold) if payload.date_sold else datetime.utcnow()
    c.buyer_name = payload.buyer_name
    db.flush()
    logger.info("dealership %s sold car %s", d.id, c.id)
    return listing_out("sale", c)


def sale_out(c: Car) -> SaleOut:
    profit = None
    if c.sold_price is not None and c.bought_price is not None:
        profit = c.sold_price - c.bought_price
    days = None
    start = c.date_bought or c.listed_at
    if c.date_sold is not None and start is not None:
        days = max((c.date_sold - start).days, 0)
    return SaleOut(
        id=str(c.id), make=c.make, model=c.model, year=c.year,
        bought_price=c.bought_price, sold_price=c.sold_price, profit=profit,
        days_on_market=days, date_sold=c.date_sold, buyer_name=c.buyer_name,
    )


@router.get("/sales", response_model=SalesOut)
def sales_history(user: User = Depends(require_dealer), db: Session = Depends(get_db)):
    d = my_dealership(db, user)
    rows = (
        db.query(Car)
        .filter(Car.dealership_id == d.id, Car.status == "sold")
        .order_by(Car.date_sold.desc())
        .all()
    )
    sales = [sale_out(c) for c in rows]
    monthly: "OrderedDict[str, dict]" = OrderedDict()
    for s in sorted(sales, key=lambda s: s.date_sold or datetime.min):
        if s.date_sold is None:
            continue
        key = s.date_sold.strftime("%Y-%m")
        bucket = monthly.setdefault(key, {"month": key, "count": 0, "revenue": 0.0, "profit": 0.0})
        bucket["count"] += 1
        bucket["revenue"] += s.sold_price or 0.0
        bucket["profit"] += s.profit or 0.0
    return SalesOut(
        sales=sales,
        total_revenue=sum(s.sold_price or 0.0 for s in sales),
        total_profit=sum(s.profit or 0.0 for s in sales),
        monthly=list(monthly.values()),
    )


# --- AutoClips ---


@router.get("/autoclips", response_model=AutoClipsPageOut)
def my_clips(
    status_filter: str = Query("all", alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=100),
    user: User = Depends(require_dealer),
    db: Session = Depends(get_db),
):
    d = my_dealership(db, user)
    query = db.query(AutoClip).filter(AutoClip.dealership_id == d.id)
    if status_filter != "all":
        if status_filter not in AUTOCLIP_STATUSES:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid status")
        query = query.filter(AutoClip.status == status_filter)
    query = query.order_by(AutoClip.created_at.desc(), AutoClip.id.desc())
    rows, total, pages = paginate(query, Page(page, page_size))
    return AutoClipsPageOut(
        items=[autoclip_out(a) for a in rows],
        total=total, page=page, page_size=page_size, total_pages=pages,
    )


@router.post("/autoclips", response_model=AutoClipOut)
def submit_clip(payload: AutoClipIn, user: User = Depends(require_dealer), db: Session = Depends(get_db)):
    d = my_dealership(db, user)
    _require_active(d)
    errors = {}
    if not (payload.video_url or "").strip():
        errors["video_url"] = "Please upload a video"
    if payload.car_id is None:
        errors["car_id"] = "Please select a car"
    if errors:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail={"errors": errors})
    c = _my_car(db, d, payload.car_id)
    if db.query(AutoClip).filter(AutoClip.car_id == c.id).first() is not None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="This car already has an AutoClip.")
    now = datetime.utcnow()
    a = AutoClip(
        dealership_id=d.id,
        car_id=c.id,
        title=payload.title.strip(),
        description=(payload.description or "").strip() or None,
        video_url=payload.video_url.strip(),
        thumbnail_url=payload.thumbnail_url or payload.video_url.strip(),
        status="under_review",
        views=0,
        likes=0,
        submitted_at=now,
    )
    db.add(a)
    db.flush()
    logger.info("dealership %s submitted clip %s", d.id, a.id)
    return autoclip_out(a)


@router.post("/autoclips/{clip_id}/resubmit", response_model=AutoClipOut)
def resubmit_clip(clip_id: uuid.UUID, user: User = Depends(require_dealer), db: Session = Depends(get_db)):
    d = my_dealership(db, user)
    _require_active(d)
    a = _my_clip(db, d, clip_id)
    if a.status not in ("rejected", "draft"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only rejected or draft clips can be resubmitted")
    a.status = "under_review"
    a.submitted_at = datetime.utcnow()
    a.reviewed_at = None
    a.reviewed_by = None
    a.rejection_reason = None
    db.flush()
    return autoclip_out(a)


@router.delete("/autoclips/{clip_id}")
def delete_clip(clip_id: uuid.UUID, user: User = Depends(require_dealer), db: Session = Depends(get_db)):
    d = my_dealership(db, user)
    a = _my_clip(db, d, clip_id)
    video_path = storage.path_from_url("autoclips", a.video_url)
    db.delete(a)
    db.commit()
    if video_path:
        storage.remove("autoclips", video_path)
    logger.info("dealership %s deleted clip %s", d.id, clip_id)
    return {"detail": "deleted"}
