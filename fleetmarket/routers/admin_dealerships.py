import logging
import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from ..auth import require_admin
from ..config import settings
from ..database import get_db
from ..models import Dealership, User
from ..schemas import (
    BulkResultOut, DealershipBulkIn, DealershipIn, DealershipOut, DealershipOverviewOut,
    DealershipsPageOut, DealershipUpdateOut, ExtendIn,
)
from ..utils.bulk import run_bulk
from ..utils.dealerships import car_counts, change_subscription_end, end_subscription, extend_subscription
from ..utils.listing_query import Page, apply_search, apply_sort, paginate
from ..utils.serializers import dealership_out
from ..utils.subscription import subscription_stats, to_utc_datetime
from ..utils.validation import validate_dealership_form
from .media import receive_upload


router = APIRouter(prefix="/admin/dealerships", tags=["admin"])

logger = logging.getLogger("fleetmarket.admin.dealerships")

SORT_KEYS = ("name", "location", "subscription_end_date", "created_at")


def load_dealership(db: Session, dealership_id) -> Dealership:
    d = db.get(Dealership, dealership_id)
    if d is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Dealership not found")
    return d


def _out(db: Session, d: Dealership) -> DealershipOut:
    return dealership_out(d, car_counts(db, [d.id]).get(d.id, 0))


def create_dealership(db: Session, payload: DealershipIn, owner: User | None = None) -> Dealership:
    """Validate and insert a dealership; raises 422 with field errors."""
    errors = validate_dealership_form(payload.model_dump())
    if errors:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail={"errors": errors})
    d = Dealership(
        user_id=owner.id if owner else None,
        name=payload.name.strip(),
        location=payload.location.strip(),
        phone=payload.phone.strip(),
        latitude=payload.latitude,
        longitude=payload.longitude,
        logo=payload.logo,
        subscription_end_date=to_utc_datetime(payload.subscription_end_date).date(),
    )
    db.add(d)
    db.flush()
    return d


@router.get("", response_model=DealershipsPageOut)
def list_dealerships(
    q: str | None = Query(None),
    sort_by: str = Query("name"),
    order: str = Query("asc", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=100),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    query = apply_search(db.query(Dealership), [Dealership.name, Dealership.location], q)
    query = apply_sort(query, Dealership, sort_by, order, SORT_KEYS, "name")
    rows, total, pages = paginate(query, Page(page, page_size))
    counts = car_counts(db, [d.id for d in rows])
    now = datetime.utcnow()
    return DealershipsPageOut(
        items=[dealership_out(d, counts.get(d.id, 0), now) for d in rows],
        total=total, page=page, page_size=page_size, total_pages=pages,
    )


@router.get("/overview", response_model=DealershipOverviewOut)
def dealerships_overview(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    rows = db.query(Dealership).order_by(Dealership.subscription_end_date.asc()).all()
    now = datetime.utcnow()
    stats = subscription_stats(rows, now, settings.SUBSCRIPTION_WARNING_DAYS)
    counts = car_counts(db, [d.id for d in stats.expired_items + stats.expiring_items])
    return DealershipOverviewOut(
        total=len(rows),
        active=stats.active,
        expiring=stats.expiring,
        expired=stats.expired,
        expired_dealerships=[dealership_out(d, counts.get(d.id, 0), now) for d in stats.expired_items],
        expiring_dealerships=[dealership_out(d, counts.get(d.id, 0), now) for d in stats.expiring_items],
    )


@router.post("", response_model=DealershipOut)
def add_dealership(payload: DealershipIn, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    owner = None
    if payload.user_id is not None:
        owner = db.get(User, payload.user_id)
        if owner is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
        if owner.dealership is not None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User already owns a dealership")
    d = create_dealership(db, payload, owner)
    logger.info("admin %s created dealership %s", admin.id, d.id)
    return _out(db, d)


@router.post("/bulk", response_model=BulkResultOut)
def bulk_dealerships(payload: DealershipBulkIn, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    if payload.action not in ("extend", "end"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unknown action")
    now = datetime.utcnow()

    def _apply(session: Session, dealership_id):
        d = session.get(Dealership, dealership_id)
        if d is None:
            raise LookupError("Dealership not found")
        if payload.action == "extend":
            extend_subscription(session, d, payload.months, now)
        else:
            end_subscription(session, d, now)

    try:
        result = run_bulk(db, payload.ids, _apply, label=f"dealerships.{payload.action}")
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return BulkResultOut(**result.as_dict())


@router.get("/{dealership_id}", response_model=DealershipOut)
def get_dealership(dealership_id: uuid.UUID, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return _out(db, load_dealership(db, dealership_id))


@router.patch("/{dealership_id}", response_model=DealershipUpdateOut)
def update_dealership(dealership_id: uuid.UUID, payload: DealershipIn, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    d = load_dealership(db, dealership_id)
    changes = payload.model_dump(exclude_unset=True)
    changes.pop("user_id", None)
    merged = {
        "name": d.name, "location": d.location, "phone": d.phone,
        "subscription_end_date": d.subscription_end_date,
    } | changes
    errors = validate_dealership_form(merged, allow_past=True)
    if errors:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail={"errors": errors})
    for name in ("name", "location", "phone"):
        if name in changes:
            setattr(d, name, changes[name].strip())
    for name in ("latitude", "longitude", "logo"):
        if name in changes:
            setattr(d, name, changes[name])
    cascade = None
    if "subscription_end_date" in changes:
        new_end = to_utc_datetime(changes["subscription_end_date"]).date()
        cascade = change_subscription_end(db, d, new_end)
    db.flush()
    if cascade:
        logger.info("admin %s edited dealership %s: subscription %s", admin.id, d.id, cascade)
    return DealershipUpdateOut(dealership=_out(db, d), cascade=cascade)


@router.post("/{dealership_id}/subscription/extend", response_model=DealershipOut)
def extend_dealership(dealership_id: uuid.UUID, payload: ExtendIn, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    d = load_dealership(db, dealership_id)
    extend_subscription(db, d, payload.months)
    return _out(db, d)


@router.post("/{dealership_id}/subscription/end", response_model=DealershipOut)
def end_dealership(dealership_id: uuid.UUID, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    d = load_dealership(db, dealership_id)
    end_subscription(db, d)
    return _out(db, d)


@router.put("/{dealership_id}/logo", response_model=DealershipOut)
async def upload_logo(dealership_id: uuid.UUID, request: Request, filename: str | None = Query(None), admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    d = load_dealership(db, dealership_id)
    obj = await receive_upload(request, "logos", str(d.id), filename or "logo")
    d.logo = obj.url
    db.flush()
    return _out(db, d)
