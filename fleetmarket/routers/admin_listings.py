import logging
import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import false
from sqlalchemy.orm import Session

from ..auth import require_admin
from ..config import settings
from ..constants import DELETED, LISTING_STATUSES
from ..database import get_db
from ..models import Car, Dealership, NumberPlate, RentalCar, User
from ..schemas import (
    BulkResultOut, BulkStatusIn, ListingIn, ListingOut, ListingsPageOut, StatusIn, TransferIn,
)
from ..utils.bulk import run_bulk
from ..utils.listing_query import Page, apply_search, apply_sort, paginate
from ..utils.serializers import listing_out
from ..utils.subscription import to_utc_datetime
from ..utils.validation import normalize_plate_digits, normalize_plate_letter, validate_listing_form


router = APIRouter(prefix="/admin/listings", tags=["admin"])

logger = logging.getLogger("fleetmarket.admin.listings")

KIND_MODELS = {"sale": Car, "rent": RentalCar, "plates": NumberPlate}

SORT_KEYS = ("listed_at", "price", "views", "likes")
PLATE_SORT_ALIASES = {"listed_at": "created_at", "views": "created_at", "likes": "created_at"}

VEHICLE_FIELDS = (
    "make", "model", "trim", "year", "price", "color", "category", "fuel_type",
    "transmission", "drivetrain", "features", "images", "description", "is_boosted",
)
SALE_FIELDS = VEHICLE_FIELDS + (
    "condition", "mileage", "source", "bought_price", "date_bought", "seller_name",
)
RENT_FIELDS = VEHICLE_FIELDS + ("rental_period",)
PLATE_FIELDS = ("letter", "digits", "price")

EDITABLE = {"sale": SALE_FIELDS, "rent": RENT_FIELDS, "plates": PLATE_FIELDS}


def _model(kind: str):
    model = KIND_MODELS.get(kind)
    if model is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown listing kind")
    return model


def load_listing(db: Session, kind: str, listing_id) -> Car | RentalCar | NumberPlate:
    row = db.get(_model(kind), listing_id)
    if row is None or row.status == DELETED:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Listing not found")
    return row


def _invalid(errors: dict[str, str]):
    raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail={"errors": errors})


def image_limit_error(images) -> dict[str, str]:
    if images and len(images) > settings.MAX_LISTING_IMAGES:
        return {"images": f"You can upload up to {settings.MAX_LISTING_IMAGES} images"}
    return {}


def apply_fields(kind: str, row, data: dict) -> None:
    for name in EDITABLE[kind]:
        if name not in data:
            continue
        value = data[name]
        if name == "letter":
            value = normalize_plate_letter(value)
        elif name == "digits":
            value = normalize_plate_digits(value)
        elif name in ("features", "images"):
            value = list(value or [])
        elif name == "is_boosted":
            value = bool(value)
        elif name == "date_bought" and value is not None:
            value = to_utc_datetime(value)
        setattr(row, name, value)


def current_values(kind: str, row) -> dict:
    return {name: getattr(row, name) for name in EDITABLE[kind]}


@router.get("/{kind}", response_model=ListingsPageOut)
def list_listings(
    kind: str,
    owner: str | None = Query(None, pattern="^(dealer|user)$"),
    dealership_id: uuid.UUID | None = Query(None),
    status_filter: str | None = Query(None, alias="status"),
    boosted: str | None = Query(None, pattern="^(boosted|non-boosted)$"),
    q: str | None = Query(None),
    sort_by: str = Query("listed_at"),
    order: str = Query("desc", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=100),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    model = _model(kind)
    query = db.query(model).filter(model.status != DELETED)
    if owner == "dealer":
        query = query.filter(model.dealership_id.isnot(None))
    elif owner == "user":
        if kind == "rent":
            query = query.filter(false())
        else:
            query = query.filter(model.user_id.isnot(None))
    if dealership_id is not None and owner != "user":
        query = query.filter(model.dealership_id == dealership_id)
    if status_filter and status_filter != "all":
        query = query.filter(model.status == status_filter)
    if kind != "plates" and boosted:
        query = query.filter(model.is_boosted.is_(boosted == "boosted"))
    if kind == "plates":
        query = apply_search(query, [model.letter, model.digits], q)
        query = apply_sort(query, model, sort_by, order, SORT_KEYS, "listed_at", PLATE_SORT_ALIASES)
    else:
        query = apply_search(query, [model.make, model.model, model.description, model.color], q)
        query = apply_sort(query, model, sort_by, order, SORT_KEYS, "listed_at")
    rows, total, pages = paginate(query, Page(page, page_size))
    return ListingsPageOut(
        items=[listing_out(kind, r) for r in rows],
        total=total, page=page, page_size=page_size, total_pages=pages,
    )


@router.post("/{kind}", response_model=ListingOut)
def create_listing(kind: str, payload: ListingIn, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    model = _model(kind)
    data = payload.model_dump()
    owner_type = payload.owner_type or "dealership"
    errors = validate_listing_form(kind, data, owner_type=owner_type, images=payload.images or [])
    errors.update(image_limit_error(payload.images))
    if errors:
        _invalid(errors)
    row = model()
    if owner_type == "dealership":
        if db.get(Dealership, payload.dealership_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Dealership not found")
        row.dealership_id = payload.dealership_id
    else:
        if db.get(User, payload.user_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
        row.user_id = payload.user_id
    apply_fields(kind, row, data)
    row.status = "available"
    if kind != "plates":
        row.views = 0
        row.likes = 0
        row.is_boosted = bool(payload.is_boosted)
    db.add(row)
    db.flush()
    logger.info("admin %s created %s listing %s", admin.id, kind, row.id)
    return listing_out(kind, row)


@router.post("/{kind}/bulk/status", response_model=BulkResultOut)
def bulk_listing_status(kind: str, payload: BulkStatusIn, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    model = _model(kind)
    if payload.status not in LISTING_STATUSES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid status")

    def _apply(session: Session, listing_id):
        row = session.get(model, listing_id)
        if row is None or row.status == DELETED:
            raise LookupError("Listing not found")
        _set_status(row, payload.status)
        session.flush()

    try:
        result = run_bulk(db, payload.ids, _apply, label=f"listings.{kind}.status")
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return BulkResultOut(**result.as_dict())


@router.get("/{kind}/{listing_id}", response_model=ListingOut)
def get_listing(kind: str, listing_id: uuid.UUID, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return listing_out(kind, load_listing(db, kind, listing_id))


@router.patch("/{kind}/{listing_id}", response_model=ListingOut)
def update_listing(kind: str, listing_id: uuid.UUID, payload: ListingIn, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    row = load_listing(db, kind, listing_id)
    changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if k in EDITABLE[kind]}
    merged = current_values(kind, row) | changes
    errors = validate_listing_form(kind, merged, images=merged.get("images") or [])
    errors.update(image_limit_error(merged.get("images")))
    if errors:
        _invalid(errors)
    apply_fields(kind, row, changes)
    db.flush()
    return listing_out(kind, row)


@router.delete("/{kind}/{listing_id}")
def delete_listing(kind: str, listing_id: uuid.UUID, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    row = load_listing(db, kind, listing_id)
    row.status = DELETED
    db.flush()
    logger.info("admin %s deleted %s listing %s", admin.id, kind, row.id)
    return {"detail": "deleted"}


def _set_status(row, new_status: str) -> None:
    if new_status not in LISTING_STATUSES:
        raise ValueError("Invalid status")
    row.status = new_status
    if isinstance(row, Car) and new_status == "sold" and row.date_sold is None:
        row.date_sold = datetime.utcnow()


@router.post("/{kind}/{listing_id}/status", response_model=ListingOut)
def set_listing_status(kind: str, listing_id: uuid.UUID, payload: StatusIn, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    row = load_listing(db, kind, listing_id)
    try:
        _set_status(row, payload.status)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    db.flush()
    return listing_out(kind, row)


@router.post("/{kind}/{listing_id}/toggle_status", response_model=ListingOut)
def toggle_listing_status(kind: str, listing_id: uuid.UUID, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    row = load_listing(db, kind, listing_id)
    if row.status == "available":
        row.status = "pending"
    elif row.status == "pending":
        row.status = "available"
    else:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only available or pending listings can be toggled")
    db.flush()
    return listing_out(kind, row)


@router.post("/{kind}/{listing_id}/transfer", response_model=ListingOut)
def transfer_listing(kind: str, listing_id: uuid.UUID, payload: TransferIn, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    row = load_listing(db, kind, listing_id)
    if (payload.dealership_id is None) == (payload.user_id is None):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Select either a dealership or a user")
    if payload.dealership_id is not None:
        if db.get(Dealership, payload.dealership_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Dealership not found")
        if row.dealership_id == payload.dealership_id:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Listing already belongs to this dealership.")
        row.dealership_id = payload.dealership_id
        if kind != "rent":
            row.user_id = None
    else:
        if kind == "rent":
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Rental listings can only belong to dealerships.")
        if db.get(User, payload.user_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
        if row.user_id == payload.user_id:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Listing already belongs to this user.")
        row.dealership_id = None
        row.user_id = payload.user_id
    db.flush()
    db.refresh(row)
    logger.info("admin %s transferred %s listing %s", admin.id, kind, row.id)
    return listing_out(kind, row)
