"""Form checks run before anything is written.

Every validator returns a ``{field: message}`` dict; an empty dict means
the submission may proceed.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Mapping, Sequence

from fleetmarket_shared import is_valid_phone

from .subscription import to_utc_datetime

MIN_YEAR = 1900

REQUIRED = "This field is required"

COMMON_VEHICLE_FIELDS = (
    "make", "model", "year", "price", "color",
    "category", "fuel_type", "transmission", "drivetrain",
)


def normalize_plate_letter(value: str | None) -> str:
    if not value:
        return ""
    return value.strip()[:1].upper()


def normalize_plate_digits(value: str | None) -> str:
    if not value:
        return ""
    return re.sub(r"[^0-9]", "", str(value))


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) == 0
    return False


def parse_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        pass
    try:
        as_float = float(str(value).strip())
    except (TypeError, ValueError):
        return None
    return int(as_float) if as_float.is_integer() else None


def parse_float(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        return float(str(value).strip())
    except (TypeError, ValueError):
        return None


def year_error(value: Any, now: datetime | None = None) -> str | None:
    year = parse_int(value)
    current_year = (now or datetime.utcnow()).year
    if year is None or year < MIN_YEAR or year > current_year + 1:
        return "Invalid year"
    return None


def price_error(value: Any) -> str | None:
    price = parse_float(value)
    if price is None or price <= 0:
        return "Invalid price"
    return None


def validate_owner(owner_type: str, data: Mapping[str, Any], listing_type: str) -> dict[str, str]:
    errors: dict[str, str] = {}
    if owner_type == "dealership":
        if is_blank(data.get("dealership_id")):
            errors["dealership_id"] = "Please select a dealership"
    elif owner_type == "user":
        if listing_type == "rent":
            errors["owner_type"] = "Rental listings can only belong to dealerships."
        elif is_blank(data.get("user_id")):
            errors["user_id"] = "Please select a user"
    else:
        errors["owner_type"] = "Owner must be a dealership or a user"
    return errors


def validate_listing_form(
    listing_type: str,
    data: Mapping[str, Any],
    *,
    owner_type: str | None = None,
    images: Sequence[str] = (),
    now: datetime | None = None,
) -> dict[str, str]:
    errors: dict[str, str] = {}
    if owner_type is not None:
        errors.update(validate_owner(owner_type, data, listing_type))

    if listing_type == "plates":
        letter = normalize_plate_letter(data.get("letter"))
        if not letter:
            errors["letter"] = "Letter is required"
        elif not letter.isalpha():
            errors["letter"] = "Invalid letter"
        if not normalize_plate_digits(data.get("digits")):
            errors["digits"] = "Digits are required"
        if is_blank(data.get("price")):
            errors["price"] = "Price is required"
        else:
            err = price_error(data.get("price"))
            if err:
                errors["price"] = err
        return errors

    if listing_type not in ("sale", "rent"):
        errors["listing_type"] = "Unknown listing type"
        return errors

    for name in COMMON_VEHICLE_FIELDS:
        if is_blank(data.get(name)):
            errors[name] = REQUIRED

    if listing_type == "sale":
        if is_blank(data.get("mileage")):
            errors["mileage"] = "Mileage is required for sales"
        elif parse_float(data.get("mileage")) is None or parse_float(data.get("mileage")) < 0:
            errors["mileage"] = "Invalid mileage"
        if is_blank(data.get("condition")):
            errors["condition"] = "Condition is required"
    else:
        if is_blank(data.get("rental_period")):
            errors["rental_period"] = "Rental period is required"

    if not is_blank(data.get("year")):
        err = year_error(data.get("year"), now)
        if err:
            errors["year"] = err
    if not is_blank(data.get("price")):
        err = price_error(data.get("price"))
        if err:
            errors["price"] = err

    if not images:
        errors["images"] = "Please upload at least one image"
    return errors


def validate_dealership_form(data: Mapping[str, Any], now: datetime | None = None, *, allow_past: bool = False) -> dict[str, str]:
    errors: dict[str, str] = {}
    if is_blank(data.get("name")):
        errors["name"] = "Company name is required"
    if is_blank(data.get("location")):
        errors["location"] = "Location is required"
    phone = data.get("phone")
    if is_blank(phone):
        errors["phone"] = "Phone is required"
    elif not is_valid_phone(str(phone)):
        errors["phone"] = "Invalid phone number"
    end = data.get("subscription_end_date")
    if is_blank(end):
        errors["subscription_end_date"] = "Subscription end date is required"
    else:
        try:
            end_day = to_utc_datetime(end).date()
        except (TypeError, ValueError):
            errors["subscription_end_date"] = "Invalid date"
        else:
            today = (now or datetime.utcnow()).date()
            if end_day < today and not allow_past:
                errors["subscription_end_date"] = "Date must be in the future"
    return errors


IMAGE_MAX_BYTES = 5 * 1024 * 1024
VIDEO_MAX_BYTES = 50 * 1024 * 1024


def validate_upload(content_type: str | None, size: int, kind: str, max_bytes: int | None = None) -> tuple[int, str] | None:
    """Return ``(http_status, message)`` for a rejected upload, else None."""
    ctype = (content_type or "").split(";")[0].strip().lower()
    if not ctype.startswith(f"{kind}/"):
        return 415, f"Only {kind} files are allowed"
    if size <= 0:
        return 400, "Empty file"
    limit = max_bytes or (VIDEO_MAX_BYTES if kind == "video" else IMAGE_MAX_BYTES)
    if size > limit:
        return 413, f"File is too large. Maximum size is {limit // (1024 * 1024)}MB"
    return None
