from datetime import datetime

from fleetmarket.utils.validation import (
    normalize_plate_digits,
    normalize_plate_letter,
    validate_dealership_form,
    validate_listing_form,
    validate_owner,
    validate_upload,
)


NOW = datetime(2024, 6, 15, 12, 0)

SALE = {
    "make": "Kia", "model": "Rio", "year": 2019, "price": 9800, "color": "Red",
    "category": "Hatchback", "fuel_type": "Benzine", "transmission": "Manual",
    "drivetrain": "FWD", "condition": "Used", "mileage": 88000,
}


def test_valid_sale_listing():
    assert validate_listing_form("sale", SALE, images=["a.jpg"], now=NOW) == {}


def test_sale_requires_images_mileage_and_condition():
    data = dict(SALE)
    data.pop("mileage")
    data["condition"] = ""
    errors = validate_listing_form("sale", data, now=NOW)
    assert set(errors) == {"mileage", "condition", "images"}


def test_missing_common_fields_are_reported_together():
    errors = validate_listing_form("sale", {}, images=["a.jpg"], now=NOW)
    for name in ("make", "model", "year", "price", "color", "category", "fuel_type", "transmission", "drivetrain"):
        assert errors[name] == "This field is required"


def test_year_and_price_bounds():
    errors = validate_listing_form("sale", dict(SALE, year=1899, price=0), images=["a.jpg"], now=NOW)
    assert errors == {"year": "Invalid year", "price": "Invalid price"}
    assert validate_listing_form("sale", dict(SALE, year=2025, price=0.01), images=["a.jpg"], now=NOW) == {}
    assert validate_listing_form("sale", dict(SALE, price=-5), images=["a.jpg"], now=NOW) == {"price": "Invalid price"}
    assert "year" in validate_listing_form("sale", dict(SALE, year=2026), images=["a.jpg"], now=NOW)


def test_negative_mileage_is_invalid():
    errors = validate_listing_form("sale", dict(SALE, mileage=-1), images=["a.jpg"], now=NOW)
    assert errors == {"mileage": "Invalid mileage"}


def test_rent_needs_period_not_mileage():
    data = {k: v for k, v in SALE.items() if k not in ("mileage", "condition")}
    assert validate_listing_form("rent", data, images=["a.jpg"], now=NOW) == {"rental_period": "Rental period is required"}
    assert validate_listing_form("rent", dict(data, rental_period="weekly"), images=["a.jpg"], now=NOW) == {}


def test_plate_form():
    assert validate_listing_form("plates", {"letter": "D", "digits": "123", "price": 500}) == {}
    errors = validate_listing_form("plates", {"letter": " ", "price": -5})
    assert errors == {"letter": "Letter is required", "digits": "Digits are required", "price": "Invalid price"}


def test_plate_form_checks_normalized_values():
    assert validate_listing_form("plates", {"letter": "d", "digits": "12a3", "price": 500}) == {}
    errors = validate_listing_form("plates", {"letter": "!", "digits": "abc", "price": 500})
    assert errors == {"letter": "Invalid letter", "digits": "Digits are required"}


def test_unknown_listing_type():
    assert validate_listing_form("boats", {}) == {"listing_type": "Unknown listing type"}


def test_owner_rules():
    assert validate_owner("dealership", {}, "sale") == {"dealership_id": "Please select a dealership"}
    assert validate_owner("user", {"user_id": "x"}, "sale") == {}
    assert validate_owner("user", {"user_id": "x"}, "rent") == {"owner_type": "Rental listings can only belong to dealerships."}
    assert "owner_type" in validate_owner("robot", {}, "sale")


def test_owner_errors_merge_with_field_errors():
    errors = validate_listing_form("rent", {}, owner_type="user", now=NOW)
    assert errors["owner_type"] == "Rental listings can only belong to dealerships."
    assert errors["make"] == "This field is required"


def test_plate_normalizers():
    assert normalize_plate_letter(" d ") == "D"
    assert normalize_plate_letter("ab") == "A"
    assert normalize_plate_digits("12-345 ") == "12345"
    assert normalize_plate_digits("12a3") == "123"
    assert normalize_plate_digits(None) == ""


def test_dealership_form():
    form = {"name": "Motors", "location": "Homs", "phone": "0933123456", "subscription_end_date": "2024-12-31"}
    assert validate_dealership_form(form, NOW) == {}
    errors = validate_dealership_form({"phone": "12-34"}, NOW)
    assert errors == {
        "name": "Company name is required",
        "location": "Location is required",
        "phone": "Invalid phone number",
        "subscription_end_date": "Subscription end date is required",
    }


def test_dealership_date_rules():
    form = {"name": "Motors", "location": "Homs", "phone": "0933123456"}
    assert validate_dealership_form(dict(form, subscription_end_date="2024-06-01"), NOW) == {
        "subscription_end_date": "Date must be in the future"
    }
    assert validate_dealership_form(dict(form, subscription_end_date="2024-06-01"), NOW, allow_past=True) == {}
    assert validate_dealership_form(dict(form, subscription_end_date="2024-06-15"), NOW) == {}
    assert validate_dealership_form(dict(form, subscription_end_date="31/12/2024"), NOW) == {
        "subscription_end_date": "Invalid date"
    }


def test_upload_checks():
    assert validate_upload("image/png", 100, "image") is None
    assert validate_upload("video/mp4; codecs=avc1", 100, "video") is None
    assert validate_upload("video/mp4", 100, "image") == (415, "Only image files are allowed")
    assert validate_upload(None, 100, "video") == (415, "Only video files are allowed")
    assert validate_upload("image/jpeg", 0, "image") == (400, "Empty file")
    assert validate_upload("image/jpeg", 5 * 1024 * 1024 + 1, "image") == (413, "File is too large. Maximum size is 5MB")
    assert validate_upload("video/mp4", 50 * 1024 * 1024, "video") is None
    assert validate_upload("image/jpeg", 3 * 1024 * 1024, "image", max_bytes=2 * 1024 * 1024) == (
        413, "File is too large. Maximum size is 2MB"
    )
