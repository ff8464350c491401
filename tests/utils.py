import uuid
from datetime import datetime, timedelta


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def dev_login(client, username: str) -> dict:
    r = client.post("/auth/dev_login", json={"username": username, "password": username})
    assert r.status_code == 200, r.text
    return bearer(r.json()["access_token"])


def unique_email(prefix: str = "user") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:10]}@example.com"


def unique_phone() -> str:
    return "09" + str(uuid.uuid4().int % (10 ** 8)).zfill(8)


def register(client, name: str = "Test User") -> tuple[dict, str]:
    """Register a fresh user; returns (auth headers, user id)."""
    r = client.post("/auth/register", json={"email": unique_email(), "password": "secret123", "name": name})
    assert r.status_code == 200, r.text
    headers = bearer(r.json()["access_token"])
    me = client.get("/auth/me", headers=headers)
    assert me.status_code == 200
    return headers, me.json()["id"]


def days_from_now(days: int) -> str:
    return (datetime.utcnow() + timedelta(days=days)).date().isoformat()


def dealership_form(days: int = 365, **overrides) -> dict:
    data = {
        "name": f"Motors {uuid.uuid4().hex[:6]}",
        "location": "Damascus",
        "phone": unique_phone(),
        "subscription_end_date": days_from_now(days),
    }
    data.update(overrides)
    return data


def create_dealership(client, admin: dict, days: int = 365, **overrides) -> dict:
    r = client.post("/admin/dealerships", headers=admin, json=dealership_form(days, **overrides))
    assert r.status_code == 200, r.text
    return r.json()


def new_dealer(client, admin: dict, days: int = 365) -> tuple[dict, str, str]:
    """Register a user and promote them to dealer; returns (headers, user id, dealership id)."""
    headers, user_id = register(client, "Dealer Owner")
    r = client.post(f"/admin/users/{user_id}/role", headers=admin, json={"role": "dealer", "dealership": dealership_form(days)})
    assert r.status_code == 200, r.text
    return headers, user_id, r.json()["dealership_id"]


def car_form(**overrides) -> dict:
    data = {
        "make": "Toyota",
        "model": "Corolla",
        "year": 2020,
        "price": 15000,
        "color": "White",
        "category": "Sedan",
        "fuel_type": "Benzine",
        "transmission": "Automatic",
        "drivetrain": "FWD",
        "condition": "Used",
        "mileage": 50000,
        "images": ["/media/public/cars/x/1.jpg"],
    }
    data.update(overrides)
    return data


def rental_form(**overrides) -> dict:
    data = car_form(rental_period="daily")
    data.pop("condition")
    data.pop("mileage")
    data.update(overrides)
    return data


def create_listing(client, admin: dict, kind: str, dealership_id: str | None = None, user_id: str | None = None, **overrides) -> dict:
    if kind == "plates":
        body = {"letter": "d", "digits": "12-345", "price": 900}
        body.update(overrides)
    elif kind == "rent":
        body = rental_form(**overrides)
    else:
        body = car_form(**overrides)
    if user_id is not None:
        body.update(owner_type="user", user_id=user_id)
    else:
        body.update(owner_type="dealership", dealership_id=dealership_id)
    r = client.post(f"/admin/listings/{kind}", headers=admin, json=body)
    assert r.status_code == 200, r.text
    return r.json()
