import uuid

from fastapi.testclient import TestClient

from fleetmarket.main import app
from .utils import create_dealership, create_listing, days_from_now, dev_login, register


client = TestClient(app)


def _admin():
    return dev_login(client, "admin")


def test_browse_hides_expired_dealers_and_pending_cars():
    H = _admin()
    tag = uuid.uuid4().hex[:8]
    live = create_dealership(client, H)
    lapsed = create_dealership(client, H)
    shown = create_listing(client, H, "sale", dealership_id=live["id"], model=f"Shown{tag}")
    pending = create_listing(client, H, "sale", dealership_id=live["id"], model=f"Pending{tag}")
    client.post(f"/admin/listings/sale/{pending['id']}/status", headers=H, json={"status": "pending"})
    hidden = create_listing(client, H, "sale", dealership_id=lapsed["id"], model=f"Hidden{tag}")
    client.patch(f"/admin/dealerships/{lapsed['id']}", headers=H, json={"subscription_end_date": days_from_now(-1)})
    # reactivate the car by hand so only the subscription hides it
    client.post(f"/admin/listings/sale/{hidden['id']}/status", headers=H, json={"status": "available"})

    r = client.get("/cars", params={"q": tag})
    assert r.status_code == 200
    assert [c["id"] for c in r.json()["items"]] == [shown["id"]]


def test_private_listings_are_public():
    H = _admin()
    tag = uuid.uuid4().hex[:8]
    _, user_id = register(client)
    car = create_listing(client, H, "sale", user_id=user_id, model=f"Private{tag}")
    r = client.get("/cars", params={"q": tag})
    assert [c["id"] for c in r.json()["items"]] == [car["id"]]


def test_boosted_cars_come_first():
    H = _admin()
    d = create_dealership(client, H)
    plain = create_listing(client, H, "sale", dealership_id=d["id"], price=100)
    boosted = create_listing(client, H, "sale", dealership_id=d["id"], price=50, is_boosted=True)
    r = client.get("/cars", params={"dealership_id": d["id"], "sort_by": "price", "order": "desc"})
    assert [c["id"] for c in r.json()["items"]] == [boosted["id"], plain["id"]]


def test_price_and_year_filters():
    H = _admin()
    d = create_dealership(client, H)
    cheap = create_listing(client, H, "sale", dealership_id=d["id"], price=5000, year=2015)
    create_listing(client, H, "sale", dealership_id=d["id"], price=50000, year=2023)
    r = client.get("/cars", params={"dealership_id": d["id"], "max_price": 10000, "year_max": 2016})
    assert [c["id"] for c in r.json()["items"]] == [cheap["id"]]


def test_details_count_views():
    H = _admin()
    d = create_dealership(client, H)
    car = create_listing(client, H, "sale", dealership_id=d["id"])
    client.get(f"/cars/{car['id']}")
    r = client.get(f"/cars/{car['id']}")
    assert r.json()["views"] == 2
    assert client.get(f"/cars/{uuid.uuid4()}").status_code == 404


def test_like_and_favorites():
    H = _admin()
    d = create_dealership(client, H)
    car = create_listing(client, H, "sale", dealership_id=d["id"])
    headers, _ = register(client)
    r = client.post(f"/cars/{car['id']}/like", headers=headers)
    assert r.json() == {"liked": True, "likes": 1}
    r = client.post(f"/cars/{car['id']}/like", headers=headers)
    assert r.json()["likes"] == 1
    favs = client.get("/favorites", headers=headers).json()
    assert [c["id"] for c in favs["items"]] == [car["id"]]
    r = client.delete(f"/cars/{car['id']}/like", headers=headers)
    assert r.json() == {"liked": False, "likes": 0}
    assert client.get("/favorites", headers=headers).json()["total"] == 0
    assert client.post(f"/cars/{car['id']}/like").status_code == 401


def test_dealership_directory():
    H = _admin()
    tag = uuid.uuid4().hex[:8]
    live = create_dealership(client, H, name=f"Live {tag}")
    lapsed = create_dealership(client, H, name=f"Lapsed {tag}")
    client.post(f"/admin/dealerships/{lapsed['id']}/subscription/end", headers=H)
    create_listing(client, H, "sale", dealership_id=live["id"])
    r = client.get("/dealerships", params={"q": tag})
    items = r.json()["items"]
    assert [d["id"] for d in items] == [live["id"]]
    assert items[0]["cars_listed"] == 1
    r = client.get(f"/dealerships/{live['id']}")
    assert len(r.json()["cars"]) == 1


def test_rentals_and_plates():
    H = _admin()
    d = create_dealership(client, H)
    rental = create_listing(client, H, "rent", dealership_id=d["id"], rental_period="weekly")
    plate = create_listing(client, H, "plates", dealership_id=d["id"])
    r = client.get("/rentals", params={"dealership_id": d["id"], "rental_period": "weekly"})
    assert [c["id"] for c in r.json()["items"]] == [rental["id"]]
    r = client.get("/plates", params={"q": "12345", "sort_by": "price", "page_size": 100})
    assert plate["id"] in [p["id"] for p in r.json()["items"]]
