import os
import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from fleetmarket.config import settings
from fleetmarket.main import app
from .utils import car_form, days_from_now, dev_login, new_dealer


client = TestClient(app)


def _admin():
    return dev_login(client, "admin")


def _add_car(headers, **overrides):
    r = client.post("/dealer/inventory", headers=headers, json=car_form(**overrides))
    assert r.status_code == 200, r.text
    return r.json()


def test_profile_view_and_edit():
    headers, _, dealership_id = new_dealer(client, _admin())
    r = client.get("/dealer/profile", headers=headers)
    assert r.json()["id"] == dealership_id
    assert r.json()["subscription_status"] == "Active"
    r = client.patch("/dealer/profile", headers=headers, json={"location": "Aleppo", "phone": "0944777888"})
    assert r.status_code == 200
    assert r.json()["location"] == "Aleppo"
    r = client.patch("/dealer/profile", headers=headers, json={"phone": "nope"})
    assert r.status_code == 422


def test_new_cars_wait_for_review():
    headers, _, _ = new_dealer(client, _admin())
    car = _add_car(headers, is_boosted=True)
    assert car["status"] == "pending"
    assert car["is_boosted"] is False
    inv = client.get("/dealer/inventory", headers=headers).json()
    assert [c["id"] for c in inv["items"]] == [car["id"]]


def test_add_car_validation():
    headers, _, _ = new_dealer(client, _admin())
    r = client.post("/dealer/inventory", headers=headers, json=car_form(images=[], mileage=None))
    assert r.status_code == 422
    errors = r.json()["detail"]["errors"]
    assert set(errors) == {"images", "mileage"}


def test_too_many_images():
    headers, _, _ = new_dealer(client, _admin())
    images = [f"/media/public/cars/x/{i}.jpg" for i in range(settings.MAX_LISTING_IMAGES + 1)]
    r = client.post("/dealer/inventory", headers=headers, json=car_form(images=images))
    assert r.status_code == 422
    assert "images" in r.json()["detail"]["errors"]


def test_expired_dealer_cannot_list():
    H = _admin()
    headers, _, dealership_id = new_dealer(client, H)
    client.patch(f"/admin/dealerships/{dealership_id}", headers=H, json={"subscription_end_date": days_from_now(-1)})
    r = client.post("/dealer/inventory", headers=headers, json=car_form())
    assert r.status_code == 403
    assert r.json()["detail"] == "subscription_expired"
    assert client.get("/dealer/profile", headers=headers).json()["subscription_status"] == "Expired"


def test_dealer_cannot_touch_other_inventory():
    H = _admin()
    a, _, _ = new_dealer(client, H)
    b, _, _ = new_dealer(client, H)
    car = _add_car(a)
    assert client.patch(f"/dealer/inventory/{car['id']}", headers=b, json={"price": 1}).status_code == 403
    assert client.delete(f"/dealer/inventory/{car['id']}", headers=b).status_code == 403
    assert client.patch(f"/dealer/inventory/{uuid.uuid4()}", headers=a, json={"price": 1}).status_code == 404


def test_edit_and_delete_car():
    headers, _, _ = new_dealer(client, _admin())
    car = _add_car(headers)
    r = client.patch(f"/dealer/inventory/{car['id']}", headers=headers, json={"price": 14500, "description": "One owner"})
    assert r.json()["price"] == 14500
    assert r.json()["description"] == "One owner"
    assert client.delete(f"/dealer/inventory/{car['id']}", headers=headers).status_code == 200
    assert client.get("/dealer/inventory", headers=headers).json()["total"] == 0


def test_mark_sold_and_sales_history():
    headers, _, _ = new_dealer(client, _admin())
    car = _add_car(headers, bought_price=10000, date_bought="2024-01-01T00:00:00Z")
    other = _add_car(headers, bought_price=5000, date_bought="2024-02-01T00:00:00")
    r = client.post(f"/dealer/inventory/{car['id']}/sold", headers=headers, json={"sold_price": 12500, "date_sold": "2024-03-11T00:00:00Z", "buyer_name": "Sami"})
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "sold"
    client.post(f"/dealer/inventory/{other['id']}/sold", headers=headers, json={"sold_price": 4000, "date_sold": "2024-03-20T00:00:00"})
    r = client.post(f"/dealer/inventory/{car['id']}/sold", headers=headers, json={"sold_price": 1})
    assert r.status_code == 400

    sales = client.get("/dealer/sales", headers=headers).json()
    assert sales["total_revenue"] == 16500
    assert sales["total_profit"] == 1500
    by_id = {s["id"]: s for s in sales["sales"]}
    assert by_id[car["id"]]["profit"] == 2500
    assert by_id[car["id"]]["days_on_market"] == 70
    assert sales["monthly"] == [{"month": "2024-03", "count": 2, "revenue": 16500.0, "profit": 1500.0}]


def test_clip_submission_rules():
    headers, _, _ = new_dealer(client, _admin())
    car = _add_car(headers)
    r = client.post("/dealer/autoclips", headers=headers, json={"title": "Tour"})
    assert r.status_code == 422
    assert set(r.json()["detail"]["errors"]) == {"video_url", "car_id"}
    body = {"title": "Tour", "video_url": "/media/public/autoclips/x/a.mp4", "car_id": car["id"]}
    r = client.post("/dealer/autoclips", headers=headers, json=body)
    assert r.status_code == 200
    assert r.json()["thumbnail_url"] == body["video_url"]
    r = client.post("/dealer/autoclips", headers=headers, json=body)
    assert r.status_code == 400
    assert r.json()["detail"] == "This car already has an AutoClip."


def test_resubmit_rejected_clip():
    H = _admin()
    headers, _, _ = new_dealer(client, H)
    car = _add_car(headers)
    clip = client.post("/dealer/autoclips", headers=headers, json={"title": "Tour", "video_url": "/media/public/autoclips/x/a.mp4", "car_id": car["id"]}).json()
    r = client.post(f"/dealer/autoclips/{clip['id']}/resubmit", headers=headers)
    assert r.status_code == 400
    client.post(f"/admin/autoclips/{clip['id']}/reject", headers=H, json={"reason": "Too dark"})
    r = client.post(f"/dealer/autoclips/{clip['id']}/resubmit", headers=headers)
    assert r.status_code == 200
    assert r.json()["status"] == "under_review"
    assert r.json()["rejection_reason"] is None
    mine = client.get("/dealer/autoclips", headers=headers, params={"status": "under_review"}).json()
    assert [c["id"] for c in mine["items"]] == [clip["id"]]


def _clip_with_video(headers):
    car = _add_car(headers)
    up = client.post("/media/autoclips", headers={**headers, "Content-Type": "video/mp4"}, params={"filename": "tour.mp4"}, content=b"\x00\x00\x00\x18ftypmp42")
    assert up.status_code == 200, up.text
    video = up.json()
    clip = client.post("/dealer/autoclips", headers=headers, json={"title": "Tour", "video_url": video["url"], "car_id": car["id"]}).json()
    return clip, os.path.join(settings.MEDIA_ROOT, "autoclips", video["path"])


def test_delete_clip_removes_video():
    headers, _, _ = new_dealer(client, _admin())
    clip, path = _clip_with_video(headers)
    assert os.path.isfile(path)
    assert client.delete(f"/dealer/autoclips/{clip['id']}", headers=headers).status_code == 200
    assert not os.path.exists(path)
    assert client.get("/dealer/autoclips", headers=headers).json()["total"] == 0


def test_failed_clip_delete_keeps_video(monkeypatch):
    headers, _, _ = new_dealer(client, _admin())
    clip, path = _clip_with_video(headers)

    def broken_commit(self):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(Session, "commit", broken_commit)
    with pytest.raises(RuntimeError):
        client.delete(f"/dealer/autoclips/{clip['id']}", headers=headers)
    monkeypatch.undo()
    assert os.path.isfile(path)
    items = client.get("/dealer/autoclips", headers=headers).json()["items"]
    assert [c["id"] for c in items] == [clip["id"]]


def test_dealer_can_delete_own_logo_file():
    admin = _admin()
    headers, _, dealership_id = new_dealer(client, admin)
    other, _, _ = new_dealer(client, admin)
    r = client.put(
        "/dealer/profile/logo",
        headers={**headers, "Content-Type": "image/png"},
        params={"filename": "logo.png"},
        content=b"\x89PNG fake",
    )
    assert r.status_code == 200, r.text
    path = r.json()["logo"].split("/logos/", 1)[1]
    assert path.startswith(f"{dealership_id}/")
    assert client.delete(f"/media/logos/{path}", headers=other).status_code == 403
    assert client.delete(f"/media/logos/{path}", headers=headers).status_code == 200
    assert not os.path.exists(os.path.join(settings.MEDIA_ROOT, "logos", path))


def test_non_dealer_is_refused():
    r = client.get("/dealer/inventory", headers=dev_login(client, "user"))
    assert r.status_code == 403
    assert r.json()["detail"] == "Dealer role required"
