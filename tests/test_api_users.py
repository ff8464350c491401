import uuid

from fastapi.testclient import TestClient

from fleetmarket.main import app
from .utils import dealership_form, dev_login, new_dealer, register


client = TestClient(app)


def _admin():
    return dev_login(client, "admin")


def _me(H):
    return client.get("/auth/me", headers=H).json()


def test_promote_to_dealer_creates_dealership():
    H = _admin()
    headers, user_id = register(client)
    r = client.post(f"/admin/users/{user_id}/role", headers=H, json={"role": "dealer", "dealership": dealership_form()})
    assert r.status_code == 200, r.text
    assert r.json()["role"] == "dealer"
    assert r.json()["dealership_id"]
    profile = client.get("/dealer/profile", headers=headers)
    assert profile.status_code == 200
    assert profile.json()["id"] == r.json()["dealership_id"]


def test_promote_to_dealer_needs_details():
    H = _admin()
    _, user_id = register(client)
    r = client.post(f"/admin/users/{user_id}/role", headers=H, json={"role": "dealer"})
    assert r.status_code == 400
    assert r.json()["detail"] == "Dealership details are required to promote a user to dealer."
    r = client.post(f"/admin/users/{user_id}/role", headers=H, json={"role": "dealer", "dealership": {"name": "X"}})
    assert r.status_code == 422
    assert "location" in r.json()["detail"]["errors"]


def test_dealer_cannot_jump_to_admin():
    H = _admin()
    _, user_id, _ = new_dealer(client, H)
    r = client.post(f"/admin/users/{user_id}/role", headers=H, json={"role": "admin"})
    assert r.status_code == 400
    assert r.json()["detail"] == "Cannot change role from dealer to admin."


def test_demote_dealer_keeps_dealership_for_repromotion():
    H = _admin()
    _, user_id, dealership_id = new_dealer(client, H)
    r = client.post(f"/admin/users/{user_id}/role", headers=H, json={"role": "user"})
    assert r.json()["role"] == "user"
    assert r.json()["dealership_id"] == dealership_id
    r = client.post(f"/admin/users/{user_id}/role", headers=H, json={"role": "dealer"})
    assert r.status_code == 200
    assert r.json()["dealership_id"] == dealership_id


def test_admin_cannot_change_own_role_or_ban_self():
    H = _admin()
    admin_id = _me(H)["id"]
    r = client.post(f"/admin/users/{admin_id}/role", headers=H, json={"role": "user"})
    assert r.status_code == 400
    assert r.json()["detail"] == "You cannot change your own role."
    r = client.post(f"/admin/users/{admin_id}/ban", headers=H)
    assert r.status_code == 400


def test_ban_blocks_access_and_role_changes():
    H = _admin()
    headers, user_id = register(client)
    r = client.post(f"/admin/users/{user_id}/ban", headers=H)
    assert r.json()["status"] == "banned"
    r = client.get("/auth/me", headers=headers)
    assert r.status_code == 403
    assert r.json()["detail"] == "account_disabled"
    r = client.post(f"/admin/users/{user_id}/role", headers=H, json={"role": "admin"})
    assert r.status_code == 400
    assert r.json()["detail"] == "Cannot modify roles for banned or locked accounts."
    r = client.post(f"/admin/users/{user_id}/unban", headers=H)
    assert r.json()["status"] == "active"
    assert client.get("/auth/me", headers=headers).status_code == 200


def test_bulk_role_change_reports_per_user():
    H = _admin()
    _, a = register(client)
    _, b = register(client)
    _, c = register(client)
    client.post(f"/admin/users/{c}/ban", headers=H)
    missing = str(uuid.uuid4())
    r = client.post("/admin/users/bulk/role", headers=H, json={"ids": [a, b, c, missing], "role": "admin"})
    assert r.status_code == 200, r.text
    body = r.json()
    assert sorted(body["succeeded"]) == sorted([a, b])
    assert body["failed"][c] == "Cannot modify roles for banned or locked accounts."
    assert body["failed"][missing] == "User not found"


def test_bulk_role_cannot_promote_dealers():
    _, a = register(client)
    r = client.post("/admin/users/bulk/role", headers=_admin(), json={"ids": [a], "role": "dealer"})
    assert r.status_code == 400


def test_list_users_filters():
    H = _admin()
    tag = uuid.uuid4().hex[:8]
    _, a = register(client, name=f"Lina {tag}")
    _, b = register(client, name=f"Omar {tag}")
    client.post(f"/admin/users/{b}/ban", headers=H)
    r = client.get("/admin/users", headers=H, params={"q": tag, "sort_by": "name", "order": "asc"})
    assert [u["id"] for u in r.json()["items"]] == [a, b]
    r = client.get("/admin/users", headers=H, params={"q": tag, "status": "banned"})
    assert [u["id"] for u in r.json()["items"]] == [b]
    r = client.get("/admin/users", headers=H, params={"q": tag, "status": "active"})
    assert [u["id"] for u in r.json()["items"]] == [a]


def test_users_summary():
    body = client.get("/admin/users/summary", headers=_admin()).json()
    assert body["total"] >= body["active"]
    assert body["admins"] >= 1


def test_lookup_excludes_dealership_owners_and_clamps_limit():
    H = _admin()
    tag = uuid.uuid4().hex[:8]
    _, plain = register(client, name=f"Plain {tag}")
    headers, owner = register(client, name=f"Owner {tag}")
    client.post(f"/admin/users/{owner}/role", headers=H, json={"role": "dealer", "dealership": dealership_form()})
    r = client.get("/admin/users/lookup", headers=H, params={"q": tag, "limit": 1000, "offset": -5})
    body = r.json()
    assert [u["id"] for u in body["items"]] == [plain]
    assert body["limit"] == 100
    assert body["offset"] == 0
    assert body["total"] == 1
