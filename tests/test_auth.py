from fastapi.testclient import TestClient

from fleetmarket.main import app
from .utils import bearer, dev_login, unique_email


client = TestClient(app)


def test_register_login_me():
    email = unique_email("auth")
    r = client.post("/auth/register", json={"email": email, "password": "secret123", "name": "Rana", "phone_number": "0933555666"})
    assert r.status_code == 200, r.text
    r = client.post("/auth/login", json={"email": email.upper(), "password": "secret123"})
    assert r.status_code == 200
    me = client.get("/auth/me", headers=bearer(r.json()["access_token"])).json()
    assert me["email"] == email
    assert me["role"] == "user"
    assert me["status"] == "active"


def test_register_rejects_duplicates_and_bad_phone():
    email = unique_email("dup")
    assert client.post("/auth/register", json={"email": email, "password": "secret123"}).status_code == 200
    r = client.post("/auth/register", json={"email": email, "password": "secret123"})
    assert r.status_code == 400
    assert r.json()["detail"] == "email_taken"
    r = client.post("/auth/register", json={"email": unique_email(), "password": "secret123", "phone_number": "12ab"})
    assert r.status_code == 400
    assert r.json()["detail"] == "invalid_phone"


def test_login_wrong_password():
    email = unique_email("pw")
    client.post("/auth/register", json={"email": email, "password": "secret123"})
    r = client.post("/auth/login", json={"email": email, "password": "nope-nope"})
    assert r.status_code == 401
    assert r.json()["detail"] == "invalid_credentials"


def test_missing_and_invalid_tokens():
    assert client.get("/auth/me").status_code == 401
    r = client.get("/auth/me", headers=bearer("garbage"))
    assert r.status_code == 401
    assert r.json()["detail"] == "Invalid token"


def test_dev_login_accounts():
    me = client.get("/auth/me", headers=dev_login(client, "dealer")).json()
    assert me["role"] == "dealer"
    assert me["dealership_id"]
    assert client.get("/auth/me", headers=dev_login(client, "admin")).json()["role"] == "admin"
    r = client.post("/auth/dev_login", json={"username": "admin", "password": "wrong"})
    assert r.status_code == 401


def test_admin_routes_need_admin_role():
    user = dev_login(client, "user")
    r = client.get("/admin/users", headers=user)
    assert r.status_code == 403
    assert r.json()["detail"] == "Admin role required"
    r = client.get("/dealer/profile", headers=user)
    assert r.status_code == 403
