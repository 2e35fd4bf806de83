import mongomock
import pytest
from fastapi.testclient import TestClient
from passlib.context import CryptContext

import auth
import database


@pytest.fixture(autouse=True)
def fast_hashing(monkeypatch):
    monkeypatch.setattr(auth, "pwd_context", CryptContext(schemes=["bcrypt"], bcrypt__rounds=4))


@pytest.fixture
def db(monkeypatch):
    mock = mongomock.MongoClient()["boldserve_test"]
    monkeypatch.setattr(database, "db", mock)
    return mock


@pytest.fixture
def client(db, tmp_path, monkeypatch):
    import main

    monkeypatch.setattr(main, "UPLOAD_DIR", str(tmp_path))
    with TestClient(main.app) as c:
        yield c


@pytest.fixture
def add_service(db):
    def _add(product_name="Spiral Notebook", price=100, category="Office Stationaries", sub_category="Notebooks & Papers", **extra):
        doc = {
            "productName": product_name,
            "category": category,
            "subCategory": sub_category,
            "price": price,
            "images": [],
            "isAvailable": True,
            **extra,
        }
        doc["_id"] = db["service"].insert_one(doc).inserted_id
        return doc

    return _add


@pytest.fixture
def register(client):
    def _register(email="asha@example.com", password="secret123", full_name="Asha Rao", mobile="9876543210"):
        resp = client.post(
            "/api/users/register",
            json={"fullName": full_name, "email": email, "password": password, "mobile": mobile},
        )
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _register


@pytest.fixture
def user_headers(register):
    return {"Authorization": f"Bearer {register()['token']}"}


@pytest.fixture
def admin_headers(client):
    resp = client.post("/api/admin/login", json={"userId": "Admin", "password": "Admin123"})
    assert resp.status_code == 200, resp.text
    return {"Authorization": resp.json()["token"]}
