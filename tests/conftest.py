import mongomock
import pytest
from fastapi.testclient import TestClient

import database
from main import app


@pytest.fixture
def db():
    mock = mongomock.MongoClient()["storefront_test"]
    database.use_database(mock)
    yield mock
    database.use_database(None)


@pytest.fixture
def client(db):
    with TestClient(app) as c:
        yield c


def signup(client, email="jane@example.com", password="secret123", full_name="Jane Smith"):
    return client.post("/api/auth/signup", json={"email": email, "password": password, "full_name": full_name})


def token_for(client, email, password):
    res = client.post("/api/auth/token", data={"username": email, "password": password})
    assert res.status_code == 200, res.text
    return {"Authorization": f"Bearer {res.json()['access_token']}"}


@pytest.fixture
def seeded(client):
    # seeding wipes every collection, so account fixtures build on it
    res = client.post("/api/seed")
    assert res.status_code == 200, res.text
    return res.json()


@pytest.fixture
def admin_headers(client, seeded):
    return token_for(client, "admin@example.com", "admin123")


@pytest.fixture
def user_headers(client, seeded):
    signup(client)
    return token_for(client, "jane@example.com", "secret123")


def product_by_slug(client, slug):
    res = client.get(f"/api/products/{slug}")
    assert res.status_code == 200, res.text
    return res.json()
