import os
import tempfile

# Settings are read at import time, so they must be in place first.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SEED_SAMPLE_DATA"] = "false"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["FEDERATED_SECRET"] = "test-federated-secret"
os.environ["FEDERATED_ALLOWED_ORIGINS"] = "http://localhost:8000"
os.environ["MEDIA_ROOT"] = tempfile.mkdtemp(prefix="clothesshare-media-")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel

import models  # noqa: F401
from db import get_session, make_engine
from identity import IdentityGateway, sign_federated_assertion
from loader import SessionContext, StateLoader
from main import app
from models import Item
from schemas import NGORequestCreate, SignUpData
from store import DocumentStore, now_ms

ADMIN_EMAIL = "admin@clothesshare.test"
ADMIN_PASSWORD = "admin-pass"


@pytest.fixture
def engine():
    engine = make_engine("sqlite://", poolclass=StaticPool)
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def store(session, tmp_path):
    return DocumentStore(session, media_root=str(tmp_path / "media"))


@pytest.fixture
def gateway(store):
    return IdentityGateway(store)


@pytest.fixture
def client(engine):
    def get_test_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = get_test_session
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin(gateway):
    return gateway.provision_admin(ADMIN_EMAIL, ADMIN_PASSWORD, "Site Admin")


def sign_up_data(role="customer", email="user@example.com", **overrides):
    fields = {
        "role": role,
        "name": "Test User",
        "email": email,
        "phone": "9876543210",
        "password": "secret1",
        "confirm_password": "secret1",
    }
    fields.update(overrides)
    return SignUpData(**fields)


def ngo_form(**overrides):
    fields = {
        "ngoName": "Helping Hands",
        "registrationNumber": "REG-1",
        "contactPerson": "Priya",
        "designation": "Director",
        "phone": "9876543210",
        "email": "contact@helping.org",
        "address": "Mumbai",
        "serviceAreas": "Mumbai",
        "description": "Clothes for all",
    }
    fields.update(overrides)
    return NGORequestCreate(**fields)


def make_item(store, item_id="item_1", status="approved", price=750, free_for_ngo=False, **overrides):
    fields = {
        "id": item_id,
        "name": "Denim Jacket",
        "type": "jacket",
        "size": "M",
        "gender": "unisex",
        "condition": "good",
        "original_price": price * 4,
        "price": price,
        "description": "Blue denim",
        "free_for_ngo": free_for_ngo,
        "donor": "Dana Donor",
        "donor_id": "donor_1",
        "status": status,
        "images": ["https://example.com/jacket.jpg"],
        "created_at": now_ms(),
    }
    fields.update(overrides)
    return store.items.create(Item(**fields)).unwrap()


def loaded_context(store, identity):
    ctx = SessionContext()
    StateLoader(store).handle_session_change(ctx, identity)
    return ctx


def federated_assertion(subject="google-123", email="fed@example.com", origin="http://localhost:8000", **claims):
    return sign_federated_assertion(
        {"subject": subject, "email": email, "name": "Fed User", "origin": origin, **claims}
    )


def register(client, role="customer", email="user@example.com"):
    response = client.post(
        "/register",
        json={
            "role": role,
            "name": "Test User",
            "email": email,
            "phone": "9876543210",
            "password": "secret1",
            "confirmPassword": "secret1",
        },
    )
    assert response.status_code == 200, response.text
    return response.json()["user"]


def login(client, email, password):
    response = client.post("/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["user"]
