import sys
from pathlib import Path as _Path
sys.path.insert(0, str(_Path(__file__).resolve().parents[1] / "src"))

from typing import Dict

import pytest
from fastapi.testclient import TestClient

from storefront.app import create_app
from storefront.auth.passwords import PasswordHasher
from storefront.config import load_settings
from storefront.security.csrf import CSRF_HEADER_NAME
from storefront.store.users import MemoryUserStore

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "Adm1nPassword"

TEST_ENV: Dict[str, str] = {
    "APP_ENV": "test",
    "MONGODB_URI": "mongodb://localhost:27017",
    "JWT_SECRET": "test-secret",
    "STRIPE_SECRET_KEY": "sk_test_x",
    "CLOUDINARY_NAME": "cloud",
    "CLOUDINARY_API_KEY": "key",
    "CLOUDINARY_SECRET_KEY": "secret",
    "ADMIN_EMAIL": ADMIN_EMAIL,
    "ADMIN_PASSWORD": ADMIN_PASSWORD,
}


@pytest.fixture()
def env() -> Dict[str, str]:
    return dict(TEST_ENV)


@pytest.fixture()
def settings(env):
    return load_settings(env)


@pytest.fixture()
def store() -> MemoryUserStore:
    return MemoryUserStore()


@pytest.fixture()
def hasher() -> PasswordHasher:
    # Cheap parameters; the work factor itself is covered in test_passwords.
    return PasswordHasher(1, memory_kib=1024)


@pytest.fixture()
def app(settings, store, hasher):
    return create_app(settings, store=store, hasher=hasher)


@pytest.fixture()
def bare_client(app):
    """Client without a CSRF token."""
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def client(bare_client):
    """Client that fetched a CSRF token and echoes it on every request, like the frontend."""
    r = bare_client.get("/api/csrf-token")
    assert r.status_code == 200
    bare_client.headers[CSRF_HEADER_NAME] = r.json()["csrfToken"]
    return bare_client


def register(client, name="Jane Doe", email="jane@example.com", password="Passw0rdX"):
    return client.post("/api/user/register", json={"name": name, "email": email, "password": password})
