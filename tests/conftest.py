import os
import tempfile
from pathlib import Path

_tmpdir = Path(tempfile.mkdtemp(prefix="cafehoppr_test_"))
_db_path = _tmpdir / "test.db"

os.environ.setdefault("DATABASE_URL", f"sqlite:///{_db_path.as_posix()}")
os.environ.setdefault("APP_SECRET_KEY", "test-secret-key")
os.environ.setdefault("DEFAULT_ACCESS_CODE", "let-me-in")
os.environ.setdefault("UPLOAD_DIR", str(_tmpdir / "uploads"))
os.environ.setdefault("STAGING_DIR", str(_tmpdir / "staging"))
os.environ.setdefault("LOG_DIR", str(_tmpdir / "logs"))
os.environ.setdefault("API_BASE_URL", "http://api.test")
os.environ.setdefault("BACKEND", "api")

import pytest
from fastapi.testclient import TestClient

from cafehoppr.core.rate_limit import limiter
from cafehoppr.core.security import get_password_hash
from cafehoppr.db.base import Base
from cafehoppr.db.session import engine, SessionLocal
from cafehoppr.main import create_app
from cafehoppr.models.locations import Location
from cafehoppr.models.users import AdminUser

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "password123"
ADMIN_HOBBY = "climbing"


@pytest.fixture()
def clean_db():
    limiter.reset()

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db(clean_db):
    session = SessionLocal()
    try:
        yield session
        session.commit()
    finally:
        session.close()


@pytest.fixture()
def client(clean_db):
    app = create_app()
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def admin_user(db):
    admin = AdminUser(
        email=ADMIN_EMAIL,
        password_hash=get_password_hash(ADMIN_PASSWORD),
        hobby_answer_hash=get_password_hash(ADMIN_HOBBY),
    )
    db.add(admin)
    db.commit()
    return admin


@pytest.fixture()
def admin_token(client, admin_user):
    r = client.post(
        "/auth/login",
        json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD, "hobby_answer": ADMIN_HOBBY},
    )
    assert r.status_code == 200, r.text
    return r.json()["data"]["access_token"]


@pytest.fixture()
def contributor_token(client):
    r = client.post("/access-code/verify", json={"code": "let-me-in"})
    assert r.status_code == 200, r.text
    return r.json()["data"]["access_token"]


@pytest.fixture()
def location(db):
    loc = Location(name="Jakarta")
    db.add(loc)
    db.commit()
    return loc


def auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def cafe_payload(location_id: str | None = None, **overrides) -> dict:
    payload = {
        "name": "Kopi Kenangan",
        "cafe_photo": "https://images.example.com/kopi.jpg",
        "cafe_location_link": "https://maps.google.com/?q=Kopi+Kenangan",
        "operational_days": ["MON", "TUE", "WED"],
        "opening_hour": "08:00",
        "closing_hour": "18:00",
        "location_id": location_id,
        "contributor_name": "Budi",
        "review": {
            "review": "Fast wifi, plenty of sockets",
            "price": 8,
            "wifi": 6,
            "seat_comfort": 0,
            "electricity_socket": 0,
        },
    }
    payload.update(overrides)
    return payload
