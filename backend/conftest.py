"""Shared fixtures: a throwaway SQLite file database and authenticated clients.

The environment is set before anything under `app` is imported, because
settings and the engine are built at import time.
"""
import os
import shutil
import tempfile

_DB_DIR = tempfile.mkdtemp(prefix="billing-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["TELEGRAM_BOT_TOKEN"] = ""
os.environ["TELEGRAM_ADMIN_CHAT_IDS"] = ""
os.environ["TELEGRAM_BOT_POLLING"] = "false"
os.environ["STOCK_MONITOR_ENABLED"] = "false"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.core.security import create_access_token, get_password_hash  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.db.session import SessionLocal, engine  # noqa: E402
from app.main import app  # noqa: E402
from app.models import Product, Supplier, User  # noqa: E402
from app.models.user import UserRole  # noqa: E402

PASSWORD = "Secret123!"


def pytest_sessionfinish(session, exitstatus):
    engine.dispose()
    shutil.rmtree(_DB_DIR, ignore_errors=True)


@pytest.fixture(autouse=True)
def fresh_tables():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="session")
def password_hash():
    # bcrypt is slow; hash once per run
    return get_password_hash(PASSWORD)


def _make_user(db, password_hash, role, email, is_active=True) -> User:
    user = User(name=role.title(), email=email, hashed_password=password_hash, role=role, is_active=is_active)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def admin(db, password_hash):
    return _make_user(db, password_hash, UserRole.ADMIN, "admin@example.com")


@pytest.fixture
def pharmacist(db, password_hash):
    return _make_user(db, password_hash, UserRole.PHARMACY, "pharmacy@example.com")


@pytest.fixture
def staff(db, password_hash):
    return _make_user(db, password_hash, UserRole.STAFF, "staff@example.com")


def _auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(str(user.id))}"}


@pytest.fixture
def client():
    # No context manager: the lifespan (timer, bot, admin bootstrap) stays off
    return TestClient(app)


@pytest.fixture
def supplier(db):
    s = Supplier(name="Sun Pharma", phone="+91 98200 11111")
    db.add(s)
    db.commit()
    db.refresh(s)
    return s


@pytest.fixture
def dolo(db, supplier):
    p = Product(
        sku="DOLO-650MG-TAB",
        brand="Dolo",
        generic="Paracetamol",
        form="TAB",
        strength="650mg",
        schedule="OTC",
        gst_percent=12,
        mrp=100,
        selling_price=90,
        stock=5,
        min_stock=10,
        supplier_id=supplier.id,
    )
    db.add(p)
    db.commit()
    db.refresh(p)
    return p


@pytest.fixture
def auth_headers():
    return _auth_headers
