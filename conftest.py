# conftest.py
import os
import tempfile
from datetime import date
from decimal import Decimal

import pytest

# must be in place before tealedger.config is imported
_TMP = tempfile.mkdtemp(prefix="tealedger-tests-")
os.environ.setdefault("APP_SECRET", "test-secret")
os.environ["APP_ENV"] = "dev"
os.environ["DB_URL"] = f"sqlite:///{os.path.join(_TMP, 'tealedger.db')}"
os.environ["AUTO_ARREARS_DEFAULT"] = "false"
os.environ["DEDUCTION_ROUNDING_DEFAULT"] = "half_up"
os.environ["INVOICE_STRATEGY_DEFAULT"] = "per_kg"

from fastapi.testclient import TestClient  # noqa: E402

import tealedger.models  # noqa: E402,F401
from tealedger.db import Base, SessionLocal, engine  # noqa: E402
from tealedger.main import app  # noqa: E402
from tealedger.models.core import Customer, TeaGrade  # noqa: E402
from tealedger.services.collections import upsert_collection  # noqa: E402
from tealedger.services.rates import upsert_rate  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    s = SessionLocal()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def base_url():
    return ""


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def auth_headers(client, base_url):
    r = client.get(f"{base_url}/healthz")
    assert r.status_code == 200, f"/healthz failed: {r.text}"

    r = client.post(f"{base_url}/admin/dev-bootstrap")
    assert r.status_code == 200, f"/admin/dev-bootstrap failed: {r.text}"

    r = client.post(f"{base_url}/auth/login", params={"username": "admin", "password": "admin"})
    assert r.status_code == 200, f"/auth/login failed: {r.text}"
    tok = r.json()["access_token"]
    return {"Authorization": f"Bearer {tok}"}


@pytest.fixture
def rng_suffix():
    import random, string
    return "".join(random.choices(string.ascii_lowercase + string.digits, k=6))


# ── data helpers ─────────────────────────────────────────────────────────────

@pytest.fixture
def make_customer(db):
    def _make(book_number: str, name: str | None = None, transport_exempt: bool = False) -> Customer:
        c = Customer(book_number=book_number, grower_name_english=name or f"Grower {book_number}",
                     transport_exempt=transport_exempt)
        db.add(c)
        db.commit()
        return c
    return _make


@pytest.fixture
def march_rate(db):
    """grade1 200, grade2 180, 4% supply deduction, 5/kg transport, stamp 10."""
    row = upsert_rate(db, 2024, 3, grade1_rate=Decimal("200"), grade2_rate=Decimal("180"),
                      supply_deduction_percentage=Decimal("4.00"), transport_rate_per_kg=Decimal("5"),
                      stamp_fee=Decimal("10"))
    db.commit()
    return row


@pytest.fixture
def record(db):
    def _record(customer: Customer, day: date, grade: TeaGrade, kg) -> None:
        upsert_collection(db, customer, collection_date=day, weight_kg=Decimal(str(kg)), grade=grade)
        db.commit()
    return _record
