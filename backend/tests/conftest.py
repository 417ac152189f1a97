import os
import tempfile
import uuid
from pathlib import Path

import pytest

# Point the app at a throwaway SQLite file before `campuseats` is imported.
_DB_DIR = Path(tempfile.mkdtemp(prefix="campuseats-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_DIR / 'test.db'}"
os.environ["ENV"] = "dev"

from fastapi.testclient import TestClient  # noqa: E402
from sqlmodel import Session  # noqa: E402

from campuseats.database import engine, create_db_and_tables, drop_db_and_tables  # noqa: E402
from campuseats.main import app  # noqa: E402
from campuseats.seed import seed_demo_data, ADMIN_PASSWORD, VENDOR_PASSWORD  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def reset_db():
    """Start every test session from a fresh, seeded schema."""
    drop_db_and_tables()
    create_db_and_tables()
    with Session(engine) as session:
        seed_demo_data(session)
    yield


@pytest.fixture(scope="session")
def client():
    return TestClient(app)


def _login(client, email, password):
    r = client.post('/auth/login', json={'email': email, 'password': password})
    assert r.status_code == 200, r.text
    return {'Authorization': f"Bearer {r.json()['access_token']}"}


@pytest.fixture
def admin_headers(client):
    return _login(client, 'admin@mec.edu', ADMIN_PASSWORD)


@pytest.fixture
def vendor_headers(client):
    """Headers for the Campus Canteen operator."""
    return _login(client, 'canteen@mec.edu', VENDOR_PASSWORD)


@pytest.fixture
def other_vendor_headers(client):
    return _login(client, 'quickbites@mec.edu', VENDOR_PASSWORD)


@pytest.fixture
def canteen(client):
    """The Campus Canteen vendor record and its menu."""
    vendor = next(v for v in client.get('/vendors').json() if v['shop_name'] == 'Campus Canteen')
    menu = client.get(f"/vendors/{vendor['id']}/menu").json()
    return {'vendor': vendor, 'menu': {m['name']: m for m in menu}}


@pytest.fixture
def make_student(client, admin_headers):
    """Factory creating a fresh campus student, optionally topped up."""
    def _make(balance: float = 0.0):
        suffix = uuid.uuid4().hex[:10]
        email = f"s{suffix}@mec.edu"
        rfid = f"RF{suffix}"
        r = client.post('/auth/signup', json={
            'email': email,
            'password': 'pw123456',
            'full_name': 'Test Student',
            'phone_number': '9000000000',
            'is_campus_student': True,
            'rfid_number': rfid,
        })
        assert r.status_code == 200, r.text
        if balance:
            c = client.post('/rfid/credit', json={'rfid_number': rfid, 'amount': balance}, headers=admin_headers)
            assert c.status_code == 200, c.text
        headers = _login(client, email, 'pw123456')
        return {'email': email, 'rfid': rfid, 'headers': headers, 'id': r.json()['user']['id']}
    return _make
