import os
import tempfile
from datetime import date, timedelta
from pathlib import Path

# Settings are read at import time, so the test database must be chosen first
_DB_DIR = Path(tempfile.mkdtemp(prefix="agenda-tests-"))
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_DIR / 'test.db'}"
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["ENV"] = "test"
os.environ["SMTP_HOST"] = ""

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

import agenda.models  # noqa: E402,F401
from agenda.core.db import drop_db, init_db  # noqa: E402
from agenda.main import app  # noqa: E402

API = "/api/v1"
PASSWORD = "secret123"


def next_monday(weeks_ahead: int = 1) -> date:
    """A Monday at least ``weeks_ahead`` weeks away, clear of any cancellation window."""
    today = date.today()
    return today + timedelta(days=7 * weeks_ahead + (7 - today.weekday()) % 7)


@pytest_asyncio.fixture
async def database():
    await drop_db()
    await init_db()
    yield
    await drop_db()


@pytest_asyncio.fixture
async def client(database):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def signup(client):
    """Create an account and return its Authorization headers."""

    async def _signup(email: str, full_name: str | None = None) -> dict[str, str]:
        r = await client.post(
            f"{API}/auth/signup",
            json={"email": email, "password": PASSWORD, "full_name": full_name},
        )
        assert r.status_code == 201, r.text
        return {"Authorization": f"Bearer {r.json()['access_token']}"}

    return _signup


@pytest_asyncio.fixture
async def salon(client, signup):
    """A business open 09:00-17:00 every day with a 60-minute service, plus a customer."""
    owner = await signup("owner@example.com", "Olga Owner")
    customer = await signup("customer@example.com", "Carla Customer")

    r = await client.post(
        f"{API}/businesses",
        json={"name": "Peluqueria Central", "description": "Cortes y color", "email": "salon@example.com"},
        headers=owner,
    )
    assert r.status_code == 201, r.text
    business = r.json()

    week = [
        {"day_of_week": day, "start_time": "09:00", "end_time": "17:00", "is_closed": False}
        for day in range(7)
    ]
    r = await client.put(f"{API}/businesses/{business['id']}/hours", json={"days": week}, headers=owner)
    assert r.status_code == 200, r.text

    r = await client.post(
        f"{API}/businesses/{business['id']}/services",
        json={"name": "Corte", "duration": 60, "price": 25.0},
        headers=owner,
    )
    assert r.status_code == 201, r.text
    service = r.json()

    return {
        "owner": owner,
        "customer": customer,
        "business": business,
        "service": service,
    }
