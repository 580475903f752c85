"""
Shared fixtures for router tests

Each test gets a fresh SQLite database injected through
``app.dependency_overrides[get_db]``; the client is created without the
lifespan so no PostgreSQL server is needed.
"""

import asyncio
import os
import tempfile

# Must be set before src.api.config is imported
os.environ.setdefault(
    "SQLALCHEMY_DATABASE_URI",
    f"sqlite+aiosqlite:///{tempfile.mkdtemp(prefix='cps-tests-')}/app.db",
)
os.environ.setdefault("ENVIRONMENT", "test")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from src.api.core.database import Base, get_db
from src.api.core.security import get_password_hash
from src.api.main import app
import src.api.models  # noqa: F401
from src.api.models.user import User

ADMIN = {"name": "Admin Dinas", "email": "admin@cps.co.id", "password": "admin123"}
FARMER = {"name": "Pak Asep", "email": "asep@cps.co.id", "password": "asep1234"}

POINT = {"type": "Point", "coordinates": [106.8, -6.2]}
POLYGON = {
    "type": "Polygon",
    "coordinates": [[[106.8, -6.2], [106.81, -6.2], [106.81, -6.21], [106.8, -6.21], [106.8, -6.2]]],
}


def _enable_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


async def _create_schema(engine):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@pytest.fixture
def session_factory(tmp_path):
    """Session factory bound to an empty database"""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)
    event.listen(engine.sync_engine, "connect", _enable_foreign_keys)
    asyncio.run(_create_schema(engine))
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    asyncio.run(engine.dispose())


@pytest.fixture
def client(session_factory):
    """Test client whose requests use the test database"""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def run_in_db(session_factory):
    """Apply rows or statements to the test database outside the API"""

    async def _apply(*items):
        async with session_factory() as session:
            for item in items:
                if isinstance(item, Base):
                    session.add(item)
                else:
                    await session.execute(item)
            await session.commit()

    return lambda *items: asyncio.run(_apply(*items))


def register(client, **user):
    response = client.post("/api/users/register", json=user)
    assert response.status_code == 201, response.text
    return response.json()["data"]


def login(client, email, password):
    response = client.post("/api/users/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["data"]


def auth(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(client, run_in_db):
    """Administrator seeded straight into the database, as init_database.py does"""
    run_in_db(User(
        name=ADMIN["name"],
        email=ADMIN["email"],
        password_hash=get_password_hash(ADMIN["password"]),
        is_admin=True,
    ))
    return auth(login(client, ADMIN["email"], ADMIN["password"])["access_token"])


@pytest.fixture
def farmer(client):
    """Registered farmer with its bearer headers"""
    user = register(client, **FARMER)
    user["headers"] = auth(login(client, FARMER["email"], FARMER["password"])["access_token"])
    return user


@pytest.fixture
def district(client, admin_headers):
    response = client.post(
        "/api/districts",
        json={"district_code": "KEC001", "district_name": "Cisarua"},
        headers=admin_headers,
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]


@pytest.fixture
def farm(client, farmer, district):
    """Pending farm of 20 ha registered by the farmer"""
    response = client.post(
        "/api/farms",
        json={
            "district_id": district["id"],
            "farm_area": 20,
            "elevation": 1200,
            "planting_year": 2015,
            "input_coordinates": POINT,
        },
        headers=farmer["headers"],
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]


@pytest.fixture
def harvest(client, farm):
    """Harvest of 1000 kg at 25000 per kg on the 20 ha farm"""
    response = client.post(
        "/api/productivities",
        json={
            "farm_id": farm["id"],
            "harvest_date": "2024-06-01",
            "production_amount": 1000,
            "selling_price": 25000,
        },
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]
