# tests/conftest.py
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.models import Base, Property


@pytest.fixture
async def engine():
    """
    Fresh in-memory DB per test. StaticPool makes all connections share the same
    in-memory database for the lifetime of this engine fixture.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def async_session_maker(engine):
    return async_sessionmaker(engine, expire_on_commit=False, autoflush=True)


@pytest.fixture
async def session(async_session_maker) -> AsyncSession:
    async with async_session_maker() as s:
        yield s


@pytest.fixture
def file_db_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'homekey-test.db'}"


@pytest.fixture
async def file_engine(file_db_url):
    """
    File-backed DB with a real connection per session, for tests where
    several sessions are open at once.
    """
    engine = create_async_engine(file_db_url, connect_args={"timeout": 30})
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def gran_via() -> dict:
    return {
        "street": "Gran Via",
        "city": "Barcelona",
        "zip": "08014",
        "country": "Spain",
        "coordinates": [2.17, 41.38],
    }


LEGACY_EMBEDDED = [
    {
        "title": "Sunny flat",
        "address": {
            "street": "Gran Via",
            "city": "Barcelona",
            "state": "Catalonia",
            "zipCode": "08014",
            "country": "Spain",
            "coordinates": {"lat": 41.38, "lng": 2.17},
            "showAddressNumber": False,
        },
    },
    {
        "title": "Room in shared flat",
        "address": {
            "street": "gran via ",
            "city": "Barcelona",
            "state": "Catalonia",
            "zipCode": "08014",
            "country": "Spain",
            "coordinates": {"lat": 41.381, "lng": 2.171},
        },
    },
    {
        "title": "Craftsman bungalow",
        "address": {
            "street": "123 Main St",
            "city": "Birmingham",
            "state": "MI",
            "zipCode": "48009",
            "coordinates": {"type": "Point", "coordinates": [-83.2113, 42.5467]},
        },
    },
]


async def seed_legacy(async_session_maker, rows) -> list[int]:
    ids: list[int] = []
    async with async_session_maker() as session:
        for row in rows:
            p = Property(title=row["title"], embedded_address=row["address"])
            session.add(p)
            await session.flush()
            ids.append(p.id)
        await session.commit()
    return ids


@pytest.fixture
async def legacy_properties(async_session_maker) -> list[int]:
    return await seed_legacy(async_session_maker, LEGACY_EMBEDDED)
