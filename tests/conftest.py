import pytest
import pytest_asyncio

from telemetry_backend.db import sessionmanager
from tests.helpers import create_point_in_db


DB_TESTING_URI = "sqlite+aiosqlite://"

SYSTEM_ID = 1


@pytest_asyncio.fixture(scope="function", autouse=True)
async def create_tables():
    if sessionmanager._engine is None:
        sessionmanager.init(DB_TESTING_URI)
    async with sessionmanager.connect() as connection:
        await sessionmanager.drop_all(connection)
        await sessionmanager.create_all(connection)
    yield
    await sessionmanager.close()


@pytest_asyncio.fixture
async def db_session():
    """Provide a database session for tests."""
    async with sessionmanager.session() as session:
        yield session


@pytest.fixture
def system_id():
    return SYSTEM_ID


@pytest_asyncio.fixture
async def power_point(db_session):
    """Plain instantaneous power point."""
    return await create_point_in_db(
        db_session, system_id=SYSTEM_ID, origin_id="inverter", origin_sub_id="solarW"
    )


@pytest_asyncio.fixture
async def counter_point(db_session):
    """Lifetime energy counter (delta transform)."""
    return await create_point_in_db(
        db_session,
        system_id=SYSTEM_ID,
        origin_id="inverter",
        origin_sub_id="solarWhTotal",
        metric_type="energy",
        metric_unit="Wh",
        transform="d",
    )


@pytest_asyncio.fixture
async def energy_point(db_session):
    """Interval energy point summed into delta."""
    return await create_point_in_db(
        db_session,
        system_id=SYSTEM_ID,
        origin_id="E1",
        origin_sub_id="import",
        metric_type="energy",
        metric_unit="kWh",
    )
