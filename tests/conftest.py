"""
Shared fixtures: a file-backed SQLite store per test and cloud payload builders.
"""

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

from edge_hub.core.database import init_db


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """Async engine over a temporary SQLite file with all tables created."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'hub.db'}")
    await init_db(bind=engine)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def content_payload():
    """Build a cloud content item."""
    def _build(cloud_id, updated_at="2024-01-10T12:00:00.000Z", **overrides):
        item = {
            "id": cloud_id,
            "title": f"Story {cloud_id}",
            "description": "A short story",
            "htmlContent": f"<p>Story {cloud_id}</p>",
            "language": "en",
            "createdAt": "2024-01-01T00:00:00.000Z",
            "updatedAt": updated_at,
        }
        item.update(overrides)
        return item
    return _build


@pytest.fixture
def device_payload():
    """Build a cloud device record."""
    def _build(device_code, **overrides):
        item = {
            "id": f"cloud-{device_code}",
            "deviceCode": device_code,
            "hubId": "HUB-TEST",
            "name": f"Tablet {device_code}",
            "status": "pending",
        }
        item.update(overrides)
        return item
    return _build


@pytest.fixture
def student_payload():
    """Build a cloud student record."""
    def _build(student_code, **overrides):
        item = {
            "id": f"cloud-{student_code}",
            "studentCode": student_code,
            "hubId": "HUB-TEST",
            "firstName": "Ada",
            "lastName": "Lovelace",
            "grade": "5",
            "age": 10,
            "status": "active",
        }
        item.update(overrides)
        return item
    return _build
