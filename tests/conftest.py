import pytest_asyncio

from pr_sheriff.storage.database import Database


@pytest_asyncio.fixture
async def database():
    """A fresh in-memory database with every table created."""
    db = Database("sqlite+aiosqlite:///:memory:")
    await db.create_all()
    yield db
    await db.close()
