import pytest

from nexadb import DatabaseManager
from nexadb.orm import Model

from support import RecordingConnection, create_tables


@pytest.fixture
async def db():
    """An in-memory SQLite manager with the test tables and models bound."""
    manager = DatabaseManager.from_url("sqlite:///:memory:")
    Model.use(manager)
    await create_tables(manager)

    yield manager

    manager.models.clear()
    await manager.close_all()
    Model._database = None


@pytest.fixture
def fake():
    return RecordingConnection()
