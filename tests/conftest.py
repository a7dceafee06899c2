import pytest
from fastapi.testclient import TestClient

from task_api.config import Settings
from task_api.db import Database
from task_api.main import create_app


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'tasks.sqlite3'}",
        db_connect_retries=1,
        db_retry_delay=0,
    )


@pytest.fixture
def client(settings):
    app = create_app(settings)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
async def database(settings):
    db = Database(settings)
    await db.connect()
    try:
        yield db
    finally:
        await db.close()


@pytest.fixture
async def session(database):
    async with database.session() as s:
        yield s
