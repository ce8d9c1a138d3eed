"""Service test fixtures - async DB, FastAPI test client and fake external clients.

Invariants:
    - Every test gets a fresh in-memory SQLite database
    - get_db and every external-client dependency overridden on the app
    - db_manager patched for work that bypasses get_db (ingestion, answer persistence)

Design Decisions:
    - SQLite in-memory: fast, no external dependency, sufficient for route tests
    - Fakes injected through dependency_overrides, the same seam production uses
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import (
    AsyncSession, create_async_engine, async_sessionmaker,
)
from httpx import ASGITransport, AsyncClient

import briefly.infrastructure.database as db_module
from briefly.api import dependencies
from briefly.core.domain_types import PageText, UploadStatus
from briefly.db.base import Base
from briefly.infrastructure.database import get_db, DatabaseSessionManager
from briefly.main import app
from briefly.models.file import File
from briefly.models.user import User

from tests.services.db_helpers import USER_ID
from tests.services.fakes import (
    FakeChatModel, FakeEmbedder, FakeFetcher, FakeVectorIndex,
)


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def test_session_factory(test_engine):
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False,
    )


@pytest.fixture
async def test_db(test_session_factory):
    async with test_session_factory() as session:
        yield session


@pytest.fixture
def fake_db_manager(test_engine, test_session_factory):
    """Point db_manager at the test DB for background_session() users."""
    original_manager = db_module.db_manager
    fake_manager = DatabaseSessionManager.__new__(DatabaseSessionManager)
    fake_manager.engine = test_engine
    fake_manager._session_factory = test_session_factory
    db_module.db_manager = fake_manager
    yield fake_manager
    db_module.db_manager = original_manager


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def vector_index():
    return FakeVectorIndex()


@pytest.fixture
def fetcher():
    return FakeFetcher()


@pytest.fixture
def chat_model():
    """Empty by default; tests append streams via chat_model._streams."""
    return FakeChatModel([])


@pytest.fixture
async def client(
    test_session_factory, fake_db_manager,
    embedder, vector_index, fetcher, chat_model,
):
    """FastAPI test client with DB and external clients overridden."""
    async def override_get_db():
        async with test_session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[dependencies.get_embedder] = lambda: embedder
    app.dependency_overrides[dependencies.get_vector_index] = lambda: vector_index
    app.dependency_overrides[dependencies.get_document_fetcher] = lambda: fetcher
    app.dependency_overrides[dependencies.get_chat_model] = lambda: chat_model

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
def fake_pages(monkeypatch):
    """Replace PDF parsing with a fixed page list: fake_pages(["p1", "", ...])."""
    def _install(texts: list[str]):
        pages = [
            PageText(page_number=i, text=t)
            for i, t in enumerate(texts, start=1)
        ]
        monkeypatch.setattr(
            "briefly.infrastructure.pdf_loader.extract_pages",
            lambda data, context=None: pages,
        )
        return pages
    return _install


@pytest.fixture
async def seed_user(test_db):
    user = User(
        id=USER_ID, email="ada@example.com",
        first_name="Ada", last_name="Lovelace",
    )
    test_db.add(user)
    await test_db.commit()
    return user


@pytest.fixture
async def pro_user(test_db):
    user = User(
        id=USER_ID, email="ada@example.com",
        first_name="Ada", last_name="Lovelace",
        subscription_id="sub_123", price_id="plan_pro",
        current_period_end=datetime.now(timezone.utc) + timedelta(days=20),
    )
    test_db.add(user)
    await test_db.commit()
    return user


@pytest.fixture
async def seed_file(test_db, seed_user):
    """A fully ingested file owned by the test user."""
    file = File(
        key="key-abc", name="handbook.pdf", url="https://files.example/key-abc",
        user_id=seed_user.id, upload_status=UploadStatus.SUCCESS.value,
        page_count=3,
    )
    test_db.add(file)
    await test_db.commit()
    await test_db.refresh(file)
    return file


