from typing import Dict, List
from unittest.mock import patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from config import settings
from database import Base, get_db
from main import app
from routers import rate_limit
from services.session_token import create_session_token


PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


class FakeQueueJob:
    def __init__(self, job_id: str):
        self.id = job_id
        self.origin = "enrichment_jobs"


def auth_header(user_id: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_session_token(user_id, f'{user_id}@example.com')['token']}"}


@pytest.fixture(autouse=True)
def reset_local_rate_limit_counters():
    """Keep in-memory rate-limit state isolated between tests."""
    previous = getattr(app.state, "disable_rate_limits", False)
    app.state.disable_rate_limits = True
    rate_limit._local_counters.clear()
    yield
    rate_limit._local_counters.clear()
    app.state.disable_rate_limits = previous


@pytest_asyncio.fixture
async def session_maker(tmp_path):
    db_path = tmp_path / "collections.db"
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    with (
        patch("services.enrichment.async_session_maker", maker),
        patch("services.enrichment_queue.async_session_maker", maker),
        patch.object(settings, "ATTACHMENT_STORAGE_DIR", str(tmp_path / "attachments")),
        patch.object(settings, "PUBLIC_BASE_URL", "http://www.example.com"),
    ):
        yield maker

    await engine.dispose()


@pytest.fixture
def enqueued_jobs():
    """Capture enrichment jobs instead of talking to Redis."""
    jobs: List = []

    def _capture(job):
        jobs.append(job)
        return FakeQueueJob(f"enrich:{job.item_data_id}")

    with patch("services.collection_items.enqueue_enrichment_job", side_effect=_capture):
        yield jobs


@pytest_asyncio.fixture
async def api_client(session_maker, enqueued_jobs):
    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.pop(get_db, None)
