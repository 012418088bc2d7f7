import inspect
import os
from collections.abc import AsyncGenerator

# Point the app at SQLite before any app module reads settings
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["APP_ENV"] = "development"

import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

import app.models  # noqa: E402,F401  (registers tables on Base.metadata)
from app.core.config import Settings  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.gateway.types import ProviderDescriptor  # noqa: E402


def make_settings(**overrides) -> Settings:
    """Settings isolated from the environment: no provider keys unless given."""
    values = {
        "openai_api_key": "",
        "anthropic_api_key": "",
        "google_api_key": "",
        "perplexity_api_key": "",
        "enabled_providers": "",
        "provider_rpm_limits": "",
        "batch_size": 10,
        "stagger_seconds": 0.0,
        "inter_batch_delay_seconds": 0.0,
        "default_retry_after_seconds": 60.0,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class SleepRecorder:
    """Drop-in for asyncio.sleep that records durations and returns immediately."""

    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class FakeInvoker:
    """Stands in for ProviderInvoker.

    ``handler(prompt_text, provider_id)`` returns a RawProviderResponse /
    payload mapping, or an exception instance to raise.
    """

    def __init__(self, handler):
        self.handler = handler
        self.calls: list[tuple[str, str]] = []

    async def invoke(self, prompt_text, provider_id, brand_name, competitor_names, use_web_search=True):
        self.calls.append((prompt_text, provider_id))
        result = self.handler(prompt_text, provider_id)
        if inspect.isawaitable(result):
            result = await result
        if isinstance(result, BaseException):
            raise result
        return result


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def two_providers() -> list[ProviderDescriptor]:
    return [
        ProviderDescriptor(id="openai", name="OpenAI", model="gpt-4o-mini"),
        ProviderDescriptor(id="perplexity", name="Perplexity", model="sonar"),
    ]


@pytest.fixture
async def db_session(tmp_path) -> AsyncGenerator[AsyncSession, None]:
    """Fresh SQLite database per test; NullPool keeps each connection short-lived."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session

    await engine.dispose()


@pytest.fixture
async def session_factory(tmp_path):
    """Session factory over a fresh SQLite database, for tests that need several sessions."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'api.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()
