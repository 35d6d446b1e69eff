# @TASK P0-T0.3 - Test configuration
# @TASK P3-T3.1 - In-memory mirror fixture
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from quillnote.config import Settings
from quillnote.dependencies import AppServices
from quillnote.mirror_gateway.memory import InMemoryMirror
from quillnote.schemas import UserRead
from quillnote.store.entity_store import EntityStore


@pytest.fixture
def settings() -> Settings:
    """Settings for a fresh in-memory store with a fast autosave and no retry delay."""
    return Settings(
        _env_file=None,
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        MIRROR_BACKEND="memory",
        MIRROR_MAX_ATTEMPTS=2,
        MIRROR_RETRY_DELAY_SECONDS=0.0,
        AUTOSAVE_DEBOUNCE_SECONDS=0.05,
        ENFORCE_OWNERSHIP=True,
    )


@pytest_asyncio.fixture(scope="function")
async def store(settings: Settings) -> AsyncGenerator[EntityStore, None]:
    """Provide an empty entity store; each test gets its own in-memory database."""
    entity_store = EntityStore.from_settings(settings)
    await entity_store.init_schema()
    yield entity_store
    await entity_store.dispose()


@pytest.fixture
def mirror_backend() -> InMemoryMirror:
    return InMemoryMirror(record_calls=True)


@pytest_asyncio.fixture(scope="function")
async def services(
    settings: Settings, store: EntityStore, mirror_backend: InMemoryMirror
) -> AsyncGenerator[AppServices, None]:
    """Provide the full service container wired to the test store and mirror."""
    container = AppServices.build(settings, store=store, mirror_backend=mirror_backend)
    yield container
    await container.autosave.flush_all()
    await container.mirror.drain()


@pytest.fixture
def queries(services: AppServices):
    return services.queries


@pytest.fixture
def mutations(services: AppServices):
    return services.mutations


@pytest.fixture
def sync(services: AppServices):
    return services.sync


@pytest_asyncio.fixture(scope="function")
async def user(mutations) -> UserRead:
    return await mutations.create_user(
        {"externalAuthId": "auth-alice", "displayName": "Alice", "email": "alice@example.com"}
    )


@pytest_asyncio.fixture(scope="function")
async def other_user(mutations) -> UserRead:
    return await mutations.create_user(
        {"externalAuthId": "auth-bob", "displayName": "Bob", "email": "bob@example.com"}
    )


@pytest_asyncio.fixture(scope="function")
async def test_app(services: AppServices):
    """Provide the FastAPI app bound to the test service container.

    ``ASGITransport`` does not run the lifespan, so the container is attached
    to ``app.state`` directly.
    """
    from quillnote.main import app

    app.state.services = services
    yield app
    del app.state.services


@pytest_asyncio.fixture(scope="function")
async def test_client(test_app) -> AsyncGenerator[AsyncClient, None]:
    """Provide an async HTTP client for the test app."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
