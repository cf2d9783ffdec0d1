"""Shared test fixtures and configuration."""
import json
import os
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

# Set test environment variables before importing the app
os.environ.setdefault("OPENAI_API_KEY", "test-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from chatcommerce.main import app
from chatcommerce.core.config import Settings
from chatcommerce.core.dependencies import build_function_router, get_openai_client, get_vector_store
from chatcommerce.db.database import get_session_factory
from chatcommerce.db.models import (
    Base,
    DeliveryLogicConfig,
    MerchantItem,
    Shop,
    ShopCategory,
)
from chatcommerce.services.agent import conversation
from chatcommerce.services.agent.models import ExecutionContext
from chatcommerce.services.ordering.models import DeliveryAddress
from chatcommerce.services.search.vector_store import VectorStore

# Lahore, a few metres from the corner store
USER_LAT = 31.5210
USER_LNG = 74.3590


@pytest.fixture
def test_settings():
    """Settings for testing."""
    return Settings(
        openai_api_key="test-key",
        database_url="sqlite+aiosqlite:///:memory:",
    )


@pytest.fixture
async def test_db_engine(tmp_path):
    """File-backed SQLite engine so concurrent sessions see each other's commits."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(test_db_engine):
    """Session factory bound to the test database."""
    return async_sessionmaker(
        test_db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def seeded(session_factory):
    """Two nearby shops, one far shop, and a handful of items."""
    corner = Shop(name="Corner Store", address="1 Mall Road", latitude=31.5204, longitude=74.3587)
    mart = Shop(name="Super Mart", address="9 Canal Road", latitude=31.5250, longitude=74.3600)
    far = Shop(
        name="Far Away Grocers", address="Raiwind", latitude=31.2500, longitude=74.2000, delivery_radius=1000
    )
    munchies = ShopCategory(name="Munchies", shop=corner)
    lays = MerchantItem(name="Lay's Classic", price_cents=5000, shop=corner, categories=[munchies])
    cola = MerchantItem(name="Coca Cola 1.5L", description="Cold drink", price_cents=15000, shop=corner)
    pampers = MerchantItem(name="Pampers Diapers", price_cents=250000, shop=corner, is_active=False)
    masala = MerchantItem(name="Lays Masala", price_cents=5000, shop=mart)
    rice = MerchantItem(name="Basmati Rice", price_cents=90000, shop=far)

    async with session_factory() as session:
        session.add_all([corner, mart, far, munchies, lays, cola, pampers, masala, rice])
        session.add_all(
            [
                DeliveryLogicConfig(shop=corner),
                DeliveryLogicConfig(shop=mart),
                DeliveryLogicConfig(shop=far),
            ]
        )
        await session.commit()

    return SimpleNamespace(
        corner=corner, mart=mart, far=far, munchies=munchies,
        lays=lays, cola=cola, pampers=pampers, masala=masala, rice=rice,
    )


@pytest.fixture
def delivery_address():
    """Current address with a landmark, next to the corner store."""
    return DeliveryAddress(
        street_address="12 Mall Road",
        city="Lahore",
        latitude=USER_LAT,
        longitude=USER_LNG,
        landmark="Opposite the mosque",
        formatted_address="12 Mall Road, Lahore",
    )


@pytest.fixture
def context(delivery_address):
    """Execution context for a consumer at the delivery address."""
    return ExecutionContext(consumer_id="consumer-1", address=delivery_address)


def make_completion(content=None, tool_calls=None):
    """Chat completion shaped like the OpenAI response object."""
    return Mock(choices=[Mock(message=Mock(content=content, tool_calls=tool_calls))])


def make_tool_call(name, arguments, call_id="call_1"):
    """Tool call shaped like the OpenAI response object."""
    function = Mock(arguments=arguments if isinstance(arguments, str) else json.dumps(arguments))
    function.name = name
    return Mock(id=call_id, function=function)


@pytest.fixture
def completion():
    """Factory for chat completion responses."""
    return make_completion


@pytest.fixture
def tool_call():
    """Factory for tool calls."""
    return make_tool_call


@pytest.fixture
def mock_openai():
    """Mock OpenAI API client."""
    mock_client = Mock()
    mock_client.chat.completions.create = AsyncMock(return_value=make_completion(content="{}"))
    mock_client.embeddings.create = AsyncMock(
        return_value=Mock(data=[Mock(embedding=[0.01] * 1536)])
    )
    return mock_client


@pytest.fixture
def mock_vector_store():
    """Vector store that finds nothing, so searches fall back to text matching."""
    store = AsyncMock(spec=VectorStore)
    store.search_items_by_similarity.return_value = []
    store.search_items_across_shops_by_similarity.return_value = []
    store.search_user_preferences_by_similarity.return_value = []
    return store


@pytest.fixture
def function_router(session_factory, mock_openai, mock_vector_store, test_settings):
    """FunctionRouter wired to the test database and mocked AI services."""
    return build_function_router(session_factory, mock_openai, mock_vector_store, test_settings)


@pytest.fixture
def clean_conversations():
    """Clean up conversation sessions before and after tests."""
    conversation._sessions.clear()
    yield
    conversation._sessions.clear()


@pytest.fixture
def test_client(session_factory, mock_openai, mock_vector_store, clean_conversations):
    """Create FastAPI test client with overrides."""
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_openai_client] = lambda: mock_openai
    app.dependency_overrides[get_vector_store] = lambda: mock_vector_store

    client = TestClient(app)

    yield client

    app.dependency_overrides.clear()


# Pytest configuration
def pytest_configure(config):
    """Configure pytest."""
    config.addinivalue_line(
        "markers", "asyncio: mark test as an asyncio test"
    )
