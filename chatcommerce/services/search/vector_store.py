"""Vector store interface and its pgvector-backed implementation."""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

logger = logging.getLogger(__name__)

# Errors worth a retry with a fresh connection
TRANSIENT_ERROR_MARKERS = (
    "timeout",
    "timed out",
    "connection",
    "network",
    "503",
    "504",
    "408",
)


def is_transient_error(error: BaseException) -> bool:
    """Whether an RPC error looks like a timeout or a dropped connection."""
    if isinstance(error, (TimeoutError, ConnectionError, OSError)):
        return True
    message = f"{type(error).__name__} {error}".lower()
    return any(marker in message for marker in TRANSIENT_ERROR_MARKERS)


class VectorStore(ABC):
    """RPC surface of the managed vector store."""

    @abstractmethod
    async def search_items_by_similarity(
        self, shop_id: str, embedding: List[float], limit: int, min_similarity: float
    ) -> List[Dict[str, Any]]:
        """Rows: merchant_item_id, item_name, item_description, item_image_url,
        price_cents, is_active, similarity."""
        pass

    @abstractmethod
    async def search_items_across_shops_by_similarity(
        self, shop_ids: List[str], embedding: List[float], limit: int, min_similarity: float
    ) -> List[Dict[str, Any]]:
        """Same rows as the per-shop search plus shop_id and shop_name."""
        pass

    @abstractmethod
    async def search_user_preferences_by_similarity(
        self, consumer_id: str, embedding: List[float], limit: int, min_confidence: float
    ) -> List[Dict[str, Any]]:
        """Rows: entity_name, preference_value, confidence_score, similarity."""
        pass

    @abstractmethod
    async def reset_connection(self) -> None:
        """Drop pooled connections so the next call starts fresh."""
        pass


def _vector_literal(embedding: List[float]) -> str:
    return "[" + ",".join(repr(float(value)) for value in embedding) + "]"


class PgVectorStore(VectorStore):
    """Calls the pgvector SQL functions created by the initial migration."""

    def __init__(self, database_url: str, engine: Optional[AsyncEngine] = None):
        self.database_url = database_url
        self.engine = engine or create_async_engine(database_url, echo=False, future=True)

    async def _call(self, statement, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        async with self.engine.connect() as conn:
            result = await conn.execute(statement, params)
            return [dict(row) for row in result.mappings().all()]

    async def search_items_by_similarity(
        self, shop_id: str, embedding: List[float], limit: int, min_similarity: float
    ) -> List[Dict[str, Any]]:
        statement = text(
            "SELECT * FROM search_items_by_similarity("
            "CAST(:shop_id AS text), CAST(CAST(:embedding AS text) AS vector), :limit, :min_similarity)"
        )
        return await self._call(
            statement,
            {
                "shop_id": shop_id,
                "embedding": _vector_literal(embedding),
                "limit": limit,
                "min_similarity": min_similarity,
            },
        )

    async def search_items_across_shops_by_similarity(
        self, shop_ids: List[str], embedding: List[float], limit: int, min_similarity: float
    ) -> List[Dict[str, Any]]:
        statement = text(
            "SELECT * FROM search_items_across_shops_by_similarity("
            "CAST(:shop_ids AS text[]), CAST(CAST(:embedding AS text) AS vector), :limit, :min_similarity)"
        )
        return await self._call(
            statement,
            {
                "shop_ids": shop_ids,
                "embedding": _vector_literal(embedding),
                "limit": limit,
                "min_similarity": min_similarity,
            },
        )

    async def search_user_preferences_by_similarity(
        self, consumer_id: str, embedding: List[float], limit: int, min_confidence: float
    ) -> List[Dict[str, Any]]:
        statement = text(
            "SELECT * FROM search_user_preferences_by_similarity("
            ":consumer_id, CAST(CAST(:embedding AS text) AS vector), :limit, :min_confidence)"
        )
        return await self._call(
            statement,
            {
                "consumer_id": consumer_id,
                "embedding": _vector_literal(embedding),
                "limit": limit,
                "min_confidence": min_confidence,
            },
        )

    async def reset_connection(self) -> None:
        logger.info("[VECTOR STORE] Resetting connection pool")
        await self.engine.dispose()
