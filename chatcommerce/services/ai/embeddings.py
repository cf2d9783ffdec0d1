"""Embedding service."""
import logging
from typing import List
from openai import AsyncOpenAI

from chatcommerce.core.errors import EmbeddingDimensionError, ErrorKind, ServiceResult

logger = logging.getLogger(__name__)


def validate_embedding(embedding: List[float], dimension: int) -> List[float]:
    """Reject vectors whose length is not the configured dimension."""
    if len(embedding) != dimension:
        raise EmbeddingDimensionError(dimension, len(embedding))
    return embedding


class EmbeddingService:
    """Service for turning text into fixed-size embedding vectors."""

    def __init__(self, client: AsyncOpenAI, model: str, dimension: int):
        self.client = client
        self.model = model
        self.dimension = dimension

    async def generate_embedding(self, text: str) -> ServiceResult[List[float]]:
        """
        Create an embedding for the given text.

        Provider failures are reported as an EMBEDDING_FAILURE result. A vector
        with the wrong dimension raises EmbeddingDimensionError.
        """
        cleaned = text.strip()
        if not cleaned:
            return ServiceResult.fail(ErrorKind.EMBEDDING_FAILURE, "Cannot embed empty text")

        try:
            response = await self.client.embeddings.create(
                model=self.model,
                input=cleaned,
                encoding_format="float",
            )
            embedding = list(response.data[0].embedding)
        except Exception as e:
            logger.warning(f"[EMBEDDING] Failed to embed '{cleaned[:50]}': {type(e).__name__}: {e}")
            return ServiceResult.fail(ErrorKind.EMBEDDING_FAILURE, str(e) or "Embedding request failed")

        return ServiceResult.ok(validate_embedding(embedding, self.dimension))
