"""Preference retrieval and preference-based score boosting."""
import logging
from typing import List
from pydantic import BaseModel

from chatcommerce.services.ai.embeddings import EmbeddingService
from chatcommerce.services.search.models import SearchItemResult
from chatcommerce.services.search.vector_store import VectorStore

logger = logging.getLogger(__name__)

PREFERS = "prefers"


class RetrievedPreference(BaseModel):
    """A stored preference that is similar to the current query."""

    entity_name: str
    preference_value: str
    confidence_score: float
    similarity: float = 0.0


class PreferenceRetriever:
    """Finds a consumer's preferences related to a query."""

    def __init__(
        self,
        embedding_service: EmbeddingService,
        vector_store: VectorStore,
        limit: int = 10,
        min_similarity: float = 0.7,
        min_confidence: float = 0.5,
    ):
        self.embedding_service = embedding_service
        self.vector_store = vector_store
        self.limit = limit
        self.min_similarity = min_similarity
        self.min_confidence = min_confidence

    async def retrieve(self, consumer_id: str, query: str) -> List[RetrievedPreference]:
        """Top preferences above the similarity floor, most similar first. Failures yield []."""
        embedding_result = await self.embedding_service.generate_embedding(query)
        if not embedding_result.is_ok:
            logger.warning(f"[PREFERENCES] Skipping preferences, embedding failed: {embedding_result.error}")
            return []

        try:
            rows = await self.vector_store.search_user_preferences_by_similarity(
                consumer_id, embedding_result.data, self.limit, self.min_confidence
            )
        except Exception as e:
            logger.warning(f"[PREFERENCES] Preference lookup failed: {type(e).__name__}: {e}")
            return []

        preferences = [
            RetrievedPreference(
                entity_name=row["entity_name"],
                preference_value=row["preference_value"],
                confidence_score=float(row["confidence_score"]),
                similarity=float(row.get("similarity") or 0.0),
            )
            for row in rows
            if float(row.get("similarity") or 0.0) >= self.min_similarity
        ]
        preferences.sort(key=lambda pref: pref.similarity, reverse=True)
        logger.info(f"[PREFERENCES] Retrieved {len(preferences)} preferences for '{query}'")
        return preferences


def preference_matches_item(entity_name: str, item: SearchItemResult) -> bool:
    """Item name contains the entity (or vice versa), or the description contains it."""
    entity = entity_name.lower().strip()
    if not entity:
        return False
    name = item.name.lower()
    description = (item.description or "").lower()
    return entity in name or name in entity or entity in description


class PreferenceBooster:
    """Raises the similarity of items the consumer is known to prefer."""

    def __init__(self, boost_factor: float = 0.1):
        self.boost_factor = boost_factor

    def apply(
        self, items: List[SearchItemResult], preferences: List[RetrievedPreference]
    ) -> List[SearchItemResult]:
        """
        Return items with boosted similarities.

        Only "prefers" preferences boost. Each item gets at most one boost, from
        the highest-confidence matching preference, and is capped at 1.0.
        """
        positive = sorted(
            (pref for pref in preferences if pref.preference_value == PREFERS),
            key=lambda pref: pref.confidence_score,
            reverse=True,
        )
        if not positive:
            return list(items)

        boosted = []
        for item in items:
            match = next((pref for pref in positive if preference_matches_item(pref.entity_name, item)), None)
            if match is None:
                boosted.append(item)
                continue
            boost = self.boost_factor * match.confidence_score
            new_similarity = min(1.0, item.similarity + boost)
            logger.debug(
                f"[PREFERENCES] Boosted '{item.name}' {item.similarity:.3f} -> {new_similarity:.3f} "
                f"(prefers {match.entity_name})"
            )
            boosted.append(item.model_copy(update={"similarity": new_similarity}))
        return boosted
