"""Unit tests for preference retrieval and boosting."""
import pytest
from unittest.mock import AsyncMock

from chatcommerce.services.ai.embeddings import EmbeddingService
from chatcommerce.services.search.models import SearchItemResult
from chatcommerce.services.search.preferences import (
    PreferenceBooster,
    PreferenceRetriever,
    RetrievedPreference,
    preference_matches_item,
)


def _item(name, similarity=0.7, description=None):
    return SearchItemResult(item_id=name, name=name, description=description, similarity=similarity)


def _pref(entity, value="prefers", confidence=0.8):
    return RetrievedPreference(entity_name=entity, preference_value=value, confidence_score=confidence, similarity=0.9)


class TestPreferenceMatching:
    """Test entity-to-item matching."""

    def test_entity_in_name(self):
        assert preference_matches_item("lays", _item("Lays Masala"))

    def test_name_in_entity(self):
        assert preference_matches_item("olpers full cream milk", _item("Olpers"))

    def test_entity_in_description(self):
        assert preference_matches_item("diet", _item("Coke Zero", description="Diet cola"))

    def test_no_match(self):
        assert not preference_matches_item("pepsi", _item("Coca Cola"))

    def test_blank_entity(self):
        assert not preference_matches_item("  ", _item("Coca Cola"))


class TestPreferenceBooster:
    """Test PreferenceBooster."""

    def test_boost_scaled_by_confidence(self):
        boosted = PreferenceBooster(0.1).apply([_item("Lays Masala", 0.7)], [_pref("lays", confidence=0.8)])
        assert boosted[0].similarity == pytest.approx(0.78)

    def test_capped_at_one(self):
        boosted = PreferenceBooster(0.5).apply([_item("Lays", 0.9)], [_pref("lays", confidence=1.0)])
        assert boosted[0].similarity == 1.0

    def test_only_prefers_boost(self):
        items = [_item("Lays", 0.7)]
        boosted = PreferenceBooster(0.1).apply(items, [_pref("lays", value="avoids"), _pref("lays", value="allergic")])
        assert boosted[0].similarity == 0.7

    def test_single_boost_from_highest_confidence(self):
        """Several matching preferences still give one boost."""
        preferences = [_pref("lays", confidence=0.5), _pref("masala", confidence=0.9)]

        boosted = PreferenceBooster(0.1).apply([_item("Lays Masala", 0.6)], preferences)

        assert boosted[0].similarity == pytest.approx(0.69)

    def test_does_not_mutate_input(self):
        items = [_item("Lays", 0.7)]
        PreferenceBooster(0.1).apply(items, [_pref("lays")])
        assert items[0].similarity == 0.7

    def test_unmatched_items_unchanged(self):
        boosted = PreferenceBooster(0.1).apply([_item("Pepsi", 0.7)], [_pref("lays")])
        assert boosted[0].similarity == 0.7


class TestPreferenceRetriever:
    """Test PreferenceRetriever."""

    @pytest.fixture
    def retriever(self, mock_openai, mock_vector_store):
        embedding_service = EmbeddingService(mock_openai, "text-embedding-3-small", 1536)
        return PreferenceRetriever(embedding_service, mock_vector_store, limit=10, min_similarity=0.7)

    @pytest.mark.asyncio
    async def test_filters_and_sorts(self, retriever, mock_vector_store):
        mock_vector_store.search_user_preferences_by_similarity.return_value = [
            {"entity_name": "pepsi", "preference_value": "prefers", "confidence_score": 0.9, "similarity": 0.75},
            {"entity_name": "lays", "preference_value": "prefers", "confidence_score": 0.6, "similarity": 0.95},
            {"entity_name": "kurkure", "preference_value": "avoids", "confidence_score": 0.8, "similarity": 0.4},
        ]

        preferences = await retriever.retrieve("consumer-1", "chips")

        assert [pref.entity_name for pref in preferences] == ["lays", "pepsi"]
        args = mock_vector_store.search_user_preferences_by_similarity.call_args.args
        assert args[0] == "consumer-1"
        assert args[2] == 10
        assert args[3] == 0.5

    @pytest.mark.asyncio
    async def test_store_failure_yields_empty(self, retriever, mock_vector_store):
        mock_vector_store.search_user_preferences_by_similarity.side_effect = RuntimeError("rpc missing")
        assert await retriever.retrieve("consumer-1", "chips") == []

    @pytest.mark.asyncio
    async def test_embedding_failure_yields_empty(self, retriever, mock_openai, mock_vector_store):
        mock_openai.embeddings.create = AsyncMock(side_effect=RuntimeError("quota"))

        assert await retriever.retrieve("consumer-1", "chips") == []
        mock_vector_store.search_user_preferences_by_similarity.assert_not_called()
