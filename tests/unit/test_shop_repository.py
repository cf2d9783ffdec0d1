"""Unit tests for the shop repository."""
import pytest

from chatcommerce.services.shops.repository import ShopRepository


class TestTextSearch:
    """Test case-insensitive item name search."""

    @pytest.mark.asyncio
    async def test_substring_match(self, session_factory, seeded):
        repository = ShopRepository(session_factory)

        items = await repository.text_search_items([seeded.corner.id, seeded.mart.id], "LAY", 10)

        assert [item.name for item in items] == ["Lay's Classic", "Lays Masala"]

    @pytest.mark.asyncio
    async def test_inactive_items_excluded(self, session_factory, seeded):
        repository = ShopRepository(session_factory)
        assert await repository.text_search_items([seeded.corner.id], "pampers", 10) == []

    @pytest.mark.asyncio
    async def test_wildcards_are_literal(self, session_factory, seeded):
        """'%' and '_' in the query match themselves, not any characters."""
        repository = ShopRepository(session_factory)

        assert await repository.text_search_items([seeded.corner.id], "%", 10) == []
        assert await repository.text_search_items([seeded.corner.id], "coca_cola", 10) == []
        items = await repository.text_search_items([seeded.corner.id], "1.5l", 10)
        assert [item.id for item in items] == [seeded.cola.id]
