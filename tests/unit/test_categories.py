"""Unit tests for category matching."""
import pytest

from chatcommerce.services.search.categories import CategoryMatcher, category_matches
from chatcommerce.services.shops.repository import ShopRepository


class TestCategoryMatches:
    """Test the name matching rule."""

    def test_term_in_category(self):
        assert category_matches("Cold Drinks & Juices", ["drinks"])

    def test_category_in_term(self):
        assert category_matches("Munchies", ["munchies and snacks"])

    def test_case_insensitive(self):
        assert category_matches("Baby Care", ["BABY"])

    def test_no_match(self):
        assert not category_matches("Munchies", ["rice", "  "])


class TestCategoryMatcher:
    """Test CategoryMatcher against the database."""

    @pytest.mark.asyncio
    async def test_match_returns_category_items(self, session_factory, seeded):
        matcher = CategoryMatcher(ShopRepository(session_factory), similarity=0.7)

        matches = await matcher.match([seeded.corner, seeded.mart], ["Munchies"], ["chips"])

        assert set(matches) == {seeded.corner.id}
        match = matches[seeded.corner.id]
        assert match.category_names == ["Munchies"]
        assert [item.item_id for item in match.items] == [seeded.lays.id]
        assert match.items[0].similarity == 0.7
        assert match.items[0].shop_name == "Corner Store"

    @pytest.mark.asyncio
    async def test_no_terms(self, session_factory, seeded):
        matcher = CategoryMatcher(ShopRepository(session_factory))
        assert await matcher.match([seeded.corner], [], ["  "]) == {}

    @pytest.mark.asyncio
    async def test_no_matching_category(self, session_factory, seeded):
        matcher = CategoryMatcher(ShopRepository(session_factory))
        assert await matcher.match([seeded.corner], ["Baby Care"], []) == {}
