"""Unit tests for shop relevance ranking."""
import pytest

from chatcommerce.services.search.models import SearchItemResult, ShopSummary
from chatcommerce.services.search.ranking import RankingWeights, RelevanceRanker


def _items(shop_id, count, similarity=0.8):
    return [
        SearchItemResult(item_id=f"{shop_id}-{i}", name=f"Item {i}", similarity=similarity, shop_id=shop_id)
        for i in range(count)
    ]


@pytest.fixture
def ranker():
    return RelevanceRanker()


class TestDeliveryFeeScore:
    """Test the delivery component."""

    def test_cheaper_scores_higher(self, ranker):
        assert ranker.delivery_fee_score(20) > ranker.delivery_fee_score(100)

    def test_expensive_floor(self, ranker):
        assert ranker.delivery_fee_score(500) == 0.0

    def test_zero_fee_is_neutral(self, ranker):
        assert ranker.delivery_fee_score(0) == 0.5


class TestRelevanceScore:
    """Test the relevance score."""

    def test_formula(self, ranker):
        """0.3 * count/10 + 0.4 * avg similarity + 0.3 * fee score."""
        score = ranker.score(5, _items("a", 5, similarity=0.8), 100)
        assert score == pytest.approx(0.3 * 0.5 + 0.4 * 0.8 + 0.3 * 0.5)

    def test_item_count_capped(self, ranker):
        assert ranker.score(25, _items("a", 10), 50) == pytest.approx(ranker.score(10, _items("a", 10), 50))

    def test_more_matches_score_higher(self, ranker):
        """A shop with 8 equally similar matches beats one with 3."""
        assert ranker.score(8, _items("a", 8), 50) > ranker.score(3, _items("b", 3), 50)

    def test_empty_shop(self, ranker):
        assert ranker.score(0, [], 100) == pytest.approx(0.1 * 0.5)

    def test_custom_weights(self):
        ranker = RelevanceRanker(RankingWeights(item_count=0, similarity=1, delivery=0))
        assert ranker.score(3, _items("a", 3, similarity=0.9), 50) == pytest.approx(0.9)


class TestRank:
    """Test ranking of shops."""

    def test_orders_by_relevance(self, ranker):
        shops = [ShopSummary(id="few", name="Few", delivery_fee=50), ShopSummary(id="many", name="Many", delivery_fee=50)]
        items = {"few": _items("few", 3), "many": _items("many", 8)}

        results = ranker.rank(shops, items, {})

        assert [result.shop.id for result in results] == ["many", "few"]
        assert results[0].relevance_score > results[1].relevance_score

    def test_drops_shops_without_items(self, ranker):
        shops = [ShopSummary(id="a", name="A"), ShopSummary(id="b", name="B")]

        results = ranker.rank(shops, {"a": _items("a", 2)}, {})

        assert [result.shop.id for result in results] == ["a"]

    def test_keeps_all_when_none_have_items(self, ranker):
        shops = [ShopSummary(id="a", name="A"), ShopSummary(id="b", name="B")]

        results = ranker.rank(shops, {}, {})

        assert len(results) == 2
        assert all(result.matching_items == [] for result in results)

    def test_ties_keep_input_order(self, ranker):
        shops = [ShopSummary(id=shop_id, name=shop_id, delivery_fee=40) for shop_id in ["x", "y", "z"]]
        items = {shop.id: _items(shop.id, 2) for shop in shops}

        results = ranker.rank(shops, items, {})

        assert [result.shop.id for result in results] == ["x", "y", "z"]

    def test_limits_items_per_shop(self, ranker):
        """Only the most similar items are kept, but all count toward relevance."""
        shop = ShopSummary(id="a", name="A", delivery_fee=40)
        items = _items("a", 6, similarity=0.6) + _items("top", 2, similarity=0.95)

        results = ranker.rank([shop], {"a": items}, {"a": ["Munchies"]}, items_per_shop=2)

        assert [item.similarity for item in results[0].matching_items] == [0.95, 0.95]
        assert results[0].category_matches == ["Munchies"]
        assert results[0].relevance_score == pytest.approx(0.3 * 0.8 + 0.4 * 0.95 + 0.3 * 0.8)
