"""Shop relevance ranking."""
from typing import Dict, List, Optional
from pydantic import BaseModel

from chatcommerce.services.search.models import SearchItemResult, ShopSearchResult, ShopSummary


class RankingWeights(BaseModel):
    """Tunable constants of the relevance score."""

    item_count: float = 0.3
    similarity: float = 0.4
    delivery: float = 0.3
    empty_shop: float = 0.1
    item_count_cap: int = 10
    fee_normalizer: float = 200.0
    unknown_fee_score: float = 0.5


class RelevanceRanker:
    """Scores and orders shops by their matching items and delivery cost."""

    def __init__(self, weights: Optional[RankingWeights] = None, items_per_shop: int = 10):
        self.weights = weights or RankingWeights()
        self.items_per_shop = items_per_shop

    def delivery_fee_score(self, fee: float) -> float:
        """Cheaper delivery scores higher. A zero (free or unknown) fee gets a neutral score."""
        if fee > 0:
            return max(0.0, 1 - fee / self.weights.fee_normalizer)
        return self.weights.unknown_fee_score

    def score(self, match_count: int, top_items: List[SearchItemResult], fee: float) -> float:
        """Relevance of one shop."""
        fee_score = self.delivery_fee_score(fee)
        if match_count == 0:
            return self.weights.empty_shop * fee_score

        item_count_score = min(1.0, match_count / self.weights.item_count_cap)
        avg_similarity = (
            sum(item.similarity for item in top_items) / len(top_items) if top_items else 0.0
        )
        return (
            self.weights.item_count * item_count_score
            + self.weights.similarity * avg_similarity
            + self.weights.delivery * fee_score
        )

    def rank(
        self,
        shops: List[ShopSummary],
        items_by_shop: Dict[str, List[SearchItemResult]],
        category_matches: Dict[str, List[str]],
        items_per_shop: Optional[int] = None,
    ) -> List[ShopSearchResult]:
        """
        Build ranked results, highest relevance first.

        Ties keep input order. Shops without items are dropped unless no shop
        has any item.
        """
        limit = items_per_shop or self.items_per_shop
        results = []
        for shop in shops:
            matching = sorted(items_by_shop.get(shop.id, []), key=lambda item: item.similarity, reverse=True)
            top_items = matching[:limit]
            results.append(
                ShopSearchResult(
                    shop=shop,
                    matching_items=top_items,
                    category_matches=category_matches.get(shop.id, []),
                    relevance_score=self.score(len(matching), top_items, shop.delivery_fee),
                )
            )

        results.sort(key=lambda result: result.relevance_score, reverse=True)
        with_items = [result for result in results if result.matching_items]
        return with_items if with_items else results
