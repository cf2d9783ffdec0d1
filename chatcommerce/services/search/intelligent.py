"""Intelligent multi-shop search."""
import asyncio
import logging
from typing import Dict, Iterable, List, Optional

from chatcommerce.core.errors import ErrorKind, ServiceResult
from chatcommerce.services.delivery.fees import DeliveryFeeCalculator
from chatcommerce.services.search.categories import CategoryMatch, CategoryMatcher
from chatcommerce.services.search.gateway import VectorSearchGateway
from chatcommerce.services.search.intent import IntentExtractor
from chatcommerce.services.search.models import (
    IntelligentSearchResponse,
    SearchItemResult,
    ShopSummary,
)
from chatcommerce.services.search.preferences import (
    PreferenceBooster,
    PreferenceRetriever,
    RetrievedPreference,
)
from chatcommerce.services.search.ranking import RelevanceRanker
from chatcommerce.services.shops.repository import ShopRepository

logger = logging.getLogger(__name__)

NO_SHOPS_REASONING = "No shops found in your delivery area."


def merge_by_max_similarity(
    merged: Dict[str, SearchItemResult], items: Iterable[SearchItemResult]
) -> Dict[str, SearchItemResult]:
    """Keep one entry per item id, the one with the higher similarity."""
    for item in items:
        existing = merged.get(item.item_id)
        if existing is None or item.similarity > existing.similarity:
            merged[item.item_id] = item
    return merged


class IntelligentSearchService:
    """Finds and ranks shops near the user that carry what the query asks for."""

    def __init__(
        self,
        intent_extractor: IntentExtractor,
        shop_repository: ShopRepository,
        search_gateway: VectorSearchGateway,
        category_matcher: CategoryMatcher,
        fee_calculator: DeliveryFeeCalculator,
        ranker: RelevanceRanker,
        preference_booster: PreferenceBooster,
        preference_retriever: Optional[PreferenceRetriever] = None,
        min_similarity: float = 0.5,
        default_limit: int = 50,
    ):
        self.intent_extractor = intent_extractor
        self.shop_repository = shop_repository
        self.search_gateway = search_gateway
        self.category_matcher = category_matcher
        self.fee_calculator = fee_calculator
        self.ranker = ranker
        self.preference_booster = preference_booster
        self.preference_retriever = preference_retriever
        self.min_similarity = min_similarity
        self.default_limit = default_limit

    async def search(
        self,
        query: str,
        latitude: float,
        longitude: float,
        consumer_id: Optional[str] = None,
        max_shops: int = 10,
        items_per_shop: int = 10,
    ) -> ServiceResult[IntelligentSearchResponse]:
        """
        Run the full search pipeline for a query at a location.

        An area without shops is an empty, successful response.
        """
        logger.info("=" * 80)
        logger.info(f"[INTELLIGENT SEARCH] Query: '{query}' at ({latitude}, {longitude})")

        intent = await self.intent_extractor.extract(query)

        try:
            shops = await self.shop_repository.find_shops_by_location(latitude, longitude)
        except Exception as e:
            logger.error(f"[INTELLIGENT SEARCH] Shop lookup failed: {type(e).__name__}: {e}", exc_info=True)
            return ServiceResult.fail(ErrorKind.UNEXPECTED, "Failed to find shops")

        top_shops = shops[:max_shops]
        if not top_shops:
            logger.info("[INTELLIGENT SEARCH] No shops in area")
            return ServiceResult.ok(
                IntelligentSearchResponse(results=[], reasoning=NO_SHOPS_REASONING, intent=intent)
            )

        shop_ids = [shop.id for shop in top_shops]
        shop_names = {shop.id: shop.name for shop in top_shops}
        limit = items_per_shop * len(shop_ids) if items_per_shop else self.default_limit

        # One vector search per expanded query, joined before merging
        query_results = await asyncio.gather(
            *(
                self.search_gateway.search_across_shops(shop_ids, expanded, limit, self.min_similarity)
                for expanded in intent.expanded_queries
            )
        )
        merged: Dict[str, SearchItemResult] = {}
        for expanded, result in zip(intent.expanded_queries, query_results):
            if result.is_ok:
                logger.info(f"[INTELLIGENT SEARCH] '{expanded}' -> {len(result.data)} items")
                merge_by_max_similarity(merged, result.data)
            else:
                logger.warning(f"[INTELLIGENT SEARCH] '{expanded}' failed: {result.error}")

        category_results, preferences, fees = await asyncio.gather(
            self.category_matcher.match(top_shops, intent.categories, intent.item_types),
            self._retrieve_preferences(consumer_id, intent.primary_query),
            self.fee_calculator.calculate_for_shops(latitude, longitude, top_shops),
        )
        for match in category_results.values():
            merge_by_max_similarity(merged, match.items)
        logger.info(f"[INTELLIGENT SEARCH] {len(merged)} unique items after category match")

        items = self.preference_booster.apply(list(merged.values()), preferences)

        items_by_shop: Dict[str, List[SearchItemResult]] = {}
        for item in items:
            if item.shop_id not in shop_names:
                continue
            items_by_shop.setdefault(item.shop_id, []).append(
                item.model_copy(update={"shop_name": shop_names[item.shop_id]})
            )

        summaries = [
            ShopSummary(
                id=shop.id,
                name=shop.name,
                address=shop.address,
                image_url=shop.image_url,
                latitude=shop.latitude,
                longitude=shop.longitude,
                delivery_fee=fees.get(shop.id, 0.0),
            )
            for shop in top_shops
        ]
        results = self.ranker.rank(
            summaries,
            items_by_shop,
            _category_names(category_results),
            items_per_shop=items_per_shop,
        )

        for index, result in enumerate(results, start=1):
            logger.info(
                f"[INTELLIGENT SEARCH] {index}. {result.shop.name} - relevance {result.relevance_score:.3f}, "
                f"{len(result.matching_items)} items, delivery PKR {result.shop.delivery_fee:.2f}"
            )
        logger.info("=" * 80)

        return ServiceResult.ok(
            IntelligentSearchResponse(results=results, reasoning=intent.reasoning, intent=intent)
        )

    async def _retrieve_preferences(
        self, consumer_id: Optional[str], query: str
    ) -> List[RetrievedPreference]:
        if self.preference_retriever is None or not consumer_id:
            return []
        return await self.preference_retriever.retrieve(consumer_id, query)


def _category_names(matches: Dict[str, CategoryMatch]) -> Dict[str, List[str]]:
    return {shop_id: match.category_names for shop_id, match in matches.items()}


def format_search_results_for_llm(response: IntelligentSearchResponse) -> str:
    """Render ranked results as compact text for the conversation model."""
    if not response.results:
        return "No shops or items found matching your query."

    quantities = {}
    for extracted in response.intent.extracted_items:
        key = (extracted.brand or extracted.name).lower()
        quantities[key] = extracted.quantity

    blocks = []
    for index, result in enumerate(response.results, start=1):
        lines = [
            f"{index}. {result.shop.name} - Delivery: PKR {result.shop.delivery_fee:.2f}"
            f" - Relevance: {result.relevance_score * 100:.0f}%"
            + (f" - Categories: {', '.join(result.category_matches)}" if result.category_matches else "")
        ]
        if result.matching_items:
            lines.append(f"   Found {len(result.matching_items)} matching items:")
            for item in result.matching_items[:5]:
                name_lower = item.name.lower()
                first_word = name_lower.split(" ")[0] if name_lower else ""
                suggested = 1
                for key, quantity in quantities.items():
                    if key in name_lower or (first_word and first_word in key):
                        suggested = quantity
                        break
                hint = f" (suggested quantity: {suggested})" if suggested > 1 else ""
                lines.append(
                    f"   - {item.name} (PKR {item.price_cents / 100:.2f}, {item.similarity * 100:.0f}% match)"
                    f" [ID: {item.item_id}]{hint}"
                )
            if len(result.matching_items) > 5:
                lines.append(f"   ... and {len(result.matching_items) - 5} more items")
        else:
            lines.append("   No matching items found")
        blocks.append("\n".join(lines))

    note = ""
    with_quantities = [item for item in response.intent.extracted_items if item.quantity > 1]
    if with_quantities:
        listed = ", ".join(f"{item.name} ({item.quantity})" for item in with_quantities)
        note = (
            f"\n\nIMPORTANT: User requested specific quantities: {listed}. "
            "When adding items to cart, use these quantities."
        )

    return "Search Results:\n" + "\n\n".join(blocks) + note
