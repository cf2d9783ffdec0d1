"""Category and synonym matching against shop taxonomies."""
import asyncio
import logging
from typing import Dict, List
from pydantic import BaseModel, Field

from chatcommerce.services.search.models import SearchItemResult
from chatcommerce.services.shops.repository import ShopRepository

logger = logging.getLogger(__name__)


class CategoryMatch(BaseModel):
    """Categories of one shop that matched, and their items."""

    shop_id: str
    category_names: List[str] = Field(default_factory=list)
    items: List[SearchItemResult] = Field(default_factory=list)


def category_matches(category_name: str, terms: List[str]) -> bool:
    """Case-insensitive substring match in either direction."""
    name = category_name.lower()
    for term in terms:
        term_lower = term.lower().strip()
        if term_lower and (term_lower in name or name in term_lower):
            return True
    return False


class CategoryMatcher:
    """Maps intent categories and item types onto each shop's own categories."""

    def __init__(self, shop_repository: ShopRepository, similarity: float = 0.7):
        self.shop_repository = shop_repository
        self.similarity = similarity

    async def match(
        self, shops: List, categories: List[str], item_types: List[str]
    ) -> Dict[str, CategoryMatch]:
        """Match every shop concurrently. Shops without matches are omitted."""
        terms = [term for term in [*categories, *item_types] if term and term.strip()]
        if not terms or not shops:
            return {}

        matches = await asyncio.gather(*(self._match_shop(shop, terms) for shop in shops))
        return {match.shop_id: match for match in matches if match.category_names}

    async def _match_shop(self, shop, terms: List[str]) -> CategoryMatch:
        shop_categories = await self.shop_repository.get_shop_categories(shop.id)
        matched = [category for category in shop_categories if category_matches(category.name, terms)]
        result = CategoryMatch(shop_id=shop.id, category_names=[category.name for category in matched])

        seen = set()
        for category in matched:
            for item in await self.shop_repository.get_items_in_category(shop.id, category.id):
                if item.id in seen:
                    continue
                seen.add(item.id)
                result.items.append(
                    SearchItemResult(
                        item_id=item.id,
                        name=item.name,
                        description=item.description,
                        image_url=item.image_url,
                        price_cents=item.price_cents,
                        is_active=item.is_active,
                        similarity=self.similarity,
                        shop_id=shop.id,
                        shop_name=shop.name,
                    )
                )

        if matched:
            logger.debug(
                f"[CATEGORY MATCH] {shop.name}: {result.category_names} -> {len(result.items)} items"
            )
        return result
