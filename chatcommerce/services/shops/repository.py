"""Shop and item repository."""
import logging
from typing import List, Optional
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.orm import selectinload

from chatcommerce.db.models import MerchantItem, Shop, ShopCategory, item_categories
from chatcommerce.services.delivery.fees import calculate_distance

logger = logging.getLogger(__name__)


class ShopRepository:
    """Read access to shops, categories and items."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def find_shops_by_location(self, latitude: float, longitude: float) -> List[Shop]:
        """Active shops whose delivery zone contains the point, nearest first."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(Shop).where(
                    Shop.is_active.is_(True),
                    Shop.latitude.is_not(None),
                    Shop.longitude.is_not(None),
                )
            )
            shops = result.scalars().all()

        in_zone = []
        for shop in shops:
            distance = calculate_distance(latitude, longitude, shop.latitude, shop.longitude)
            if distance <= shop.delivery_radius:
                in_zone.append((distance, shop))
        in_zone.sort(key=lambda pair: pair[0])
        logger.info(
            f"[SHOPS] {len(in_zone)} of {len(shops)} active shops deliver to ({latitude}, {longitude})"
        )
        return [shop for _, shop in in_zone]

    async def is_within_delivery_zone(self, shop_id: str, latitude: float, longitude: float) -> bool:
        """Whether the shop delivers to the point."""
        shop = await self.get_shop(shop_id)
        if shop is None or shop.latitude is None or shop.longitude is None:
            return False
        distance = calculate_distance(latitude, longitude, shop.latitude, shop.longitude)
        return distance <= shop.delivery_radius

    async def get_shop(self, shop_id: str) -> Optional[Shop]:
        """Get a shop by id."""
        async with self.session_factory() as session:
            result = await session.execute(select(Shop).where(Shop.id == shop_id))
            return result.scalar_one_or_none()

    async def get_shop_categories(self, shop_id: str) -> List[ShopCategory]:
        """Active categories of a shop ordered by name."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(ShopCategory)
                .where(ShopCategory.shop_id == shop_id, ShopCategory.is_active.is_(True))
                .order_by(ShopCategory.name)
            )
            return list(result.scalars().all())

    async def get_items_in_category(self, shop_id: str, category_id: str) -> List[MerchantItem]:
        """Active items of a shop that belong to a category."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(MerchantItem)
                .join(item_categories, item_categories.c.item_id == MerchantItem.id)
                .where(
                    item_categories.c.category_id == category_id,
                    MerchantItem.shop_id == shop_id,
                    MerchantItem.is_active.is_(True),
                )
                .order_by(MerchantItem.name)
            )
            return list(result.scalars().all())

    async def get_item(self, item_id: str, shop_id: Optional[str] = None) -> Optional[MerchantItem]:
        """Get an item, optionally requiring that it belongs to a shop."""
        query = select(MerchantItem).where(MerchantItem.id == item_id)
        if shop_id is not None:
            query = query.where(MerchantItem.shop_id == shop_id)
        async with self.session_factory() as session:
            result = await session.execute(query)
            return result.scalar_one_or_none()

    async def get_items(self, item_ids: List[str]) -> List[MerchantItem]:
        """Get several items in one query. Missing ids are simply absent."""
        if not item_ids:
            return []
        async with self.session_factory() as session:
            result = await session.execute(select(MerchantItem).where(MerchantItem.id.in_(item_ids)))
            return list(result.scalars().all())

    async def text_search_items(self, shop_ids: List[str], query: str, limit: int) -> List[MerchantItem]:
        """Active items whose name contains the query, case-insensitively."""
        escaped = query.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        pattern = f"%{escaped}%"
        async with self.session_factory() as session:
            result = await session.execute(
                select(MerchantItem)
                .options(selectinload(MerchantItem.shop))
                .where(
                    MerchantItem.shop_id.in_(shop_ids),
                    MerchantItem.is_active.is_(True),
                    func.lower(MerchantItem.name).like(pattern, escape="\\"),
                )
                .order_by(MerchantItem.name)
                .limit(limit)
            )
            return list(result.scalars().all())
