"""Delivery rules repository."""
import logging
from typing import Dict, List, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from chatcommerce.db.models import DeliveryLogicConfig
from chatcommerce.services.delivery.fees import DeliveryLogic

logger = logging.getLogger(__name__)


class DeliveryLogicRepository:
    """Loads per-shop delivery rules."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def get(self, shop_id: str) -> Optional[DeliveryLogic]:
        """Delivery rules for one shop, or None when the shop has none."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(DeliveryLogicConfig).where(DeliveryLogicConfig.shop_id == shop_id)
            )
            config = result.scalar_one_or_none()
        return DeliveryLogic.from_orm_config(config) if config else None

    async def get_many(self, shop_ids: List[str]) -> Dict[str, DeliveryLogic]:
        """Delivery rules for several shops in one query."""
        if not shop_ids:
            return {}
        async with self.session_factory() as session:
            result = await session.execute(
                select(DeliveryLogicConfig).where(DeliveryLogicConfig.shop_id.in_(shop_ids))
            )
            configs = result.scalars().all()
        logger.debug(f"[DELIVERY] Loaded delivery rules for {len(configs)}/{len(shop_ids)} shops")
        return {config.shop_id: DeliveryLogic.from_orm_config(config) for config in configs}
