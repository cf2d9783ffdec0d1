"""Item availability checks."""
from typing import List, Optional
from pydantic import BaseModel

from chatcommerce.core.errors import ErrorKind
from chatcommerce.services.shops.repository import ShopRepository


class StockCheck(BaseModel):
    """Availability of one item."""

    item_id: str
    item_name: str = "Unknown"
    is_valid: bool
    kind: Optional[ErrorKind] = None
    reason: Optional[str] = None


def check_item_stock(item_id: str, item) -> StockCheck:
    """Classify an already-fetched item (or None) as available, missing or inactive."""
    if item is None:
        return StockCheck(item_id=item_id, is_valid=False, kind=ErrorKind.NOT_FOUND, reason="Item not found")
    if not item.is_active:
        return StockCheck(
            item_id=item_id,
            item_name=item.name,
            is_valid=False,
            kind=ErrorKind.OUT_OF_STOCK,
            reason="Item is not active",
        )
    return StockCheck(item_id=item_id, item_name=item.name, is_valid=True)


class StockValidator:
    """Validates that items exist and are active."""

    def __init__(self, shop_repository: ShopRepository):
        self.shop_repository = shop_repository

    async def validate_items(self, item_ids: List[str]) -> List[StockCheck]:
        """Check several items with one lookup, preserving input order."""
        items = {item.id: item for item in await self.shop_repository.get_items(item_ids)}
        return [check_item_stock(item_id, items.get(item_id)) for item_id in item_ids]
