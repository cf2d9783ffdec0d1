"""Order validation service."""
import logging
from datetime import datetime
from typing import Optional

from chatcommerce.core.errors import ErrorKind, ServiceResult
from chatcommerce.services.delivery.fees import validate_order_value
from chatcommerce.services.delivery.repository import DeliveryLogicRepository
from chatcommerce.services.shops.hours import OpeningStatus, get_opening_status
from chatcommerce.services.shops.repository import ShopRepository

logger = logging.getLogger(__name__)

ZONE_VIOLATION_MESSAGE = (
    "Your selected address is outside this shop's delivery area. "
    "Please choose a different address or shop."
)


class OrderValidator:
    """Business-rule checks run before an order is placed."""

    def __init__(
        self,
        shop_repository: ShopRepository,
        delivery_logic_repository: DeliveryLogicRepository,
    ):
        self.shop_repository = shop_repository
        self.delivery_logic_repository = delivery_logic_repository

    async def check_delivery_zone(
        self, shop_id: str, latitude: float, longitude: float
    ) -> ServiceResult[bool]:
        """Fail when the shop does not deliver to the coordinates."""
        if await self.shop_repository.is_within_delivery_zone(shop_id, latitude, longitude):
            return ServiceResult.ok(True)
        logger.info(f"[ORDER VALIDATION] ({latitude}, {longitude}) is outside delivery zone of shop {shop_id}")
        return ServiceResult.fail(ErrorKind.DELIVERY_ZONE_VIOLATION, ZONE_VIOLATION_MESSAGE)

    def check_shop_open(self, shop, now: Optional[datetime] = None) -> ServiceResult[OpeningStatus]:
        """Fail with a reason-specific message when the shop is closed."""
        status = get_opening_status(shop.opening_hours, shop.holidays, shop.open_status_mode, now)
        if status.is_open:
            return ServiceResult.ok(status)
        logger.info(f"[ORDER VALIDATION] Shop {shop.id} is closed ({status.reason})")
        return ServiceResult.fail(ErrorKind.SHOP_CLOSED, status.closed_message())

    async def check_minimum_order(self, shop_id: str, subtotal_cents: int) -> ServiceResult[bool]:
        """Fail when the cart subtotal is below the shop's minimum order value."""
        logic = await self.delivery_logic_repository.get(shop_id)
        check = validate_order_value(subtotal_cents / 100, logic)
        if check.is_valid:
            return ServiceResult.ok(True)
        return ServiceResult.fail(ErrorKind.MINIMUM_ORDER_NOT_MET, check.message)
