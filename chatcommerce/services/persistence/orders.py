"""Order persistence service."""
import logging
import secrets
from datetime import datetime
from typing import Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.orm import selectinload

from chatcommerce.db.models import Order, OrderItem
from chatcommerce.services.ordering.models import CartView

logger = logging.getLogger(__name__)


def generate_order_number(now: Optional[datetime] = None) -> str:
    """Human-readable order number, e.g. ORD-20240101-A1B2C3."""
    now = now or datetime.utcnow()
    return f"ORD-{now:%Y%m%d}-{secrets.token_hex(3).upper()}"


class OrderPersistenceService:
    """Service for persisting order data."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def place_order(
        self,
        consumer_id: str,
        address_id: str,
        cart: CartView,
        delivery_fee_cents: int = 0,
        surcharge_cents: int = 0,
        special_instructions: Optional[str] = None,
        payment_method: str = "cash",
    ) -> Order:
        """Create a pending order from a cart."""
        subtotal = cart.total_price
        order = Order(
            order_number=generate_order_number(),
            consumer_id=consumer_id,
            shop_id=cart.shop_id,
            address_id=address_id,
            status="pending",
            payment_method=payment_method,
            special_instructions=special_instructions,
            subtotal_cents=subtotal,
            delivery_fee_cents=delivery_fee_cents,
            surcharge_cents=surcharge_cents,
            total_cents=subtotal + delivery_fee_cents + surcharge_cents,
        )
        order.items = [
            OrderItem(
                merchant_item_id=line.id,
                item_name=line.name,
                quantity=line.quantity,
                price_cents=line.price_cents,
            )
            for line in cart.items
        ]

        async with self.session_factory() as session:
            session.add(order)
            await session.commit()

        logger.info(
            f"[ORDERS] Placed order {order.order_number} for consumer {consumer_id} "
            f"at shop {cart.shop_id} - total {order.total_cents} cents"
        )
        return order

    async def get_order_by_id(self, order_id: str) -> Optional[Order]:
        """Get order by ID with items."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(Order).where(Order.id == order_id).options(selectinload(Order.items))
            )
            return result.scalar_one_or_none()
