"""Cart persistence service."""
import logging
from typing import List, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from chatcommerce.db.models import Cart, CartItem, MerchantItem
from chatcommerce.services.ordering.models import CartView

logger = logging.getLogger(__name__)


class CartPersistenceService:
    """Service for persisting per-shop carts."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def _get_cart_row(self, session: AsyncSession, consumer_id: str, shop_id: str) -> Optional[Cart]:
        result = await session.execute(
            select(Cart)
            .where(Cart.consumer_id == consumer_id, Cart.shop_id == shop_id)
            .options(selectinload(Cart.items), selectinload(Cart.shop))
        )
        return result.scalar_one_or_none()

    async def get_cart(self, consumer_id: str, shop_id: str) -> Optional[CartView]:
        """Get the consumer's cart for a shop."""
        async with self.session_factory() as session:
            cart = await self._get_cart_row(session, consumer_id, shop_id)
            return CartView.from_orm_cart(cart) if cart else None

    async def get_all_carts(self, consumer_id: str) -> List[CartView]:
        """Get all of the consumer's carts, oldest first."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(Cart)
                .where(Cart.consumer_id == consumer_id)
                .options(selectinload(Cart.items), selectinload(Cart.shop))
                .order_by(Cart.created_at, Cart.id)
            )
            return [CartView.from_orm_cart(cart) for cart in result.scalars().all()]

    async def add_item(
        self, consumer_id: str, shop_id: str, item: MerchantItem, quantity: int = 1
    ) -> CartView:
        """Add an item, creating the cart on first add. Re-adding increases the quantity."""
        if quantity < 1:
            raise ValueError("Quantity must be at least 1")

        async with self.session_factory() as session:
            cart = await self._get_cart_row(session, consumer_id, shop_id)
            if cart is None:
                cart = Cart(consumer_id=consumer_id, shop_id=shop_id)
                session.add(cart)
                await session.flush()
                logger.info(f"[CART] Created cart for consumer {consumer_id} at shop {shop_id}")
                line = None
            else:
                line = next((existing for existing in cart.items if existing.item_id == item.id), None)

            if line is not None:
                line.quantity += quantity
            else:
                session.add(
                    CartItem(
                        cart_id=cart.id,
                        item_id=item.id,
                        name=item.name,
                        quantity=quantity,
                        price_cents=item.price_cents,
                    )
                )
            await session.commit()

        return await self.get_cart(consumer_id, shop_id)

    async def update_quantity(
        self, consumer_id: str, shop_id: str, item_id: str, quantity: int
    ) -> Optional[CartView]:
        """Set a line's quantity. Returns None when the line does not exist."""
        if quantity < 1:
            raise ValueError("Quantity must be at least 1")

        async with self.session_factory() as session:
            cart = await self._get_cart_row(session, consumer_id, shop_id)
            line = next((l for l in cart.items if l.item_id == item_id), None) if cart else None
            if line is None:
                return None
            line.quantity = quantity
            await session.commit()

        return await self.get_cart(consumer_id, shop_id)

    async def remove_item(self, consumer_id: str, shop_id: str, item_id: str) -> Optional[CartView]:
        """Remove a line. Removing the last line deletes the cart and returns None."""
        async with self.session_factory() as session:
            cart = await self._get_cart_row(session, consumer_id, shop_id)
            if cart is None:
                return None
            line = next((l for l in cart.items if l.item_id == item_id), None)
            if line is not None:
                cart.items.remove(line)
            if not cart.items:
                await session.delete(cart)
                logger.info(f"[CART] Cart for shop {shop_id} is empty, deleted")
            await session.commit()

        return await self.get_cart(consumer_id, shop_id)

    async def delete_cart(self, consumer_id: str, shop_id: str) -> bool:
        """Delete a cart and its lines."""
        async with self.session_factory() as session:
            cart = await self._get_cart_row(session, consumer_id, shop_id)
            if cart is None:
                return False
            await session.delete(cart)
            await session.commit()
        return True
