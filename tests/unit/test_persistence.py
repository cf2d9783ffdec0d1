"""Unit tests for persistence services (carts, addresses and orders)."""
import re
import pytest
from datetime import datetime

from chatcommerce.services.persistence.addresses import AddressPersistenceService
from chatcommerce.services.persistence.carts import CartPersistenceService
from chatcommerce.services.persistence.orders import OrderPersistenceService, generate_order_number

CONSUMER = "consumer-1"


class TestCartPersistence:
    """Test cart persistence service."""

    @pytest.mark.asyncio
    async def test_add_item_creates_cart(self, session_factory, seeded):
        """Test the first add creates the cart with shop details."""
        service = CartPersistenceService(session_factory)

        cart = await service.add_item(CONSUMER, seeded.corner.id, seeded.lays, 2)

        assert cart.shop_id == seeded.corner.id
        assert cart.shop_name == "Corner Store"
        assert [(line.id, line.quantity, line.price_cents) for line in cart.items] == [(seeded.lays.id, 2, 5000)]
        assert cart.total_items == 2
        assert cart.total_price == 10000

    @pytest.mark.asyncio
    async def test_add_existing_item_increments(self, session_factory, seeded):
        """Test re-adding an item increases its quantity."""
        service = CartPersistenceService(session_factory)

        await service.add_item(CONSUMER, seeded.corner.id, seeded.lays, 1)
        await service.add_item(CONSUMER, seeded.corner.id, seeded.cola, 1)
        cart = await service.add_item(CONSUMER, seeded.corner.id, seeded.lays, 3)

        assert cart.find_line(seeded.lays.id).quantity == 4
        assert cart.find_line(seeded.cola.id).quantity == 1
        assert cart.total_price == 4 * 5000 + 15000

    @pytest.mark.asyncio
    async def test_add_item_rejects_zero_quantity(self, session_factory, seeded):
        service = CartPersistenceService(session_factory)

        with pytest.raises(ValueError):
            await service.add_item(CONSUMER, seeded.corner.id, seeded.lays, 0)

    @pytest.mark.asyncio
    async def test_one_cart_per_shop(self, session_factory, seeded):
        """Test items from different shops land in separate carts."""
        service = CartPersistenceService(session_factory)

        await service.add_item(CONSUMER, seeded.corner.id, seeded.lays, 1)
        await service.add_item(CONSUMER, seeded.mart.id, seeded.masala, 1)
        carts = await service.get_all_carts(CONSUMER)

        assert [cart.shop_id for cart in carts] == [seeded.corner.id, seeded.mart.id]
        assert await service.get_all_carts("someone-else") == []

    @pytest.mark.asyncio
    async def test_update_quantity(self, session_factory, seeded):
        service = CartPersistenceService(session_factory)
        await service.add_item(CONSUMER, seeded.corner.id, seeded.lays, 1)

        cart = await service.update_quantity(CONSUMER, seeded.corner.id, seeded.lays.id, 5)

        assert cart.find_line(seeded.lays.id).quantity == 5

    @pytest.mark.asyncio
    async def test_update_missing_line(self, session_factory, seeded):
        service = CartPersistenceService(session_factory)

        assert await service.update_quantity(CONSUMER, seeded.corner.id, seeded.lays.id, 2) is None

    @pytest.mark.asyncio
    async def test_remove_item(self, session_factory, seeded):
        service = CartPersistenceService(session_factory)
        await service.add_item(CONSUMER, seeded.corner.id, seeded.lays, 1)
        await service.add_item(CONSUMER, seeded.corner.id, seeded.cola, 1)

        cart = await service.remove_item(CONSUMER, seeded.corner.id, seeded.lays.id)

        assert [line.id for line in cart.items] == [seeded.cola.id]

    @pytest.mark.asyncio
    async def test_remove_last_item_deletes_cart(self, session_factory, seeded):
        """Test removing the last line deletes the cart."""
        service = CartPersistenceService(session_factory)
        await service.add_item(CONSUMER, seeded.corner.id, seeded.lays, 1)

        cart = await service.remove_item(CONSUMER, seeded.corner.id, seeded.lays.id)

        assert cart is None
        assert await service.get_all_carts(CONSUMER) == []

    @pytest.mark.asyncio
    async def test_delete_cart(self, session_factory, seeded):
        service = CartPersistenceService(session_factory)
        await service.add_item(CONSUMER, seeded.corner.id, seeded.lays, 1)

        assert await service.delete_cart(CONSUMER, seeded.corner.id) is True
        assert await service.get_cart(CONSUMER, seeded.corner.id) is None
        assert await service.delete_cart(CONSUMER, seeded.corner.id) is False


class TestAddressPersistence:
    """Test address persistence service."""

    @pytest.mark.asyncio
    async def test_create_and_get_address(self, session_factory):
        service = AddressPersistenceService(session_factory)

        address = await service.create_address(
            CONSUMER, "12 Mall Road", "Lahore", 31.521, 74.359, landmark="Near the mosque"
        )
        retrieved = await service.get_address(address.id, CONSUMER)

        assert retrieved.landmark == "Near the mosque"
        assert retrieved.is_saved is False
        assert await service.get_address(address.id, "someone-else") is None

    @pytest.mark.asyncio
    async def test_default_address_must_be_saved(self, session_factory):
        """Test only saved default addresses are returned as default."""
        service = AddressPersistenceService(session_factory)
        saved = await service.create_address(CONSUMER, "1 Canal Road", "Lahore", 31.5, 74.3, is_saved=True)

        assert await service.get_default_address(CONSUMER) is None

        async with session_factory() as session:
            row = await session.get(type(saved), saved.id)
            row.is_default = True
            await session.commit()

        default = await service.get_default_address(CONSUMER)
        assert default.id == saved.id


class TestOrderPersistence:
    """Test order persistence service."""

    def test_order_number_format(self):
        number = generate_order_number(datetime(2024, 1, 1))
        assert re.fullmatch(r"ORD-20240101-[0-9A-F]{6}", number)

    @pytest.mark.asyncio
    async def test_place_order(self, session_factory, seeded):
        """Test placing an order from a cart."""
        carts = CartPersistenceService(session_factory)
        addresses = AddressPersistenceService(session_factory)
        orders = OrderPersistenceService(session_factory)
        cart = await carts.add_item(CONSUMER, seeded.corner.id, seeded.cola, 2)
        address = await addresses.create_address(CONSUMER, "12 Mall Road", "Lahore", 31.521, 74.359)

        order = await orders.place_order(
            CONSUMER, address.id, cart, delivery_fee_cents=2000, surcharge_cents=0, special_instructions="Ring twice"
        )

        assert order.status == "pending"
        assert order.payment_method == "cash"
        assert order.subtotal_cents == 30000
        assert order.total_cents == 32000

        retrieved = await orders.get_order_by_id(order.id)
        assert retrieved.order_number == order.order_number
        assert retrieved.special_instructions == "Ring twice"
        assert [(item.merchant_item_id, item.quantity, item.price_cents) for item in retrieved.items] == [
            (seeded.cola.id, 2, 15000)
        ]

    @pytest.mark.asyncio
    async def test_get_missing_order(self, session_factory):
        assert await OrderPersistenceService(session_factory).get_order_by_id("missing") is None
