"""Database models."""
import uuid
from datetime import datetime
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    JSON,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def _uuid() -> str:
    return str(uuid.uuid4())


item_categories = Table(
    "item_categories",
    Base.metadata,
    Column("item_id", String(36), ForeignKey("merchant_items.id", ondelete="CASCADE"), primary_key=True),
    Column("category_id", String(36), ForeignKey("shop_categories.id", ondelete="CASCADE"), primary_key=True),
)


class Shop(Base):
    """Shop model."""

    __tablename__ = "shops"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String, nullable=False)
    address = Column(String, nullable=True)
    image_url = Column(String, nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    delivery_radius = Column(Float, default=3000, nullable=False)  # metres
    is_active = Column(Boolean, default=True, nullable=False)
    opening_hours = Column(JSON, nullable=True)  # {"monday": {"open": "09:00", "close": "22:00", "enabled": true}}
    holidays = Column(JSON, nullable=True)  # [{"date": "2024-12-25", "description": "..."}]
    open_status_mode = Column(String, default="auto", nullable=False)  # auto, manual_open, manual_closed
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    categories = relationship("ShopCategory", back_populates="shop", cascade="all, delete-orphan")
    items = relationship("MerchantItem", back_populates="shop", cascade="all, delete-orphan")
    delivery_logic = relationship(
        "DeliveryLogicConfig", back_populates="shop", uselist=False, cascade="all, delete-orphan"
    )


class ShopCategory(Base):
    """Shop-specific item category."""

    __tablename__ = "shop_categories"

    id = Column(String(36), primary_key=True, default=_uuid)
    shop_id = Column(String(36), ForeignKey("shops.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    # Relationships
    shop = relationship("Shop", back_populates="categories")
    items = relationship("MerchantItem", secondary=item_categories, back_populates="categories")


class MerchantItem(Base):
    """Item sold by a shop."""

    __tablename__ = "merchant_items"

    id = Column(String(36), primary_key=True, default=_uuid)
    shop_id = Column(String(36), ForeignKey("shops.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    image_url = Column(String, nullable=True)
    price_cents = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    # Relationships
    shop = relationship("Shop", back_populates="items")
    categories = relationship("ShopCategory", secondary=item_categories, back_populates="items")


class DeliveryLogicConfig(Base):
    """Per-shop delivery fee configuration. Money values are in PKR."""

    __tablename__ = "delivery_logic"

    id = Column(Integer, primary_key=True, index=True)
    shop_id = Column(String(36), ForeignKey("shops.id"), unique=True, nullable=False)
    minimum_order_value = Column(Float, default=200, nullable=False)
    small_order_surcharge = Column(Float, default=40, nullable=False)
    least_order_value = Column(Float, default=100, nullable=False)
    distance_mode = Column(String, default="auto", nullable=False)  # auto, custom
    max_delivery_fee = Column(Float, default=130, nullable=False)
    distance_tiers = Column(JSON, nullable=True)  # [{"max_distance": 200, "fee": 20}, ...]
    beyond_tier_fee_per_unit = Column(Float, default=10, nullable=False)
    beyond_tier_distance_unit = Column(Float, default=250, nullable=False)
    free_delivery_threshold = Column(Float, default=800, nullable=False)
    free_delivery_radius = Column(Float, default=1000, nullable=False)

    # Relationships
    shop = relationship("Shop", back_populates="delivery_logic")


class Cart(Base):
    """A consumer's cart for one shop."""

    __tablename__ = "carts"
    __table_args__ = (UniqueConstraint("consumer_id", "shop_id", name="uq_carts_consumer_shop"),)

    id = Column(Integer, primary_key=True, index=True)
    consumer_id = Column(String, nullable=False, index=True)
    shop_id = Column(String(36), ForeignKey("shops.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    shop = relationship("Shop")
    items = relationship(
        "CartItem", back_populates="cart", cascade="all, delete-orphan", order_by="CartItem.id"
    )


class CartItem(Base):
    """Cart line."""

    __tablename__ = "cart_items"
    __table_args__ = (UniqueConstraint("cart_id", "item_id", name="uq_cart_items_cart_item"),)

    id = Column(Integer, primary_key=True, index=True)
    cart_id = Column(Integer, ForeignKey("carts.id", ondelete="CASCADE"), nullable=False)
    item_id = Column(String(36), nullable=False)
    name = Column(String, nullable=False)
    quantity = Column(Integer, default=1, nullable=False)
    price_cents = Column(Integer, default=0, nullable=False)

    # Relationships
    cart = relationship("Cart", back_populates="items")


class Address(Base):
    """Consumer delivery address."""

    __tablename__ = "addresses"

    id = Column(String(36), primary_key=True, default=_uuid)
    consumer_id = Column(String, nullable=False, index=True)
    street_address = Column(String, nullable=False)
    city = Column(String, nullable=False)
    region = Column(String, nullable=True)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    landmark = Column(String, nullable=True)
    formatted_address = Column(String, nullable=True)
    is_saved = Column(Boolean, default=False, nullable=False)
    is_default = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class Order(Base):
    """Order model."""

    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=_uuid)
    order_number = Column(String, unique=True, index=True, nullable=False)
    consumer_id = Column(String, nullable=False, index=True)
    shop_id = Column(String(36), ForeignKey("shops.id"), nullable=False)
    address_id = Column(String(36), ForeignKey("addresses.id"), nullable=False)
    status = Column(String, default="pending", nullable=False)  # pending, confirmed, delivered, cancelled
    payment_method = Column(String, default="cash", nullable=False)
    special_instructions = Column(Text, nullable=True)
    subtotal_cents = Column(Integer, nullable=False)
    delivery_fee_cents = Column(Integer, default=0, nullable=False)
    surcharge_cents = Column(Integer, default=0, nullable=False)
    total_cents = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")


class OrderItem(Base):
    """Order item model."""

    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False)
    merchant_item_id = Column(String(36), nullable=False)
    item_name = Column(String, nullable=False)
    quantity = Column(Integer, default=1, nullable=False)
    price_cents = Column(Integer, nullable=False)

    # Relationships
    order = relationship("Order", back_populates="items")


class UserPreference(Base):
    """Learned consumer preference (embedding lives in the vector store)."""

    __tablename__ = "user_preferences"

    id = Column(String(36), primary_key=True, default=_uuid)
    consumer_id = Column(String, nullable=False, index=True)
    preference_type = Column(String, default="item", nullable=False)  # item, brand, category
    entity_name = Column(String, nullable=False)
    preference_value = Column(String, default="prefers", nullable=False)  # prefers, avoids, allergic
    confidence_score = Column(Float, default=0.5, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
