"""Cart and address models."""
from typing import List, Optional
from pydantic import BaseModel, Field, computed_field


class CartLine(BaseModel):
    """One item in a cart."""

    id: str
    name: str
    quantity: int = Field(ge=1)
    price_cents: int = Field(ge=0)


class CartView(BaseModel):
    """A consumer's cart for one shop with derived totals."""

    shop_id: str
    shop_name: str = "Shop"
    shop_image: Optional[str] = None
    shop_address: Optional[str] = None
    shop_latitude: Optional[float] = None
    shop_longitude: Optional[float] = None
    items: List[CartLine] = Field(default_factory=list)

    @computed_field
    @property
    def total_items(self) -> int:
        return sum(line.quantity for line in self.items)

    @computed_field
    @property
    def total_price(self) -> int:
        """Subtotal in cents."""
        return sum(line.quantity * line.price_cents for line in self.items)

    def find_line(self, item_id: str) -> Optional[CartLine]:
        for line in self.items:
            if line.id == item_id:
                return line
        return None

    @classmethod
    def from_orm_cart(cls, cart) -> "CartView":
        shop = cart.shop
        return cls(
            shop_id=cart.shop_id,
            shop_name=shop.name if shop is not None else "Shop",
            shop_image=shop.image_url if shop is not None else None,
            shop_address=shop.address if shop is not None else None,
            shop_latitude=shop.latitude if shop is not None else None,
            shop_longitude=shop.longitude if shop is not None else None,
            items=[
                CartLine(id=line.item_id, name=line.name, quantity=line.quantity, price_cents=line.price_cents)
                for line in cart.items
            ],
        )


class DeliveryAddress(BaseModel):
    """Address the consumer currently has selected in the client."""

    id: Optional[str] = None
    street_address: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    landmark: Optional[str] = None
    formatted_address: Optional[str] = None

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None
