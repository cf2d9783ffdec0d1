"""Function execution models."""
from typing import Any, List, Optional
from pydantic import BaseModel, Field

from chatcommerce.core.errors import ErrorKind
from chatcommerce.services.ordering.models import CartView, DeliveryAddress


class ExecutionContext(BaseModel):
    """Who is calling and where they want things delivered."""

    consumer_id: str
    address: Optional[DeliveryAddress] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    def location(self) -> Optional[tuple]:
        """Coordinates to search from: explicit location first, then the address."""
        if self.latitude is not None and self.longitude is not None:
            return self.latitude, self.longitude
        if self.address is not None and self.address.has_coordinates:
            return self.address.latitude, self.address.longitude
        return None


class FunctionCallResult(BaseModel):
    """
    Outcome of one tool call.

    cart, carts and address are re-attached on user-correctable failures so
    the caller can show the in-progress state again.
    """

    success: bool
    result: Optional[Any] = None
    error: Optional[str] = None
    kind: Optional[ErrorKind] = None
    cart: Optional[CartView] = None
    carts: Optional[List[CartView]] = None
    address: Optional[DeliveryAddress] = None

    @classmethod
    def failure(cls, kind: ErrorKind, error: str, **state) -> "FunctionCallResult":
        return cls(success=False, kind=kind, error=error, **state)

    def to_message(self) -> dict:
        """JSON-safe form sent back to the model and the client."""
        return self.model_dump(mode="json", exclude_none=True)


class CartItemRequest(BaseModel):
    """One entry of an addItemsToCart batch."""

    shop_id: str = Field(alias="shopId")
    item_id: str = Field(alias="itemId")
    quantity: Any = 1

    model_config = {"populate_by_name": True}
