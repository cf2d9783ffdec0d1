"""Delivery fee calculation."""
import asyncio
import logging
import math
from typing import Dict, List, Optional
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

EARTH_RADIUS_METERS = 6_371_000


class DistanceTier(BaseModel):
    """Fee charged up to a distance (metres)."""

    max_distance: float
    fee: float


DEFAULT_DISTANCE_TIERS = [
    DistanceTier(max_distance=200, fee=20),
    DistanceTier(max_distance=400, fee=30),
    DistanceTier(max_distance=600, fee=40),
    DistanceTier(max_distance=800, fee=50),
    DistanceTier(max_distance=1000, fee=60),
]


class DeliveryLogic(BaseModel):
    """A shop's delivery rules. Money values are in PKR, distances in metres."""

    shop_id: str
    minimum_order_value: float = 200
    small_order_surcharge: float = 40
    least_order_value: float = 100
    distance_mode: str = "auto"
    max_delivery_fee: float = 130
    distance_tiers: List[DistanceTier] = Field(default_factory=lambda: list(DEFAULT_DISTANCE_TIERS))
    beyond_tier_fee_per_unit: float = 10
    beyond_tier_distance_unit: float = 250
    free_delivery_threshold: float = 800
    free_delivery_radius: float = 1000

    @classmethod
    def from_orm_config(cls, config) -> "DeliveryLogic":
        """Build from a DeliveryLogicConfig row."""
        tiers = config.distance_tiers
        return cls(
            shop_id=config.shop_id,
            minimum_order_value=config.minimum_order_value,
            small_order_surcharge=config.small_order_surcharge,
            least_order_value=config.least_order_value,
            distance_mode=config.distance_mode,
            max_delivery_fee=config.max_delivery_fee,
            distance_tiers=[DistanceTier(**tier) for tier in tiers] if tiers is not None else list(DEFAULT_DISTANCE_TIERS),
            beyond_tier_fee_per_unit=config.beyond_tier_fee_per_unit,
            beyond_tier_distance_unit=config.beyond_tier_distance_unit,
            free_delivery_threshold=config.free_delivery_threshold,
            free_delivery_radius=config.free_delivery_radius,
        )


class DeliveryFeeBreakdown(BaseModel):
    """Fee components for one order at one distance (PKR)."""

    base_fee: float
    surcharge: float
    free_delivery_applied: bool
    final_fee: float


class OrderValueCheck(BaseModel):
    """Result of the hard minimum order check."""

    is_valid: bool
    message: Optional[str] = None


def calculate_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in metres (haversine)."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_METERS * c


def calculate_delivery_fee(distance: float, logic: DeliveryLogic) -> float:
    """Tiered fee for a distance, capped at the shop's maximum fee."""
    if not logic.distance_tiers:
        return logic.max_delivery_fee

    tiers = sorted(logic.distance_tiers, key=lambda tier: tier.max_distance)
    for tier in tiers:
        if distance <= tier.max_distance:
            return min(tier.fee, logic.max_delivery_fee)

    last = tiers[-1]
    extra_distance = distance - last.max_distance
    unit = logic.beyond_tier_distance_unit if logic.beyond_tier_distance_unit > 0 else 1
    extra_units = math.ceil(extra_distance / unit)
    fee = last.fee + extra_units * logic.beyond_tier_fee_per_unit
    return min(fee, logic.max_delivery_fee)


def calculate_total_delivery_fee(
    order_value: float, distance: float, logic: DeliveryLogic
) -> DeliveryFeeBreakdown:
    """
    Fee for an order of order_value PKR delivered over distance metres.

    Free delivery needs both the order threshold and the free radius. Below
    minimum_order_value a small-order surcharge is added.
    """
    base_fee = calculate_delivery_fee(distance, logic)

    if order_value >= logic.free_delivery_threshold and distance <= logic.free_delivery_radius:
        return DeliveryFeeBreakdown(
            base_fee=base_fee, surcharge=0, free_delivery_applied=True, final_fee=0
        )

    surcharge = logic.small_order_surcharge if order_value < logic.minimum_order_value else 0
    return DeliveryFeeBreakdown(
        base_fee=base_fee,
        surcharge=surcharge,
        free_delivery_applied=False,
        final_fee=base_fee + surcharge,
    )


def validate_order_value(order_value: float, logic: Optional[DeliveryLogic]) -> OrderValueCheck:
    """Hard minimum order check. Shops without delivery rules accept any order."""
    if logic is None or order_value >= logic.least_order_value:
        return OrderValueCheck(is_valid=True)
    return OrderValueCheck(
        is_valid=False,
        message=f"Minimum order value is Rs {logic.least_order_value:.0f}",
    )


class DeliveryFeeCalculator:
    """Computes search-time delivery fees for many shops with one config lookup."""

    def __init__(self, delivery_logic_repository):
        self.delivery_logic_repository = delivery_logic_repository

    async def calculate_for_shops(
        self, user_lat: float, user_lng: float, shops: List
    ) -> Dict[str, float]:
        """
        Base fee (PKR) per shop id at an order value of 0.

        Shops without coordinates or without delivery rules get 0.
        """
        logic_by_shop = await self.delivery_logic_repository.get_many([shop.id for shop in shops])

        async def fee_for(shop) -> float:
            logic = logic_by_shop.get(shop.id)
            if shop.latitude is None or shop.longitude is None or logic is None:
                return 0.0
            distance = calculate_distance(user_lat, user_lng, shop.latitude, shop.longitude)
            return calculate_total_delivery_fee(0, distance, logic).base_fee

        fees = await asyncio.gather(*(fee_for(shop) for shop in shops))
        return {shop.id: fee for shop, fee in zip(shops, fees)}

    async def quote(
        self, user_lat: float, user_lng: float, shop, subtotal_cents: int
    ) -> Optional[DeliveryFeeBreakdown]:
        """Fee breakdown for a real cart subtotal, or None when the shop has no delivery rules."""
        logic = await self.delivery_logic_repository.get(shop.id)
        if logic is None:
            return None
        distance = 0.0
        if shop.latitude is not None and shop.longitude is not None:
            distance = calculate_distance(user_lat, user_lng, shop.latitude, shop.longitude)
        return calculate_total_delivery_fee(subtotal_cents / 100, distance, logic)
