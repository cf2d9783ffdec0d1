"""Tool call execution."""
import asyncio
import logging
import re
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from pydantic import ValidationError

from chatcommerce.core.errors import ErrorKind, InvalidArgumentsError
from chatcommerce.services.agent.models import CartItemRequest, ExecutionContext, FunctionCallResult
from chatcommerce.services.delivery.fees import DeliveryFeeBreakdown, DeliveryFeeCalculator
from chatcommerce.services.ordering.models import CartView, DeliveryAddress
from chatcommerce.services.ordering.stock import StockValidator, check_item_stock
from chatcommerce.services.ordering.validator import OrderValidator
from chatcommerce.services.persistence.addresses import AddressPersistenceService
from chatcommerce.services.persistence.carts import CartPersistenceService
from chatcommerce.services.persistence.orders import OrderPersistenceService
from chatcommerce.services.search.gateway import VectorSearchGateway
from chatcommerce.services.search.intelligent import IntelligentSearchService, format_search_results_for_llm
from chatcommerce.services.search.models import normalize_quantity
from chatcommerce.services.shops.repository import ShopRepository

logger = logging.getLogger(__name__)

LOCATION_UNAVAILABLE_MESSAGE = "User location not available. Please enable location services."
NO_ADDRESS_MESSAGE = "No delivery address found. Please add an address first."
LANDMARK_MESSAGE = "Please provide a nearby landmark so the rider can easily find you."

UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$", re.IGNORECASE
)
LANDMARK_PATTERN = re.compile(r"(?:landmark|near|nearby)[:\s]+([^,\.]+)", re.IGNORECASE)
MAX_INSTRUCTION_LANDMARK_LENGTH = 100


def resolve_landmark(address_landmark: Optional[str], special_instructions: Optional[str]) -> Optional[str]:
    """
    Landmark for the rider.

    The address landmark wins. Otherwise "landmark: X" / "near X" is pulled out
    of the instructions, and short instructions are taken as the landmark.
    """
    landmark = (address_landmark or "").strip()
    if landmark:
        return landmark
    if not special_instructions:
        return None
    match = LANDMARK_PATTERN.search(special_instructions)
    if match and match.group(1).strip():
        return match.group(1).strip()
    if len(special_instructions) < MAX_INSTRUCTION_LANDMARK_LENGTH:
        return special_instructions.strip() or None
    return None


def _require(args: Dict[str, Any], key: str) -> Any:
    value = args.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise InvalidArgumentsError(f"Missing required argument: {key}")
    return value


def _as_int(value: Any, key: str) -> int:
    if isinstance(value, bool):
        raise InvalidArgumentsError(f"Invalid {key}: {value}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidArgumentsError(f"Invalid {key}: {value}")
    if not number.is_integer():
        raise InvalidArgumentsError(f"Invalid {key}: {value}")
    return int(number)


class ShopDetailsCache:
    """
    Memoized shop lookup for one request.

    Two tasks asking for the same shop before the first lookup finishes may both
    fetch it; the lookup is idempotent so the later write is harmless.
    """

    def __init__(self, loader: Callable[[str], Awaitable[Any]]):
        self._loader = loader
        self._shops: Dict[str, Any] = {}

    async def get(self, shop_id: str):
        if shop_id not in self._shops:
            self._shops[shop_id] = await self._loader(shop_id)
        return self._shops[shop_id]


class FunctionRouter:
    """Executes tool calls against carts, search and ordering. Never raises."""

    def __init__(
        self,
        search_service: IntelligentSearchService,
        search_gateway: VectorSearchGateway,
        shop_repository: ShopRepository,
        cart_service: CartPersistenceService,
        address_service: AddressPersistenceService,
        order_service: OrderPersistenceService,
        stock_validator: StockValidator,
        order_validator: OrderValidator,
        fee_calculator: DeliveryFeeCalculator,
        min_landmark_length: int = 3,
        max_shops: int = 10,
        items_per_shop: int = 10,
        shop_search_limit: int = 5,
    ):
        self.search_service = search_service
        self.search_gateway = search_gateway
        self.shop_repository = shop_repository
        self.cart_service = cart_service
        self.address_service = address_service
        self.order_service = order_service
        self.stock_validator = stock_validator
        self.order_validator = order_validator
        self.fee_calculator = fee_calculator
        self.min_landmark_length = min_landmark_length
        self.max_shops = max_shops
        self.items_per_shop = items_per_shop
        self.shop_search_limit = shop_search_limit
        self._handlers = {
            "intelligentSearch": self._intelligent_search,
            "searchItemsInShop": self._search_items_in_shop,
            "addItemsToCart": self._add_items_to_cart,
            "addItemToCart": self._add_item_to_cart,
            "removeItemFromCart": self._remove_item_from_cart,
            "updateItemQuantity": self._update_item_quantity,
            "getCart": self._get_cart,
            "getAllCarts": self._get_all_carts,
            "placeOrder": self._place_order,
        }

    async def execute(
        self, function_name: str, args: Optional[Dict[str, Any]], context: ExecutionContext
    ) -> FunctionCallResult:
        """Run one tool call and return its structured result."""
        logger.info(f"[FUNCTION ROUTER] Calling {function_name} with {args}")

        handler = self._handlers.get(function_name)
        if handler is None:
            logger.warning(f"[FUNCTION ROUTER] Unknown function: {function_name}")
            return FunctionCallResult.failure(ErrorKind.UNKNOWN_FUNCTION, f"Unknown function: {function_name}")

        try:
            result = await handler(args or {}, context)
        except (InvalidArgumentsError, ValidationError) as e:
            logger.warning(f"[FUNCTION ROUTER] Invalid arguments for {function_name}: {e}")
            result = FunctionCallResult.failure(ErrorKind.INVALID_ARGUMENTS, str(e))
        except Exception as e:
            logger.error(
                f"[FUNCTION ROUTER] Error executing {function_name}: {type(e).__name__}: {e}",
                exc_info=True,
            )
            result = FunctionCallResult.failure(ErrorKind.UNEXPECTED, f"Failed to execute {function_name}")

        if result.success:
            logger.info(f"[FUNCTION ROUTER] {function_name} succeeded")
        else:
            logger.info(f"[FUNCTION ROUTER] {function_name} failed: {result.error}")
        return result

    # ---- search ----

    async def _intelligent_search(self, args: Dict[str, Any], context: ExecutionContext) -> FunctionCallResult:
        query = _require(args, "query")
        location = context.location()
        if location is None:
            return FunctionCallResult.failure(ErrorKind.ADDRESS_INVALID, LOCATION_UNAVAILABLE_MESSAGE)

        max_shops = _as_int(args["maxShops"], "maxShops") if args.get("maxShops") else self.max_shops
        items_per_shop = (
            _as_int(args["itemsPerShop"], "itemsPerShop") if args.get("itemsPerShop") else self.items_per_shop
        )
        outcome = await self.search_service.search(
            query,
            location[0],
            location[1],
            consumer_id=context.consumer_id,
            max_shops=max_shops,
            items_per_shop=items_per_shop,
        )
        if not outcome.is_ok:
            return FunctionCallResult.failure(outcome.kind or ErrorKind.UNEXPECTED, outcome.error)

        response = outcome.data
        shops = [
            {
                "shop": {
                    "id": result.shop.id,
                    "name": result.shop.name,
                    "address": result.shop.address,
                    "delivery_fee": result.shop.delivery_fee,
                },
                "items": [
                    {
                        "id": item.item_id,
                        "shop_id": result.shop.id,
                        "name": item.name,
                        "price_cents": item.price_cents,
                        "similarity": item.similarity,
                        "image_url": item.image_url,
                    }
                    for item in result.matching_items
                ],
                "category_matches": result.category_matches,
                "relevance_score": result.relevance_score,
            }
            for result in response.results
        ]
        return FunctionCallResult(
            success=True,
            result={
                "shops": shops,
                "formatted_text": format_search_results_for_llm(response),
                "reasoning": response.reasoning,
                "intent": response.intent.model_dump(mode="json"),
                "extracted_items": [item.model_dump(mode="json") for item in response.intent.extracted_items],
            },
        )

    async def _search_items_in_shop(self, args: Dict[str, Any], context: ExecutionContext) -> FunctionCallResult:
        shop_id = _require(args, "shopId")
        query = _require(args, "query")
        limit = _as_int(args["limit"], "limit") if args.get("limit") else self.shop_search_limit

        outcome = await self.search_gateway.search_in_shop(shop_id, query, limit)
        if not outcome.is_ok:
            return FunctionCallResult.failure(outcome.kind or ErrorKind.UNEXPECTED, outcome.error)

        return FunctionCallResult(
            success=True,
            result={
                "items": [
                    {
                        "id": item.item_id,
                        "name": item.name,
                        "description": item.description,
                        "price_cents": item.price_cents,
                        "similarity": item.similarity,
                        "image_url": item.image_url,
                    }
                    for item in outcome.data
                ]
            },
        )

    # ---- carts ----

    async def _add_item_to_cart(self, args: Dict[str, Any], context: ExecutionContext) -> FunctionCallResult:
        return await self._add_items_to_cart(
            {"items": [{"shopId": args.get("shopId"), "itemId": args.get("itemId"), "quantity": args.get("quantity", 1)}]},
            context,
        )

    async def _add_items_to_cart(self, args: Dict[str, Any], context: ExecutionContext) -> FunctionCallResult:
        entries = args.get("items")
        if not isinstance(entries, list) or not entries:
            raise InvalidArgumentsError("items must be a non-empty list")

        cache = ShopDetailsCache(self.shop_repository.get_shop)
        prepared = await asyncio.gather(*(self._prepare_item(entry, cache) for entry in entries))

        added: List[Dict[str, Any]] = []
        failed: List[Dict[str, Any]] = []
        added_totals: Dict[str, int] = {}
        # Cart writes stay sequential so lines of the same cart never race
        for request, item, shop, failure in prepared:
            if failure is not None:
                failed.append(failure)
                continue
            quantity = normalize_quantity(request.quantity)
            try:
                await self.cart_service.add_item(context.consumer_id, request.shop_id, item, quantity)
            except Exception as e:
                logger.error(f"[FUNCTION ROUTER] Failed to add {request.item_id} to cart: {type(e).__name__}: {e}")
                failed.append(
                    {
                        "item_id": request.item_id,
                        "item_name": item.name,
                        "reason": ErrorKind.UNEXPECTED.value,
                        "error": "Failed to add item",
                    }
                )
                continue

            logger.info(f"[FUNCTION ROUTER] Added '{item.name}' x {quantity} from {shop.name}")
            added.append(
                {
                    "item_id": item.id,
                    "name": item.name,
                    "quantity": quantity,
                    "shop_id": request.shop_id,
                    "shop_name": shop.name,
                    "price_cents": item.price_cents,
                    "image_url": item.image_url,
                }
            )
            added_totals[request.shop_id] = added_totals.get(request.shop_id, 0) + item.price_cents * quantity

        shop_ids = list(dict.fromkeys(entry["shop_id"] for entry in added))
        carts = [
            cart
            for cart in await asyncio.gather(
                *(self.cart_service.get_cart(context.consumer_id, shop_id) for shop_id in shop_ids)
            )
            if cart is not None
        ]
        delivery_infos = await self._delivery_infos(context, carts, cache, added_totals)

        summary = f"Successfully added {len(added)} item(s)"
        if failed:
            summary += f", {len(failed)} failed"

        result: Dict[str, Any] = {
            "added": added,
            "failed": failed,
            "summary": summary,
            "delivery_infos": delivery_infos,
            "carts": [cart.model_dump(mode="json") for cart in carts],
        }
        if len(shop_ids) > 1:
            result["multi_shop_warning"] = {
                "shop_ids": shop_ids,
                "message": (
                    f"Items were added from {len(shop_ids)} different shops. "
                    "Each shop is a separate order with its own delivery fee."
                ),
            }

        return FunctionCallResult(
            success=len(added) > 0,
            result=result,
            error=None if added else "No items could be added to cart",
            kind=None if added else (ErrorKind(failed[0]["reason"]) if failed else ErrorKind.UNEXPECTED),
            cart=carts[0] if carts else None,
            carts=carts or None,
            address=context.address,
        )

    async def _prepare_item(
        self, entry: Any, cache: ShopDetailsCache
    ) -> Tuple[Optional[CartItemRequest], Any, Any, Optional[Dict[str, Any]]]:
        """Parse one batch entry, then fetch, validate and resolve the shop of its item."""
        try:
            request = CartItemRequest.model_validate(entry)
        except ValidationError as e:
            logger.warning(f"[FUNCTION ROUTER] Skipping malformed cart entry {entry!r}: {e.error_count()} error(s)")
            return None, None, None, {
                "item_id": entry.get("itemId") if isinstance(entry, dict) else None,
                "item_name": "Unknown",
                "reason": ErrorKind.INVALID_ARGUMENTS.value,
                "error": "Each item needs a shopId and an itemId",
            }

        try:
            item = await self.shop_repository.get_item(request.item_id, request.shop_id)
            check = check_item_stock(request.item_id, item)
            if not check.is_valid:
                return request, None, None, {
                    "item_id": request.item_id,
                    "item_name": check.item_name,
                    "reason": check.kind.value,
                    "error": check.reason,
                }
            shop = await cache.get(request.shop_id)
            if shop is None:
                return request, None, None, {
                    "item_id": request.item_id,
                    "item_name": item.name,
                    "reason": ErrorKind.NOT_FOUND.value,
                    "error": "Shop not found",
                }
            return request, item, shop, None
        except Exception as e:
            logger.error(f"[FUNCTION ROUTER] Failed to prepare {request.item_id}: {type(e).__name__}: {e}")
            return request, None, None, {
                "item_id": request.item_id,
                "item_name": "Unknown",
                "reason": ErrorKind.UNEXPECTED.value,
                "error": "Failed to add item",
            }

    async def _delivery_infos(
        self,
        context: ExecutionContext,
        carts: List[CartView],
        cache: ShopDetailsCache,
        added_totals: Dict[str, int],
    ) -> Dict[str, Dict[str, Any]]:
        """Per-shop fee breakdown in cents for the real cart subtotals."""
        address = context.address
        if address is None or not address.has_coordinates or not carts:
            return {}

        async def info_for(cart: CartView) -> Optional[DeliveryFeeBreakdown]:
            try:
                shop = await cache.get(cart.shop_id)
                return await self.fee_calculator.quote(address.latitude, address.longitude, shop, cart.total_price)
            except Exception as e:
                logger.warning(f"[FUNCTION ROUTER] Delivery fee for shop {cart.shop_id} failed: {e}")
                return None

        breakdowns = await asyncio.gather(*(info_for(cart) for cart in carts))
        infos = {}
        for cart, breakdown in zip(carts, breakdowns):
            if breakdown is None:
                continue
            infos[cart.shop_id] = {
                "delivery_fee": round(breakdown.base_fee * 100),
                "surcharge": round(breakdown.surcharge * 100),
                "free_delivery_applied": breakdown.free_delivery_applied,
                "total": cart.total_price + round(breakdown.final_fee * 100),
                "cart_subtotal": cart.total_price,
                "added_subtotal": added_totals.get(cart.shop_id, 0),
            }
        return infos

    async def _remove_item_from_cart(self, args: Dict[str, Any], context: ExecutionContext) -> FunctionCallResult:
        shop_id = _require(args, "shopId")
        item_id = _require(args, "itemId")

        cart = await self.cart_service.get_cart(context.consumer_id, shop_id)
        if cart is None:
            return FunctionCallResult.failure(ErrorKind.NOT_FOUND, "Cart not found for this shop")
        line = cart.find_line(item_id)
        if line is None:
            return FunctionCallResult.failure(ErrorKind.NOT_FOUND, "Item not found in cart", cart=cart)

        quantity = _as_int(args["quantity"], "quantity") if args.get("quantity") is not None else None
        if quantity is not None and 0 < quantity < line.quantity:
            updated = await self.cart_service.update_quantity(
                context.consumer_id, shop_id, item_id, line.quantity - quantity
            )
            message = f"Removed {quantity} x {line.name} from cart"
        else:
            updated = await self.cart_service.remove_item(context.consumer_id, shop_id, item_id)
            message = f"Removed {line.name} from cart"

        return FunctionCallResult(
            success=True,
            result={"message": message, "cart": updated.model_dump(mode="json") if updated else None},
            cart=updated,
            carts=[updated] if updated else [],
        )

    async def _update_item_quantity(self, args: Dict[str, Any], context: ExecutionContext) -> FunctionCallResult:
        shop_id = _require(args, "shopId")
        item_id = _require(args, "itemId")
        quantity = _as_int(_require(args, "quantity"), "quantity")
        if quantity < 1:
            return FunctionCallResult.failure(ErrorKind.INVALID_ARGUMENTS, "Quantity must be at least 1")

        updated = await self.cart_service.update_quantity(context.consumer_id, shop_id, item_id, quantity)
        if updated is None:
            return FunctionCallResult.failure(ErrorKind.NOT_FOUND, "Item not found in cart")

        return FunctionCallResult(
            success=True,
            result={
                "message": f"Updated quantity to {quantity}",
                "quantity": quantity,
                "cart": updated.model_dump(mode="json"),
            },
            cart=updated,
            carts=[updated],
        )

    async def _get_cart(self, args: Dict[str, Any], context: ExecutionContext) -> FunctionCallResult:
        shop_id = _require(args, "shopId")
        cart = await self.cart_service.get_cart(context.consumer_id, shop_id)
        if cart is None:
            return FunctionCallResult(success=True, result={"cart": None, "carts": [], "message": "Cart is empty"})
        return FunctionCallResult(
            success=True,
            result={"cart": cart.model_dump(mode="json")},
            cart=cart,
            carts=[cart],
        )

    async def _get_all_carts(self, args: Dict[str, Any], context: ExecutionContext) -> FunctionCallResult:
        carts = await self.cart_service.get_all_carts(context.consumer_id)
        return FunctionCallResult(
            success=True,
            result={
                "carts": [
                    {
                        "shop_id": cart.shop_id,
                        "shop_name": cart.shop_name,
                        "item_count": cart.total_items,
                        "total_price": cart.total_price,
                    }
                    for cart in carts
                ]
            },
            carts=carts,
        )

    # ---- orders ----

    async def _resolve_address(
        self, address_id: Optional[str], context: ExecutionContext
    ) -> Tuple[Optional[str], Optional[DeliveryAddress]]:
        """
        Address to deliver to, with the saved record id when there is one.

        A saved address named by a valid UUID wins, then the current address,
        then the consumer's default address.
        """
        if address_id and UUID_PATTERN.match(address_id):
            saved = await self.address_service.get_address(address_id, context.consumer_id)
            if saved is not None:
                return saved.id, DeliveryAddress.model_validate(saved, from_attributes=True)
        elif address_id:
            logger.info(f"[FUNCTION ROUTER] Ignoring malformed address id '{address_id}'")

        if context.address is not None:
            return None, context.address

        default = await self.address_service.get_default_address(context.consumer_id)
        if default is not None:
            return default.id, DeliveryAddress.model_validate(default, from_attributes=True)
        return None, None

    async def _place_order(self, args: Dict[str, Any], context: ExecutionContext) -> FunctionCallResult:
        shop_id = _require(args, "shopId")
        special_instructions = args.get("specialInstructions")

        cart = await self.cart_service.get_cart(context.consumer_id, shop_id)
        if cart is None or not cart.items:
            return FunctionCallResult.failure(ErrorKind.CART_EMPTY, "Cart is empty")

        address_id, address = await self._resolve_address(args.get("addressId"), context)

        def fail(kind: ErrorKind, message: str) -> FunctionCallResult:
            return FunctionCallResult.failure(kind, message, cart=cart, carts=[cart], address=address)

        if address is None or not address.has_coordinates:
            return fail(ErrorKind.ADDRESS_INVALID, NO_ADDRESS_MESSAGE)

        landmark = resolve_landmark(address.landmark, special_instructions)
        if landmark is None or len(landmark) < self.min_landmark_length:
            return fail(ErrorKind.LANDMARK_MISSING, LANDMARK_MESSAGE)

        zone = await self.order_validator.check_delivery_zone(shop_id, address.latitude, address.longitude)
        if not zone.is_ok:
            return fail(zone.kind, zone.error)

        if address_id is None:
            record = await self.address_service.create_address(
                context.consumer_id,
                street_address=address.street_address or address.formatted_address or "Current Location",
                city=address.city or "Unknown",
                latitude=address.latitude,
                longitude=address.longitude,
                landmark=landmark,
                region=address.region,
                formatted_address=address.formatted_address or address.street_address,
            )
            address_id = record.id

        checks = await self.stock_validator.validate_items([line.id for line in cart.items])
        unavailable = [check for check in checks if not check.is_valid]
        if unavailable:
            names = ", ".join(cart.find_line(check.item_id).name for check in unavailable)
            return fail(
                ErrorKind.OUT_OF_STOCK,
                f"Some items are no longer available: {names}. Please remove them from your cart.",
            )

        shop = await self.shop_repository.get_shop(shop_id)
        if shop is None:
            return fail(ErrorKind.NOT_FOUND, "Shop not found")

        open_status = self.order_validator.check_shop_open(shop)
        if not open_status.is_ok:
            return fail(open_status.kind, open_status.error)

        minimum = await self.order_validator.check_minimum_order(shop_id, cart.total_price)
        if not minimum.is_ok:
            return fail(minimum.kind, minimum.error)

        breakdown = await self.fee_calculator.quote(address.latitude, address.longitude, shop, cart.total_price)
        delivery_fee_cents = 0
        surcharge_cents = 0
        if breakdown is not None:
            delivery_fee_cents = 0 if breakdown.free_delivery_applied else round(breakdown.base_fee * 100)
            surcharge_cents = round(breakdown.surcharge * 100)

        try:
            order = await self.order_service.place_order(
                context.consumer_id,
                address_id,
                cart,
                delivery_fee_cents=delivery_fee_cents,
                surcharge_cents=surcharge_cents,
                special_instructions=special_instructions,
            )
        except Exception as e:
            logger.error(f"[FUNCTION ROUTER] Order placement failed: {type(e).__name__}: {e}", exc_info=True)
            return fail(ErrorKind.ORDER_PLACEMENT_FAILURE, "Failed to place order")

        try:
            await self.cart_service.delete_cart(context.consumer_id, shop_id)
        except Exception as e:
            logger.warning(f"[FUNCTION ROUTER] Failed to clear cart after order {order.order_number}: {e}")

        return FunctionCallResult(
            success=True,
            result={
                "order": {
                    "id": order.id,
                    "order_number": order.order_number,
                    "status": order.status,
                    "subtotal_cents": order.subtotal_cents,
                    "delivery_fee_cents": order.delivery_fee_cents,
                    "surcharge_cents": order.surcharge_cents,
                    "total_cents": order.total_cents,
                },
                "message": f"Order placed successfully! Order #{order.order_number}",
            },
        )
