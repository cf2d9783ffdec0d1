"""Tool definitions offered to the conversation model."""


def _function(name: str, description: str, properties: dict, required: list) -> dict:
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": description,
            "parameters": {"type": "object", "properties": properties, "required": required},
        },
    }


_SHOP_ID = {"type": "string", "description": "The UUID of the shop"}

FUNCTION_SCHEMAS = [
    _function(
        "intelligentSearch",
        "Intelligently search for items across all shops in the user's area. Understands intent, "
        "handles brand variations (e.g., \"lays\" matches \"Lay's\"), matches categories "
        "(e.g., \"chips\" matches \"Munchies\"), and returns items ready to add to cart. "
        "This is the primary search function for conversational shopping.",
        {
            "query": {
                "type": "string",
                "description": "Natural language search query (e.g., \"lays\", \"cold drink\", \"chips\")",
            },
            "maxShops": {"type": "number", "description": "Maximum number of shops to search (default: 10)"},
            "itemsPerShop": {
                "type": "number",
                "description": "Maximum number of items to return per shop (default: 10)",
            },
        },
        ["query"],
    ),
    _function(
        "searchItemsInShop",
        "Search for specific items within a shop using natural language. "
        "Useful when the user is already viewing a shop.",
        {
            "shopId": {"type": "string", "description": "The UUID of the shop to search in"},
            "query": {"type": "string", "description": "Natural language search query for items"},
            "limit": {"type": "number", "description": "Maximum number of items to return (default: 5)"},
        },
        ["shopId", "query"],
    ),
    _function(
        "addItemsToCart",
        "Add multiple items to cart at once. Use this after intelligentSearch to add all found items. "
        "IMPORTANT: Extract quantities from the user query (e.g., \"2 always\" means quantity 2). "
        "If no quantity is mentioned, default to 1.",
        {
            "items": {
                "type": "array",
                "description": "Items to add. MUST include the quantity from the user query or default to 1.",
                "items": {
                    "type": "object",
                    "properties": {
                        "shopId": _SHOP_ID,
                        "itemId": {"type": "string", "description": "The UUID of the merchant item to add"},
                        "quantity": {"type": "number", "description": "Quantity to add (default: 1)"},
                    },
                    "required": ["shopId", "itemId"],
                },
            }
        },
        ["items"],
    ),
    _function(
        "addItemToCart",
        "Add a single item to the shopping cart. Validates stock before adding.",
        {
            "shopId": _SHOP_ID,
            "itemId": {"type": "string", "description": "The UUID of the merchant item to add"},
            "quantity": {"type": "number", "description": "Quantity to add (default: 1)"},
        },
        ["shopId", "itemId"],
    ),
    _function(
        "removeItemFromCart",
        "Remove an item from the shopping cart or reduce its quantity.",
        {
            "shopId": _SHOP_ID,
            "itemId": {"type": "string", "description": "The UUID of the merchant item to remove"},
            "quantity": {
                "type": "number",
                "description": "Quantity to remove (if not specified, removes all of this item)",
            },
        },
        ["shopId", "itemId"],
    ),
    _function(
        "updateItemQuantity",
        "Update the quantity of an item in the cart.",
        {
            "shopId": _SHOP_ID,
            "itemId": {"type": "string", "description": "The UUID of the merchant item"},
            "quantity": {"type": "number", "description": "New quantity (must be at least 1)"},
        },
        ["shopId", "itemId", "quantity"],
    ),
    _function(
        "getCart",
        "Get the current shopping cart for a specific shop.",
        {"shopId": _SHOP_ID},
        ["shopId"],
    ),
    _function(
        "getAllCarts",
        "Get all shopping carts across all shops. Use this when the user asks to see, view, show or "
        "check their cart without specifying a shop.",
        {},
        [],
    ),
    _function(
        "placeOrder",
        "Place an order from a shop's cart. Uses the user's current address and Cash on Delivery payment.",
        {
            "shopId": _SHOP_ID,
            "addressId": {
                "type": "string",
                "description": "The UUID of a saved delivery address (uses the current address if not provided)",
            },
            "specialInstructions": {
                "type": "string",
                "description": "Optional delivery instructions, e.g. a nearby landmark",
            },
        },
        ["shopId"],
    ),
]

FUNCTION_NAMES = [schema["function"]["name"] for schema in FUNCTION_SCHEMAS]
