"""Intent extraction prompt templates."""
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional
import yaml

VOCABULARY_FILE = Path(__file__).parent / "data" / "vocabulary.yaml"

INTENT_EXAMPLES = """User: "pamper, 2 always, 3 shampoo"
Response: {
  "primaryQuery": "pamper, 2 always, 3 shampoo",
  "expandedQueries": ["Pampers", "Always", "shampoo", "diapers", "pads", "hair care"],
  "categories": ["Baby Care", "Personal Care"],
  "brands": ["Pampers", "Always"],
  "itemTypes": ["diapers", "pads", "shampoo"],
  "extractedItems": [
    {"name": "Pampers", "brand": "Pampers", "category": "Baby Care", "searchTerms": ["Pampers", "pamper", "diapers", "baby diapers"], "quantity": 1},
    {"name": "Always", "brand": "Always", "category": "Personal Care", "searchTerms": ["Always", "always pads", "sanitary pads"], "quantity": 2},
    {"name": "shampoo", "category": "Personal Care", "searchTerms": ["shampoo", "hair care", "hair wash"], "quantity": 3}
  ],
  "reasoning": "Three separate items with quantities: Pampers (1), Always pads (2) and shampoo (3)."
}

User: "2 bread, 3 milk"
Response: {
  "primaryQuery": "2 bread, 3 milk",
  "expandedQueries": ["bread", "loaf", "bakery", "milk", "dairy", "fresh milk"],
  "categories": ["Bakery & Biscuits", "Dairy & Breakfast"],
  "brands": [],
  "itemTypes": ["bread", "milk"],
  "extractedItems": [
    {"name": "bread", "category": "Bakery & Biscuits", "searchTerms": ["bread", "loaf", "bakery"], "quantity": 2},
    {"name": "milk", "category": "Dairy & Breakfast", "searchTerms": ["milk", "dairy", "fresh milk"], "quantity": 3}
  ],
  "reasoning": "Two separate items with quantities: bread (2) and milk (3)."
}

User: "0 bread"
Response: {
  "primaryQuery": "bread",
  "expandedQueries": ["bread", "loaf", "bakery bread"],
  "categories": ["Bakery & Biscuits"],
  "brands": [],
  "itemTypes": ["bread"],
  "extractedItems": [
    {"name": "bread", "category": "Bakery & Biscuits", "searchTerms": ["bread", "loaf", "bakery bread"], "quantity": 1}
  ],
  "reasoning": "A quantity of 0 is invalid, so bread is requested with the default quantity 1."
}

User: "lays"
Response: {
  "primaryQuery": "Lay's",
  "expandedQueries": ["Lay's", "lays", "Lays chips", "potato chips", "crisps"],
  "categories": ["Munchies"],
  "brands": ["Lay's"],
  "itemTypes": ["chips", "snacks"],
  "extractedItems": [
    {"name": "Lay's", "brand": "Lay's", "category": "Munchies", "searchTerms": ["Lay's", "lays", "potato chips", "crisps"], "quantity": 1}
  ],
  "reasoning": "Single search for Lay's potato chips."
}

User: "cold drink and chips"
Response: {
  "primaryQuery": "cold drink and chips",
  "expandedQueries": ["cold drink", "soft drink", "chips", "snacks", "cola", "crisps"],
  "categories": ["Cold Drinks & Juices", "Munchies"],
  "brands": [],
  "itemTypes": ["cold drink", "beverage", "chips", "snacks"],
  "extractedItems": [
    {"name": "cold drink", "category": "Cold Drinks & Juices", "searchTerms": ["cold drink", "soft drink", "cola"], "quantity": 1},
    {"name": "chips", "category": "Munchies", "searchTerms": ["chips", "crisps", "potato chips"], "quantity": 1}
  ],
  "reasoning": "Two separate items for a snack combo: a cold drink and chips."
}"""


@lru_cache
def load_vocabulary(path: Optional[str] = None) -> Dict[str, Dict[str, str]]:
    """Load brand variations and category synonyms from YAML."""
    vocabulary_file = Path(path) if path else VOCABULARY_FILE
    if not vocabulary_file.exists():
        return {"brand_variations": {}, "category_synonyms": {}}
    with open(vocabulary_file, "r") as f:
        data = yaml.safe_load(f) or {}
    return {
        "brand_variations": data.get("brand_variations") or {},
        "category_synonyms": data.get("category_synonyms") or {},
    }


def _format_mapping(mapping: Dict[str, str]) -> str:
    return ", ".join(f'"{key}" → "{value}"' for key, value in mapping.items())


def get_intent_system_prompt(available_categories: Optional[List[str]] = None) -> str:
    """Generate system prompt for intent extraction."""
    vocabulary = load_vocabulary()
    categories_context = ""
    if available_categories:
        categories_context = f"\n\nAvailable categories in shops: {', '.join(available_categories)}"

    return f"""You are a shopping assistant for a Pakistani FMCG (Fast Moving Consumer Goods) marketplace.
Your task is to understand what the user wants and expand their query intelligently.

CRITICAL: When users mention multiple items (like "pamper and always"), treat them as SEPARATE items, not a single query!

Key considerations:
1. Multiple items: If user mentions "X and Y" or "X, Y", extract them as separate items
2. Quantities: ALWAYS extract a quantity per item ("2 always" = Always, quantity 2). If no quantity is mentioned, use 1. NEVER use quantity 0.
3. Brand variations: {_format_mapping(vocabulary["brand_variations"])}
4. Category synonyms: {_format_mapping(vocabulary["category_synonyms"])}
5. Pakistani market context: Understand local terms and preferences
6. Be specific but not too broad - don't match every word containing a letter

Return a single JSON object with:
- primaryQuery: The main search query (cleaned and normalized)
- expandedQueries: Array of 3-5 search variations (brand names, synonyms, etc.)
- categories: Array of category names that might contain these items
- brands: Array of brand names mentioned or implied
- itemTypes: Array of general item types (e.g., ["chips", "snacks"])
- extractedItems: Array of individual items (each with name, brand, category, searchTerms, quantity)
- reasoning: Your thought process explaining what you understood from the query

Examples:

{INTENT_EXAMPLES}{categories_context}"""
