"""Search models."""
from typing import Any, List, Optional
from pydantic import BaseModel, Field, field_validator, model_validator


def normalize_quantity(value: Any) -> int:
    """Return value when it is an integer >= 1, otherwise 1."""
    if isinstance(value, bool):
        return 1
    if isinstance(value, int):
        return value if value >= 1 else 1
    if isinstance(value, float):
        return int(value) if value.is_integer() and value >= 1 else 1
    if isinstance(value, str):
        try:
            parsed = int(value.strip())
        except ValueError:
            return 1
        return parsed if parsed >= 1 else 1
    return 1


def _list_or_empty(value: Any) -> Any:
    """Treat a null list as empty and drop null entries."""
    if value is None:
        return []
    if isinstance(value, list):
        return [entry for entry in value if entry is not None]
    return value


class ExtractedItem(BaseModel):
    """One item the user asked for."""

    name: str
    brand: Optional[str] = None
    category: Optional[str] = None
    search_terms: List[str] = Field(default_factory=list, alias="searchTerms")
    quantity: int = 1

    model_config = {"populate_by_name": True}

    @field_validator("search_terms", mode="before")
    @classmethod
    def _coerce_search_terms(cls, value: Any) -> Any:
        return _list_or_empty(value)

    @field_validator("quantity", mode="before")
    @classmethod
    def _normalize_quantity(cls, value: Any) -> int:
        return normalize_quantity(value)

    @model_validator(mode="after")
    def _ensure_search_terms(self) -> "ExtractedItem":
        self.search_terms = [term for term in self.search_terms if term and term.strip()]
        if not self.search_terms:
            self.search_terms = [self.name]
        return self


class SearchIntent(BaseModel):
    """Structured reading of a free-text shopping query."""

    primary_query: str = Field(alias="primaryQuery")
    expanded_queries: List[str] = Field(default_factory=list, alias="expandedQueries")
    categories: List[str] = Field(default_factory=list)
    brands: List[str] = Field(default_factory=list)
    item_types: List[str] = Field(default_factory=list, alias="itemTypes")
    extracted_items: List[ExtractedItem] = Field(default_factory=list, alias="extractedItems")
    reasoning: str = ""

    model_config = {"populate_by_name": True}

    @field_validator("expanded_queries", "categories", "brands", "item_types", "extracted_items", mode="before")
    @classmethod
    def _coerce_lists(cls, value: Any) -> Any:
        return _list_or_empty(value)

    @field_validator("reasoning", mode="before")
    @classmethod
    def _coerce_reasoning(cls, value: Any) -> Any:
        return "" if value is None else value

    @model_validator(mode="after")
    def _ensure_queries(self) -> "SearchIntent":
        self.expanded_queries = [q for q in self.expanded_queries if q and q.strip()]
        if not self.expanded_queries:
            self.expanded_queries = [self.primary_query]
        return self

    @classmethod
    def fallback(cls, query: str, reasoning: str) -> "SearchIntent":
        """Single-item intent that searches for the raw query."""
        return cls(
            primary_query=query,
            expanded_queries=[query],
            extracted_items=[ExtractedItem(name=query, search_terms=[query], quantity=1)],
            reasoning=reasoning,
        )


class SearchItemResult(BaseModel):
    """An item returned by a similarity or text search."""

    item_id: str
    name: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    price_cents: int = Field(default=0, ge=0)
    is_active: bool = True
    similarity: float = Field(ge=0.0, le=1.0)
    shop_id: Optional[str] = None
    shop_name: Optional[str] = None

    @classmethod
    def from_row(cls, row: dict) -> "SearchItemResult":
        """Build from a vector store row."""
        return cls(
            item_id=str(row["merchant_item_id"]),
            name=row["item_name"],
            description=row.get("item_description"),
            image_url=row.get("item_image_url"),
            price_cents=int(row.get("price_cents") or 0),
            is_active=bool(row.get("is_active", True)),
            similarity=min(1.0, max(0.0, float(row.get("similarity") or 0.0))),
            shop_id=str(row["shop_id"]) if row.get("shop_id") is not None else None,
            shop_name=row.get("shop_name"),
        )


class ShopSummary(BaseModel):
    """Shop fields carried through search results."""

    id: str
    name: str
    address: Optional[str] = None
    image_url: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    delivery_fee: float = 0.0  # PKR


class ShopSearchResult(BaseModel):
    """A shop with its matching items and relevance score."""

    shop: ShopSummary
    matching_items: List[SearchItemResult] = Field(default_factory=list)
    category_matches: List[str] = Field(default_factory=list)
    relevance_score: float = 0.0


class IntelligentSearchResponse(BaseModel):
    """Ranked shops for a query, with the intent that produced them."""

    results: List[ShopSearchResult] = Field(default_factory=list)
    reasoning: str = ""
    intent: SearchIntent
