"""Error taxonomy and result type shared by services."""
from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Kinds of failure a service can report."""

    EMBEDDING_FAILURE = "embedding_failure"
    VECTOR_SEARCH_FAILURE = "vector_search_failure"
    LLM_UNAVAILABLE = "llm_unavailable"
    INTENT_PARSE_ERROR = "intent_parse_error"
    NOT_FOUND = "not_found"
    OUT_OF_STOCK = "out_of_stock"
    DELIVERY_ZONE_VIOLATION = "delivery_zone_violation"
    SHOP_CLOSED = "shop_closed"
    MINIMUM_ORDER_NOT_MET = "minimum_order_not_met"
    LANDMARK_MISSING = "landmark_missing"
    ADDRESS_INVALID = "address_invalid"
    CART_EMPTY = "cart_empty"
    ORDER_PLACEMENT_FAILURE = "order_placement_failure"
    UNKNOWN_FUNCTION = "unknown_function"
    INVALID_ARGUMENTS = "invalid_arguments"
    UNEXPECTED = "unexpected"


@dataclass
class ServiceResult(Generic[T]):
    """Outcome of a service call: either data or an error with its kind."""

    data: Optional[T] = None
    error: Optional[str] = None
    kind: Optional[ErrorKind] = None

    @classmethod
    def ok(cls, data: T) -> "ServiceResult[T]":
        return cls(data=data)

    @classmethod
    def fail(cls, kind: ErrorKind, message: str) -> "ServiceResult[T]":
        return cls(error=message, kind=kind)

    @property
    def is_ok(self) -> bool:
        return self.error is None


class EmbeddingDimensionError(ValueError):
    """Raised when an embedding does not have the configured dimensionality."""

    def __init__(self, expected: int, actual: int):
        super().__init__(f"Invalid embedding dimension: expected {expected}, got {actual}")
        self.expected = expected
        self.actual = actual


class InvalidArgumentsError(ValueError):
    """Raised when a tool call is missing a required argument or has a malformed one."""
