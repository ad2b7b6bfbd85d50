# Base exception class
from .base import DynamoDBAdapterError

# Domain-specific exceptions
from .domain_exceptions import (
    CoercionError,
    ConflictError,
    ConnectionError,
    ItemNotFoundError,
    RetryableError,
    RetryExhaustedError,
    SchemaError,
    StorageError,
    UnsupportedOperationError,
    ValidationError,
)

__all__ = [
    # Base exception
    "DynamoDBAdapterError",

    # Domain exceptions (alphabetically ordered)
    "CoercionError",
    "ConflictError",
    "ConnectionError",
    "ItemNotFoundError",
    "RetryableError",
    "RetryExhaustedError",
    "SchemaError",
    "StorageError",
    "UnsupportedOperationError",
    "ValidationError",
]
