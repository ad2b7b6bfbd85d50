
from .adapter import DynamoDBAdapter
from .config import DynamoDBConfig
from .exceptions import (
    CoercionError,
    ConflictError,
    ConnectionError,
    DynamoDBAdapterError,
    ItemNotFoundError,
    RetryableError,
    RetryExhaustedError,
    SchemaError,
    StorageError,
    UnsupportedOperationError,
    ValidationError,
)
from .mapping import (
    Coercer,
    CollectionMapping,
    Mapper,
)
from .core import (
    BatchResponse,
    Collection,
    DynamoDBGateway,
    KeySchemaResolver,
    KeyType,
    PaginatedResponse,
    ResultList,
    create_gateway,
    merge_batch,
    merge_page,
)
from .handlers import (
    Command,
    Query,
)

__version__ = "1.0.0"
__all__ = [
    # Adapter
    "DynamoDBAdapter",

    # Configuration
    "DynamoDBConfig",

    # Exceptions
    "CoercionError",
    "ConflictError",
    "ConnectionError",
    "DynamoDBAdapterError",
    "ItemNotFoundError",
    "RetryableError",
    "RetryExhaustedError",
    "SchemaError",
    "StorageError",
    "UnsupportedOperationError",
    "ValidationError",

    # Mapping
    "Coercer",
    "CollectionMapping",
    "Mapper",

    # Core
    "BatchResponse",
    "Collection",
    "DynamoDBGateway",
    "KeySchemaResolver",
    "KeyType",
    "PaginatedResponse",
    "ResultList",
    "create_gateway",
    "merge_batch",
    "merge_page",

    # Command/Query APIs
    "Command",
    "Query",
]
