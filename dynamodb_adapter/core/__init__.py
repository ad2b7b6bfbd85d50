"""
Core infrastructure components for DynamoDB operations.

This module contains the foundational components used by the adapter:
- DynamoDBGateway: Thin wrapper over boto3 DynamoDB operations
- KeySchemaResolver: Cached key schemas for tables and secondary indexes
- Collection: Table-like access with serialization and pagination
- PaginatedResponse / BatchResponse: Immutable result accumulators
"""

from .collection import Collection
from .gateway import DynamoDBGateway, create_gateway, map_dynamodb_error
from .key_schema import KeySchemaResolver, KeyType
from .responses import BatchResponse, PaginatedResponse, ResultList, merge_batch, merge_page

__all__ = [
    "BatchResponse",
    "Collection",
    "DynamoDBGateway",
    "KeySchemaResolver",
    "KeyType",
    "PaginatedResponse",
    "ResultList",
    "create_gateway",
    "map_dynamodb_error",
    "merge_batch",
    "merge_page",
]
