"""
Thin DynamoDB Gateway

This module provides the only code path that talks to DynamoDB. The gateway
exposes exactly the storage operations the collection layer needs, taking the
table name explicitly so one gateway can serve every collection of an
adapter:

- put_item / update_item / delete_item / get_item
- batch_get_item (request items keyed by table)
- query / scan (raw boto3 keyword arguments)
- describe_table

Every botocore ClientError is mapped to a domain exception by
``map_dynamodb_error`` and chained to the original error. The gateway never
retries on its own; botocore's configured retries are the only ones applied.

A fake gateway with the same methods can be injected into the collection
layer for tests.
"""

import logging
from typing import Any, Dict, Optional, Tuple

import boto3
from botocore.exceptions import ClientError

from ..config import DynamoDBConfig
from ..exceptions import (
    ConflictError,
    ConnectionError,
    ItemNotFoundError,
    RetryableError,
    ValidationError,
)

logger = logging.getLogger(__name__)


# Error code -> (exception class, message label)
_ERROR_CODES: Dict[str, Tuple[type, str]] = {}


def _register(exception_class: type, label: str, *codes: str) -> None:
    for code in codes:
        _ERROR_CODES[code] = (exception_class, label)


_register(ConflictError, "Conditional check failed", 'ConditionalCheckFailedException')
_register(ConflictError, "Transaction conflict", 'TransactionConflictException')
_register(ConflictError, "Resource in use", 'ResourceInUseException')
_register(ValidationError, "Validation failed", 'ValidationException')
_register(ValidationError, "Item collection size limit exceeded", 'ItemCollectionSizeLimitExceededException')
_register(ValidationError, "DynamoDB limit exceeded", 'LimitExceededException')
_register(
    RetryableError, "Throttling",
    'ProvisionedThroughputExceededException', 'RequestLimitExceeded', 'ThrottlingException',
    'SlowDown', 'BandwidthLimitExceeded', 'RequestThrottledException', 'TooManyRequestsException'
)
_register(
    RetryableError, "Service unavailable",
    'InternalServerError', 'ServiceUnavailable', 'ServiceException', 'ServiceUnavailableException',
    'InternalFailure', 'ServiceFailureException', 'ServiceTimeout'
)
_register(RetryableError, "Request timeout", 'RequestTimeoutException', 'RequestExpiredException')
_register(
    ConnectionError, "Authentication/authorization failed",
    'UnrecognizedClientException', 'AccessDeniedException', 'ExpiredTokenException',
    'TokenRefreshRequiredException', 'InvalidSignatureException', 'IncompleteSignatureException'
)
_register(ConnectionError, "Invalid endpoint", 'InvalidEndpointException')


def map_dynamodb_error(
    error: ClientError,
    operation: str,
    table_name: str,
    resource_id: Optional[str] = None
) -> Exception:
    """Map a botocore ClientError to the adapter's StorageError family.

    Args:
        error: The botocore ClientError
        operation: The DynamoDB operation that failed (e.g. "GetItem")
        table_name: Table (or tables) the operation targeted
        resource_id: Rendered key of the item involved, if any

    Returns:
        The domain exception to raise (chained by the caller)
    """
    details = error.response.get('Error', {})
    error_code = details.get('Code', 'Unknown')
    message = f"{operation} on {table_name}"
    if resource_id:
        message += f" (resource: {resource_id})"
    message += f": {details.get('Message', str(error))}"

    if error_code == 'ResourceNotFoundException':
        if resource_id:
            return ItemNotFoundError(table_name, {'resource_id': resource_id}, original_error=error)
        return ConnectionError(f"Table not found - {message}", original_error=error)

    if error_code not in _ERROR_CODES:
        logger.warning(f"Unknown DynamoDB error code '{error_code}' mapped to ConnectionError")
        return ConnectionError(f"DynamoDB operation failed - {message}", original_error=error)

    exception_class, label = _ERROR_CODES[error_code]
    if exception_class is ConflictError:
        return ConflictError(f"{label} - {message}", resource_id, original_error=error)
    return exception_class(f"{label} - {message}", original_error=error)


def _resource_id(key: Optional[Dict[str, Any]]) -> Optional[str]:
    if not key:
        return None
    return ", ".join(f"{k}={v}" for k, v in key.items())


class DynamoDBGateway:
    """
    Thin gateway for DynamoDB operations across the tables of one adapter.

    Table handles are created lazily and cached per table name. The boto3
    resource can be injected (e.g. one created under moto's ``mock_aws``);
    otherwise it is built from the configuration on first use.
    """

    def __init__(self, config: Optional[DynamoDBConfig] = None, resource: Any = None):
        """Initialize the gateway.

        Args:
            config: DynamoDB configuration (defaults to DynamoDBConfig.from_env())
            resource: Optional pre-built boto3 DynamoDB resource
        """
        self.config = config or DynamoDBConfig.from_env()
        self._dynamodb = resource
        self._tables: Dict[str, Any] = {}

    @property
    def dynamodb(self):
        """Lazy initialization of DynamoDB resource."""
        if self._dynamodb is None:
            try:
                session = boto3.Session(**self.config.session_kwargs())
                # resource_kwargs carries the per-call timeout and retry settings
                self._dynamodb = session.resource('dynamodb', **self.config.resource_kwargs())
                logger.debug(f"Created DynamoDB resource in {self.config.region_name}")
            except Exception as e:
                logger.error(f"Failed to create DynamoDB resource: {e}")
                raise ConnectionError(f"Failed to connect to DynamoDB: {e}", e) from e
        return self._dynamodb

    def table(self, table_name: str):
        """Get (and cache) the boto3 Table resource for a table name."""
        if table_name not in self._tables:
            try:
                self._tables[table_name] = self.dynamodb.Table(table_name)
            except Exception as e:
                logger.error(f"Failed to access table '{table_name}': {e}")
                raise ConnectionError(f"Failed to access table '{table_name}': {e}", e) from e
        return self._tables[table_name]

    def put_item(self, table_name: str, item: Dict[str, Any]) -> None:
        """Put an item into a table."""
        try:
            self.table(table_name).put_item(Item=item)
            logger.info(f"Put item in {table_name}: {list(item.keys())}")
        except ClientError as e:
            raise map_dynamodb_error(e, "PutItem", table_name) from e

    def update_item(
        self,
        table_name: str,
        key: Dict[str, Any],
        attribute_updates: Dict[str, Dict[str, Any]]
    ) -> None:
        """Update an item using per-attribute PUT/DELETE directives.

        Args:
            table_name: Table name
            key: Primary key of the item
            attribute_updates: ``{name: {'Action': 'PUT', 'Value': v}}`` or
                ``{name: {'Action': 'DELETE'}}``
        """
        try:
            update_kwargs = {'Key': key}
            if attribute_updates:
                update_kwargs['AttributeUpdates'] = attribute_updates
            self.table(table_name).update_item(**update_kwargs)
            logger.info(f"Updated item in {table_name}: {key}")
        except ClientError as e:
            raise map_dynamodb_error(e, "UpdateItem", table_name, _resource_id(key)) from e

    def delete_item(self, table_name: str, key: Dict[str, Any]) -> None:
        """Delete an item by key."""
        try:
            self.table(table_name).delete_item(Key=key)
            logger.info(f"Deleted item from {table_name}: {key}")
        except ClientError as e:
            raise map_dynamodb_error(e, "DeleteItem", table_name, _resource_id(key)) from e

    def get_item(self, table_name: str, key: Dict[str, Any], **kwargs) -> Optional[Dict[str, Any]]:
        """Get an item by key.

        Returns:
            The raw item, or None if DynamoDB reports no match
        """
        try:
            response = self.table(table_name).get_item(Key=key, **kwargs)
        except ClientError as e:
            raise map_dynamodb_error(e, "GetItem", table_name, _resource_id(key)) from e
        logger.debug(f"GetItem on {table_name}: {key} found={'Item' in response}")
        return response.get('Item')

    def batch_get_item(self, request_items: Dict[str, Dict[str, Any]], **kwargs) -> Dict[str, Any]:
        """Execute one BatchGetItem round.

        Args:
            request_items: ``{table_name: {'Keys': [...], ...}}``

        Returns:
            Raw response with ``Responses``, ``UnprocessedKeys`` and
            optionally ``ConsumedCapacity``
        """
        tables = ", ".join(request_items)
        try:
            response = self.dynamodb.batch_get_item(RequestItems=request_items, **kwargs)
        except ClientError as e:
            raise map_dynamodb_error(e, "BatchGetItem", tables) from e
        logger.debug(f"BatchGetItem on {tables}: unprocessed={bool(response.get('UnprocessedKeys'))}")
        return response

    def query(self, table_name: str, **kwargs) -> Dict[str, Any]:
        """
        Execute DynamoDB Query operation.

        Raw pass-through to boto3 with error handling.

        Example:
            response = gateway.query(
                'users',
                IndexName='ByEmail',
                KeyConditionExpression=Key('email').eq('a@example.com'),
                Limit=50
            )
        """
        try:
            return self.table(table_name).query(**kwargs)
        except ClientError as e:
            raise map_dynamodb_error(e, "Query", table_name) from e

    def scan(self, table_name: str, **kwargs) -> Dict[str, Any]:
        """
        Execute DynamoDB Scan operation.

        Scans read the whole table page by page; prefer Query whenever the
        partition key is known.
        """
        try:
            if 'Limit' not in kwargs:
                logger.debug(f"Scan on {table_name} without Limit")
            return self.table(table_name).scan(**kwargs)
        except ClientError as e:
            raise map_dynamodb_error(e, "Scan", table_name) from e

    def describe_table(self, table_name: str) -> Dict[str, Any]:
        """Return the ``Table`` description (key schema and secondary indexes)."""
        try:
            response = self.dynamodb.meta.client.describe_table(TableName=table_name)
        except ClientError as e:
            raise map_dynamodb_error(e, "DescribeTable", table_name) from e
        logger.debug(f"Described table {table_name}")
        return response['Table']


def create_gateway(config: Optional[DynamoDBConfig] = None, resource: Any = None) -> DynamoDBGateway:
    """
    Factory function to create a DynamoDBGateway instance.

    Args:
        config: DynamoDB configuration
        resource: Optional pre-built boto3 DynamoDB resource

    Returns:
        Configured DynamoDBGateway instance
    """
    return DynamoDBGateway(config, resource)


__all__ = [
    "DynamoDBGateway",
    "create_gateway",
    "map_dynamodb_error",
]
