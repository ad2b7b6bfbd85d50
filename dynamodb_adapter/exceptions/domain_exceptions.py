"""
Exceptions raised by the adapter, grouped by where the failure happens.

Local failures (validation, schema, coercion) are raised before any network
call. Storage faults wrap the botocore error they were mapped from and are
never retried by the adapter itself.
"""

from typing import Any, Dict, List, Optional

from .base import DynamoDBAdapterError


def _present(**values: Any) -> Dict[str, Any]:
    return {name: value for name, value in values.items() if value}


# =============================================================================
# Local failures
# =============================================================================

class ValidationError(DynamoDBAdapterError):
    """Input rejected before it reaches DynamoDB, or a ValidationException from it.

    ``errors`` maps the offending field (a key attribute, a builder argument)
    to what is wrong with it.
    """

    def __init__(self, message: str, errors: Optional[Dict[str, Any]] = None, original_error: Optional[Exception] = None):
        self.errors = errors or {}
        super().__init__(message, original_error, _present(validation_errors=self.errors))


class SchemaError(DynamoDBAdapterError):
    """An index or collection name that the table description or mapper does not know."""

    def __init__(self, message: str, resource_type: Optional[str] = None, resource_name: Optional[str] = None, original_error: Optional[Exception] = None):
        self.resource_type = resource_type
        self.resource_name = resource_name
        super().__init__(message, original_error, _present(resource_type=resource_type, resource_name=resource_name))


class CoercionError(DynamoDBAdapterError):
    """An attribute with no coercion, an unknown kind, or a value its kind cannot hold.

    These point at a bug in the mapping definition, not at a transient fault.
    """

    def __init__(self, message: str, attribute: Optional[str] = None, original_error: Optional[Exception] = None):
        self.attribute = attribute
        super().__init__(message, original_error, _present(attribute=attribute))


# =============================================================================
# Storage faults
# =============================================================================

class StorageError(DynamoDBAdapterError):
    """Base class for faults reported by DynamoDB or the network client."""


class ItemNotFoundError(StorageError):
    """DynamoDB reported the resource behind a keyed operation as missing."""

    def __init__(self, table_name: str, key: dict, original_error: Optional[Exception] = None):
        self.table_name = table_name
        self.key = key
        super().__init__(
            f"No item in '{table_name}' for key {key}",
            original_error,
            {'table_name': table_name, 'key': key}
        )


class ConflictError(StorageError):
    """A conditional or transactional check failed, or the table is busy."""

    def __init__(self, message: str, resource_id: Optional[str] = None, original_error: Optional[Exception] = None):
        self.resource_id = resource_id
        super().__init__(message, original_error, _present(resource_id=resource_id))


class ConnectionError(StorageError):
    """DynamoDB could not be reached or refused the caller.

    Also used for missing tables and for error codes the adapter does not know.
    """


class RetryableError(StorageError):
    """Throttling or a temporary service failure; the caller decides whether to retry."""

    def __init__(self, message: str, retry_after_seconds: Optional[int] = None, original_error: Optional[Exception] = None):
        self.retry_after_seconds = retry_after_seconds
        super().__init__(message, original_error, _present(retry_after_seconds=retry_after_seconds))


# =============================================================================
# Batch retrieval and capabilities
# =============================================================================

class RetryExhaustedError(DynamoDBAdapterError):
    """``batch_find`` stopped with keys still unprocessed.

    Attributes:
        unprocessed_keys: Keys DynamoDB never returned
        response: The partial BatchResponse gathered before giving up
        attempts: Follow-up rounds that were made
    """

    def __init__(self, message: str, unprocessed_keys: Optional[List[Dict[str, Any]]] = None, response: Any = None, attempts: Optional[int] = None):
        self.unprocessed_keys = unprocessed_keys or []
        self.response = response
        self.attempts = attempts
        context: Dict[str, Any] = {'unprocessed_count': len(self.unprocessed_keys)}
        if attempts is not None:
            context['attempts'] = attempts
        super().__init__(message, None, context)


class UnsupportedOperationError(DynamoDBAdapterError):
    """An operation the DynamoDB storage model cannot express."""

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        super().__init__(
            f"'{operation}' is not supported by this storage model: {reason}",
            None,
            {'operation': operation}
        )
