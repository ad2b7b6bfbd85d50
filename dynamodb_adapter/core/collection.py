"""
Collection Accessor

A ``Collection`` acts like one DynamoDB table for the layers above it. It is
the only component that calls the storage gateway, and it owns:

- key schema lookups (through KeySchemaResolver)
- (de)serialization of records, keys and update directives
- single-item CRUD
- one-round batch-get and one-page query/scan, folded into immutable
  response accumulators

Records handled here are plain dicts whose values have already been dumped
by the collection's coercer; only key attributes are coerced again (by name)
when a key is built, so raw key values can be passed to ``get``.
"""

import logging
import uuid
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from ..exceptions import ValidationError
from ..mapping.coercers import Coercer
from ..utils import from_dynamodb_value, is_blank, to_dynamodb_value
from .key_schema import KeySchemaResolver, KeyType
from .responses import BatchResponse, PaginatedResponse, merge_batch, merge_page

logger = logging.getLogger(__name__)


def _generate_id() -> str:
    return str(uuid.uuid4())


class Collection:
    """
    Table-like access to one collection through the storage gateway.

    Example:
        collection = Collection(gateway, coercer, 'users', 'id')
        identity = collection.create({'name': 'Ada'})
        record = collection.get([identity])
    """

    def __init__(
        self,
        gateway: Any,
        coercer: Coercer,
        name: str,
        identity: str,
        table_name: Optional[str] = None,
        id_generator: Callable[[], Any] = _generate_id
    ):
        """Initialize a collection.

        Args:
            gateway: Storage gateway (DynamoDBGateway or a compatible fake)
            coercer: Attribute coercer registry for this collection
            name: Collection name (e.g. 'users')
            identity: Identity attribute name (e.g. 'id')
            table_name: DynamoDB table name (defaults to the collection name)
            id_generator: Callable producing identities for new records
        """
        self.gateway = gateway
        self.coercer = coercer
        self.name = str(name)
        self.identity = identity
        self.table_name = table_name or self.name
        self.id_generator = id_generator
        self._resolver = KeySchemaResolver(gateway, self.table_name)

    def __repr__(self) -> str:
        return f"Collection(name={self.name!r}, table_name={self.table_name!r}, identity={self.identity!r})"

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def create(self, record: Dict[str, Any]) -> Any:
        """Put a record, assigning a new identity if it has none.

        The identity is written back onto ``record``.

        Returns:
            The record's identity
        """
        if record.get(self.identity) is None:
            record[self.identity] = self.id_generator()

        self.gateway.put_item(self.table_name, self.serialize_item(record))
        return record[self.identity]

    def update(self, record: Mapping[str, Any]) -> None:
        """Update the non-key attributes of the record's item.

        None-valued attributes are removed from the item rather than written.
        """
        self.gateway.update_item(
            self.table_name,
            self.serialize_key(record),
            self.serialize_attributes(record)
        )

    def delete(self, record: Mapping[str, Any]) -> None:
        """Delete the item identified by the record's key attributes."""
        self.gateway.delete_item(self.table_name, self.serialize_key(record))

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get(self, key: Any) -> Optional[Dict[str, Any]]:
        """Get one record by key.

        Args:
            key: Key components in key schema order, a mapping of key
                attribute names to values, or a scalar for single-attribute keys

        Returns:
            The deserialized record, or None when no item matches. Keys with
            a blank component or the wrong number of components return None
            without calling DynamoDB.
        """
        components = self.key_components(key)
        if not self._valid_components(components):
            logger.debug(f"Skipping GetItem on {self.table_name} for invalid key {key!r}")
            return None

        item = self.gateway.get_item(self.table_name, self.serialize_key(components))
        if item is None:
            return None
        return self.deserialize_item(item)

    def batch_get(self, keys: Sequence[Any], previous_response: Optional[BatchResponse] = None) -> BatchResponse:
        """Execute one BatchGetItem round for the given keys.

        Keys are normalized to component lists and de-duplicated. If any key
        is blank or has the wrong arity an empty response is returned without
        calling DynamoDB.

        Args:
            keys: Keys in any form accepted by ``get``
            previous_response: Accumulator from an earlier round

        Returns:
            New accumulator with this round's entities appended and the
            unprocessed keys/consumed capacity of this round
        """
        normalized: List[List[Any]] = []
        for key in keys:
            components = self.key_components(key)
            if components not in normalized:
                normalized.append(components)

        if not normalized or not all(self._valid_components(components) for components in normalized):
            logger.debug(f"Skipping BatchGetItem on {self.table_name}: invalid or empty keys")
            return BatchResponse()

        response = self.gateway.batch_get_item({
            self.table_name: {
                'Keys': [self.serialize_key(components) for components in normalized]
            }
        })

        return self.deserialize_batch_response(response, previous_response)

    def query(self, options: Optional[Dict[str, Any]] = None, previous_response: Optional[PaginatedResponse] = None) -> PaginatedResponse:
        """Execute one Query page and fold it into ``previous_response``.

        Args:
            options: boto3 query keyword arguments (the table name is injected)
            previous_response: Accumulator from earlier pages
        """
        response = self.gateway.query(self.table_name, **self._options(options))
        return self.deserialize_response(response, previous_response)

    def scan(self, options: Optional[Dict[str, Any]] = None, previous_response: Optional[PaginatedResponse] = None) -> PaginatedResponse:
        """Execute one Scan page and fold it into ``previous_response``."""
        response = self.gateway.scan(self.table_name, **self._options(options))
        return self.deserialize_response(response, previous_response)

    # -------------------------------------------------------------------------
    # Schema
    # -------------------------------------------------------------------------

    def schema(self) -> Dict[str, Any]:
        """Return the cached DescribeTable output."""
        return self._resolver.schema()

    def key_schema(self, index: Optional[str] = None) -> Dict[str, KeyType]:
        return self._resolver.key_schema(index)

    def is_key(self, attribute: str, index: Optional[str] = None) -> bool:
        return self._resolver.is_key(attribute, index)

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def serialize_item(self, record: Mapping[str, Any]) -> Dict[str, Any]:
        """Build a PutItem item, dropping None-valued attributes."""
        return {
            str(name): to_dynamodb_value(value)
            for name, value in record.items()
            if value is not None
        }

    def serialize_key(self, record: Any) -> Dict[str, Any]:
        """Build a key from a record mapping or positional components.

        Exactly the key schema attributes are emitted, in schema order, each
        coerced by name.

        Raises:
            ValidationError: If a key component is missing
        """
        key = {}
        for position, name in enumerate(self.key_schema()):
            if isinstance(record, Mapping):
                value = record.get(name)
            else:
                value = record[position] if position < len(record) else None
            if value is None:
                raise ValidationError(
                    f"Missing key attribute '{name}' for {self.table_name}",
                    errors={name: 'required'}
                )
            key[name] = to_dynamodb_value(self.coercer.dump(name, value))
        return key

    def serialize_attributes(self, record: Mapping[str, Any]) -> Dict[str, Dict[str, Any]]:
        """Build UpdateItem directives for the non-key attributes of a record."""
        keys = self.key_schema()
        updates = {}
        for name, value in record.items():
            if name in keys:
                continue
            if value is None:
                updates[str(name)] = {'Action': 'DELETE'}
            else:
                updates[str(name)] = {'Action': 'PUT', 'Value': to_dynamodb_value(value)}
        return updates

    def deserialize_item(self, item: Mapping[str, Any]) -> Dict[str, Any]:
        """Convert a storage item into a record with plain Python values."""
        return {str(name): from_dynamodb_value(value) for name, value in item.items()}

    def deserialize_response(self, response: Mapping[str, Any], previous_response: Optional[PaginatedResponse] = None) -> PaginatedResponse:
        """Fold a raw Query/Scan response into an accumulator."""
        items = response.get('Items') or []
        page = PaginatedResponse(
            count=response.get('Count', len(items)),
            scanned_count=response.get('ScannedCount', 0),
            entities=tuple(self.deserialize_item(item) for item in items),
            last_evaluated_key=response.get('LastEvaluatedKey'),
            consumed_capacity=response.get('ConsumedCapacity'),
        )
        logger.debug(f"Page from {self.table_name}: {page.count} items, more={page.has_more}")
        return merge_page(previous_response, page)

    def deserialize_batch_response(self, response: Mapping[str, Any], previous_response: Optional[BatchResponse] = None) -> BatchResponse:
        """Fold a raw BatchGetItem response into an accumulator."""
        entities = []
        for items in (response.get('Responses') or {}).values():
            entities.extend(self.deserialize_item(item) for item in items)

        unprocessed = (response.get('UnprocessedKeys') or {}).get(self.table_name) or {}
        batch = BatchResponse(
            entities=tuple(entities),
            unprocessed_keys=list(unprocessed.get('Keys') or []),
            consumed_capacity=response.get('ConsumedCapacity'),
        )
        return merge_batch(previous_response, batch)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def key_components(self, key: Any) -> List[Any]:
        """Normalize a key (scalar, sequence or mapping) to components in key schema order."""
        if isinstance(key, Mapping):
            # Values are kept as given so a Decimal key is re-sent unchanged
            components = [key.get(name) for name in self.key_schema()]
            # Extra attributes in a key mapping make it the wrong arity
            if len(key) != len(components):
                components.extend(key[name] for name in key if name not in self.key_schema())
            return components
        if isinstance(key, (str, bytes)) or not isinstance(key, Sequence):
            return [key]
        return list(key)

    def valid_key(self, key: Any) -> bool:
        """True if the key has no blank component and matches the key schema arity."""
        return self._valid_components(self.key_components(key))

    def _valid_components(self, components: List[Any]) -> bool:
        if any(is_blank(value) for value in components):
            return False
        return len(components) == len(self.key_schema())

    def _options(self, options: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        options = dict(options or {})
        options.pop('TableName', None)
        return options
