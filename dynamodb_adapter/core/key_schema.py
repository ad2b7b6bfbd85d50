"""
Key Schema Resolution

Derives the ordered key attributes of a table, or of one of its local or
global secondary indexes, from the DescribeTable output. The description is
fetched once per resolver and every key schema derived from it is cached for
the resolver's lifetime; schema changes require a new adapter.

The order of the returned mapping is the order DynamoDB declares (HASH before
RANGE). Positional keys elsewhere in the adapter depend on it.
"""

import logging
from enum import Enum
from typing import Any, Dict, List, Optional

from ..exceptions import SchemaError

logger = logging.getLogger(__name__)


class KeyType(str, Enum):
    """Role of an attribute within a key schema."""
    HASH = "HASH"
    RANGE = "RANGE"


class KeySchemaResolver:
    """Caches the table description and the key schemas derived from it."""

    def __init__(self, gateway: Any, table_name: str):
        """Initialize the resolver.

        Args:
            gateway: Object exposing ``describe_table(table_name)``
            table_name: DynamoDB table name
        """
        self.gateway = gateway
        self.table_name = table_name
        self._schema: Optional[Dict[str, Any]] = None
        self._key_schema: Dict[Optional[str], Dict[str, KeyType]] = {}

    def schema(self) -> Dict[str, Any]:
        """Fetch (once) and return the table description."""
        if self._schema is None:
            self._schema = self.gateway.describe_table(self.table_name)
            logger.debug(f"Cached schema for {self.table_name}")
        return self._schema

    def index_names(self) -> List[str]:
        return list(self._indexes())

    def _indexes(self) -> Dict[str, Dict[str, Any]]:
        schema = self.schema()
        everything = list(schema.get('LocalSecondaryIndexes') or []) + \
            list(schema.get('GlobalSecondaryIndexes') or [])
        return {index['IndexName']: index for index in everything}

    def key_schema(self, index: Optional[str] = None) -> Dict[str, KeyType]:
        """Return ``{attribute_name: KeyType}`` for the table or a named index.

        Args:
            index: Secondary index name; None for the table itself

        Raises:
            SchemaError: If the index does not exist on the table
        """
        if index in self._key_schema:
            return self._key_schema[index]

        if index is None:
            current_schema = self.schema().get('KeySchema') or []
        else:
            indexes = self._indexes()
            if index not in indexes:
                raise SchemaError(
                    f"Index '{index}' not found on table '{self.table_name}'. "
                    f"Available indexes: {sorted(indexes)}",
                    resource_type='index',
                    resource_name=index
                )
            current_schema = indexes[index].get('KeySchema') or []

        # HASH first, then RANGE, regardless of how the description lists them
        ordered = sorted(current_schema, key=lambda key: 0 if key['KeyType'] == KeyType.HASH.value else 1)
        resolved = {key['AttributeName']: KeyType(key['KeyType']) for key in ordered}

        self._key_schema[index] = resolved
        return resolved

    def is_key(self, attribute: str, index: Optional[str] = None) -> bool:
        """Check whether an attribute is part of the table or index key schema."""
        return attribute in self.key_schema(index)
