"""
Collection Write API

Per-operation wrappers the adapter uses for single-entity work. A command
turns an entity into a coerced record through the collection mapping and
hands it to the Collection; reads go the other way.
"""

import logging
from typing import Any, Optional

from ..core import Collection
from ..mapping import CollectionMapping

logger = logging.getLogger(__name__)


class Command:
    """
    Write-side (and single-get) operations for one collection.

    Example:
        command = Command(collection, mapping)
        identity = command.create(user)
        command.update(user)
    """

    def __init__(self, collection: Collection, mapping: CollectionMapping):
        """Initialize command with its collection and mapping."""
        self.collection = collection
        self.mapping = mapping

    def _serialize(self, entity: Any) -> dict:
        return self.mapping.serialize(entity, self.collection.coercer)

    def create(self, entity: Any) -> Any:
        """
        Persist a new entity.

        DynamoDB Operation: PutItem (None-valued attributes omitted)

        Returns:
            The identity of the stored record, loaded through its coercer
        """
        record = self._serialize(entity)
        identity = self.collection.create(record)
        logger.info(f"Created {self.collection.name} record {identity}")
        return self.collection.coercer.load(self.mapping.identity, identity)

    def update(self, entity: Any) -> None:
        """
        Persist changes of an existing entity.

        DynamoDB Operation: UpdateItem with PUT/DELETE attribute directives
        """
        self.collection.update(self._serialize(entity))

    def delete(self, entity: Any) -> None:
        """
        Delete the record of an entity.

        DynamoDB Operation: DeleteItem
        """
        self.collection.delete(self._serialize(entity))

    def get(self, key: Any) -> Optional[Any]:
        """
        Get one entity by key.

        DynamoDB Operation: GetItem (skipped for malformed keys)

        Returns:
            The entity if found, None otherwise
        """
        record = self.collection.get(key)
        if record is None:
            return None
        return self.mapping.deserialize([record], self.collection.coercer)[0]
