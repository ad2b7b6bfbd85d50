"""
DynamoDB Adapter

Top-level entry point of the package. The adapter owns one Collection per
mapped collection name (created lazily and cached for its lifetime) and
implements the persistence operations a repository layer calls:

- create / update / delete / find
- batch_find (BatchGetItem with an unprocessed-keys retry loop)
- query / scan / clear

Example:
    mapper = Mapper(CollectionMapping('users', User, {'id': 'string', 'name': 'string'}))
    adapter = DynamoDBAdapter(mapper, DynamoDBConfig.from_env())

    user = adapter.create('users', User(name='Ada'))
    same = adapter.find('users', user.id)
    users = adapter.batch_find('users', [user.id, other_id])
"""

import logging
import time
from typing import Any, Dict, List, Optional, Sequence

from .config import DynamoDBConfig
from .core import BatchResponse, Collection, DynamoDBGateway, ResultList
from .exceptions import RetryExhaustedError, UnsupportedOperationError, ValidationError
from .handlers import Command, Query
from .mapping import CollectionMapping, Mapper

logger = logging.getLogger(__name__)

# DynamoDB accepts at most 100 keys per BatchGetItem request
BATCH_GET_LIMIT = 100

MAX_BACKOFF_SECONDS = 1.0


class DynamoDBAdapter:
    """
    Persistence adapter backed by DynamoDB.

    Collections share a single gateway (and so a single boto3 resource).
    Key schemas are described once per table and cached by each Collection.
    """

    def __init__(
        self,
        mapper: Mapper,
        config: Optional[DynamoDBConfig] = None,
        gateway: Any = None
    ):
        """Initialize the adapter.

        Args:
            mapper: Registry of collection mappings
            config: DynamoDB configuration (defaults to DynamoDBConfig.from_env())
            gateway: Optional storage gateway; built from ``config`` when omitted
        """
        self.mapper = mapper
        self.config = config or DynamoDBConfig.from_env()
        self.gateway = gateway or DynamoDBGateway(self.config)
        self._collections: Dict[str, Collection] = {}

        if self.config.enable_debug_logging:
            logging.getLogger('dynamodb_adapter').setLevel(logging.DEBUG)

    # -------------------------------------------------------------------------
    # Collection access
    # -------------------------------------------------------------------------

    def _mapping(self, name: str) -> CollectionMapping:
        return self.mapper.collection(name)

    def _collection(self, name: str) -> Collection:
        name = str(name)
        if name not in self._collections:
            mapping = self._mapping(name)
            self._collections[name] = Collection(
                self.gateway,
                mapping.coercer(self.config.user_timezone),
                name,
                mapping.identity,
                table_name=self.config.get_table_name(name)
            )
            logger.debug(f"Initialized collection '{name}' on table {self._collections[name].table_name}")
        return self._collections[name]

    def command(self, collection: str) -> Command:
        """Build the write API for a collection."""
        return Command(self._collection(collection), self._mapping(collection))

    def query(self, collection: str) -> Query:
        """Start a fluent query (or scan) on a collection."""
        return Query(self._collection(collection), self._mapping(collection))

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def create(self, collection: str, entity: Any) -> Any:
        """Persist a new entity and assign its identity.

        Returns:
            The entity, with its identity set
        """
        identity = self.command(collection).create(entity)
        self._mapping(collection).set_identity(entity, identity)
        return entity

    def update(self, collection: str, entity: Any) -> Any:
        """Persist the changes of an existing entity.

        Raises:
            ValidationError: If the entity is missing a key attribute
        """
        self.command(collection).update(entity)
        return entity

    def delete(self, collection: str, entity: Any) -> None:
        """Delete the record of an entity."""
        self.command(collection).delete(entity)

    def clear(self, collection: str) -> None:
        """Delete every record of a collection.

        Scans the whole table and deletes item by item, so it is slow on
        large tables.
        """
        deleted = 0
        for entity in self.query(collection).all():
            self.delete(collection, entity)
            deleted += 1
        logger.info(f"Cleared {deleted} records from {collection}")

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def find(self, collection: str, *key: Any) -> Optional[Any]:
        """Find one entity by its key.

        The key can be passed as positional components (``find('orders',
        'europe', 42)``), as a single sequence, or as a mapping of key
        attribute names to values.

        Returns:
            The entity, or None when not found or the key is malformed
        """
        if len(key) == 1 and isinstance(key[0], (list, tuple, dict)):
            key = key[0]
        return self.command(collection).get(key)

    def batch_find(
        self,
        collection: str,
        keys: Sequence[Any],
        max_retries: Optional[int] = None,
        deadline: Optional[float] = None
    ) -> ResultList:
        """Find many entities with BatchGetItem.

        Keys are de-duplicated and split into requests of at most 100 keys.
        Keys DynamoDB leaves unprocessed are requested again, with
        exponential backoff, until none remain.

        Args:
            collection: Collection name
            keys: Keys in any form accepted by ``find``
            max_retries: Follow-up rounds allowed per request
                (defaults to ``config.batch_max_retries``)
            deadline: Time budget in seconds for the whole call

        Returns:
            ResultList of entities in the order DynamoDB returned them, with
            ``unprocessed_keys`` and ``consumed_capacity`` of the last round.
            Empty (without calling DynamoDB) when any key is malformed.

        Raises:
            ValidationError: Negative max_retries or deadline
            RetryExhaustedError: Keys remain unprocessed after max_retries
                rounds or once the deadline has passed
        """
        if max_retries is None:
            max_retries = self.config.batch_max_retries
        if max_retries < 0:
            raise ValidationError(f"max_retries must be >= 0, got {max_retries}", errors={'max_retries': max_retries})
        if deadline is not None and deadline < 0:
            raise ValidationError(f"deadline must be >= 0, got {deadline}", errors={'deadline': deadline})

        target = self._collection(collection)
        mapping = self._mapping(collection)

        unique: List[List[Any]] = []
        for key in keys:
            components = target.key_components(key)
            if not target.valid_key(components):
                logger.debug(f"Skipping BatchGetItem on {target.table_name}: malformed key {key!r}")
                return ResultList()
            if components not in unique:
                unique.append(components)

        if not unique:
            return ResultList()

        expires_at = time.monotonic() + deadline if deadline is not None else None

        response: Optional[BatchResponse] = None
        for start in range(0, len(unique), BATCH_GET_LIMIT):
            chunk = unique[start:start + BATCH_GET_LIMIT]
            response = self._batch_get_with_retry(target, chunk, response, max_retries, expires_at)

        entities = mapping.deserialize(response.entities, target.coercer)
        logger.debug(f"Batch found {len(entities)} of {len(unique)} records in {target.table_name}")
        return ResultList(
            entities,
            consumed_capacity=response.consumed_capacity,
            unprocessed_keys=list(response.unprocessed_keys),
        )

    def _batch_get_with_retry(
        self,
        target: Collection,
        keys: List[Any],
        response: Optional[BatchResponse],
        max_retries: int,
        expires_at: Optional[float]
    ) -> BatchResponse:
        """Run BatchGetItem rounds for one chunk until no key is unprocessed."""
        pending: List[Any] = keys
        attempt = 0

        while pending:
            response = target.batch_get(pending, response)
            pending = response.unprocessed_keys
            if not pending:
                break

            attempt += 1
            if attempt > max_retries:
                logger.error(
                    f"Giving up on {len(pending)} unprocessed keys in {target.table_name} "
                    f"after {max_retries} retries"
                )
                raise RetryExhaustedError(
                    f"BatchGetItem on {target.table_name} left {len(pending)} keys unprocessed "
                    f"after {max_retries} retries",
                    unprocessed_keys=pending,
                    response=response,
                    attempts=attempt
                )
            if expires_at is not None and time.monotonic() >= expires_at:
                logger.error(f"Deadline passed with {len(pending)} unprocessed keys in {target.table_name}")
                raise RetryExhaustedError(
                    f"BatchGetItem on {target.table_name} left {len(pending)} keys unprocessed "
                    f"when the deadline passed",
                    unprocessed_keys=pending,
                    response=response,
                    attempts=attempt
                )

            delay = min(self.config.batch_retry_base_delay * (2 ** (attempt - 1)), MAX_BACKOFF_SECONDS)
            logger.warning(
                f"Retrying {len(pending)} unprocessed keys in {target.table_name} after {delay:.2f}s "
                f"(attempt {attempt}/{max_retries})"
            )
            time.sleep(delay)

        return response

    def scan(self, collection: str) -> ResultList:
        """Read every entity of a collection."""
        return self.query(collection).all()

    def first(self, collection: str) -> Any:
        """Not supported: DynamoDB tables have no total order."""
        raise UnsupportedOperationError('first', 'DynamoDB does not allow table-wide sorting')

    def last(self, collection: str) -> Any:
        """Not supported: DynamoDB tables have no total order."""
        raise UnsupportedOperationError('last', 'DynamoDB does not allow table-wide sorting')
