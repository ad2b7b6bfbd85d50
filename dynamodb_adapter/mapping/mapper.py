"""
Collection Mapping

Declarative description of how a logical collection maps onto entities:
which pydantic model represents a record, which attribute is the identity,
and how each persisted attribute is coerced.

Usage:
    class User(BaseModel):
        id: Optional[str] = None
        name: Optional[str] = None
        active: Optional[bool] = None

    mapper = Mapper(
        CollectionMapping(
            name='users',
            entity=User,
            attributes={'id': 'string', 'name': 'string', 'active': 'boolean'},
        )
    )
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Type, Union

from pydantic import BaseModel

from ..exceptions import CoercionError, SchemaError
from .coercers import Coercer

logger = logging.getLogger(__name__)


class CollectionMapping:
    """Maps one collection name to an entity class and its attribute coercions."""

    def __init__(
        self,
        name: str,
        entity: Type[BaseModel],
        attributes: Mapping[str, Union[str, type]],
        identity: str = 'id'
    ):
        """Initialize the mapping.

        Args:
            name: Collection name (e.g. 'users')
            entity: Pydantic model class records are loaded into
            attributes: Mapping of attribute name to coercion kind
            identity: Name of the identity attribute

        Raises:
            CoercionError: If the identity is not a mapped attribute
        """
        self.name = str(name)
        self.entity = entity
        self.attributes = dict(attributes)
        self.identity = identity

        if identity not in self.attributes:
            raise CoercionError(
                f"Identity '{identity}' of collection '{self.name}' has no coercion",
                attribute=identity
            )

    def coercer(self, user_timezone: Optional[str] = None) -> Coercer:
        """Build the coercer registry for this collection."""
        return Coercer(self.attributes, user_timezone=user_timezone)

    def identity_of(self, entity: Any) -> Any:
        return _read(entity, self.identity)

    def set_identity(self, entity: Any, value: Any) -> None:
        if isinstance(entity, dict):
            entity[self.identity] = value
        else:
            setattr(entity, self.identity, value)

    def serialize(self, entity: Any, coercer: Coercer) -> Dict[str, Any]:
        """Read the mapped attributes off an entity and dump them.

        Attributes that are None stay None; create drops them, update turns
        them into DELETE directives.
        """
        return {
            name: coercer.dump(name, _read(entity, name))
            for name in self.attributes
        }

    def deserialize(self, records: Iterable[Mapping[str, Any]], coercer: Coercer) -> List[Any]:
        """Load storage records into entity instances."""
        return [self.entity(**coercer.load_record(record)) for record in records]

    def __repr__(self) -> str:
        return f"CollectionMapping(name={self.name!r}, entity={self.entity.__name__}, identity={self.identity!r})"


class Mapper:
    """Registry of collection mappings, looked up by collection name."""

    def __init__(self, *mappings: CollectionMapping):
        self._mappings: Dict[str, CollectionMapping] = {}
        for mapping in mappings:
            self.register(mapping)

    def register(self, mapping: CollectionMapping) -> None:
        self._mappings[mapping.name] = mapping
        logger.debug(f"Registered mapping for collection '{mapping.name}'")

    def collection(self, name: str) -> CollectionMapping:
        """Return the mapping for a collection.

        Raises:
            SchemaError: If the collection was never mapped
        """
        try:
            return self._mappings[str(name)]
        except KeyError:
            raise SchemaError(
                f"Collection '{name}' is not mapped",
                resource_type='collection',
                resource_name=str(name)
            ) from None

    def collections(self) -> List[str]:
        return list(self._mappings)


def _read(entity: Any, attribute: str) -> Any:
    if isinstance(entity, dict):
        return entity.get(attribute)
    return getattr(entity, attribute, None)
