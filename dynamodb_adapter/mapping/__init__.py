"""
Mapping layer: per-attribute coercion and collection-to-entity mappings.
"""

from .coercers import Coercer, build_codec
from .mapper import CollectionMapping, Mapper

__all__ = [
    "Coercer",
    "CollectionMapping",
    "Mapper",
    "build_codec",
]
