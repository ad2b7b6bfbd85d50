"""
Response Accumulators

Multi-item reads arrive in pieces: query/scan one page at a time, batch-get
one round at a time. The accumulators below carry the merged result across
calls and are never mutated; ``merge_page`` and ``merge_batch`` return a new
accumulator each time.

Accumulation rules:
- entities: previous entities followed by the new ones, in storage order
- count / scanned_count: summed
- last_evaluated_key / unprocessed_keys / consumed_capacity: replaced by the
  most recent call
"""

from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class PaginatedResponse(BaseModel):
    """Accumulated query/scan result."""

    count: int = 0
    scanned_count: int = 0
    entities: Tuple[Dict[str, Any], ...] = ()
    last_evaluated_key: Optional[Dict[str, Any]] = None
    consumed_capacity: Any = None

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    @property
    def has_more(self) -> bool:
        """True while DynamoDB reports another page."""
        return bool(self.last_evaluated_key)

    def merge(self, page: 'PaginatedResponse') -> 'PaginatedResponse':
        return merge_page(self, page)


class BatchResponse(BaseModel):
    """Accumulated batch-get result."""

    entities: Tuple[Dict[str, Any], ...] = ()
    unprocessed_keys: List[Dict[str, Any]] = Field(default_factory=list)
    consumed_capacity: Any = None

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    @property
    def complete(self) -> bool:
        """True once DynamoDB left no keys unprocessed."""
        return not self.unprocessed_keys

    def merge(self, batch: 'BatchResponse') -> 'BatchResponse':
        return merge_batch(self, batch)


def merge_page(accumulator: Optional[PaginatedResponse], page: PaginatedResponse) -> PaginatedResponse:
    """Fold one page into an accumulator, returning a new accumulator."""
    if accumulator is None:
        return page
    # Both sides are already validated; skip re-validating every entity
    return PaginatedResponse.model_construct(
        count=accumulator.count + page.count,
        scanned_count=accumulator.scanned_count + page.scanned_count,
        entities=accumulator.entities + page.entities,
        last_evaluated_key=page.last_evaluated_key,
        consumed_capacity=page.consumed_capacity,
    )


def merge_batch(accumulator: Optional[BatchResponse], batch: BatchResponse) -> BatchResponse:
    """Fold one batch-get round into an accumulator, returning a new accumulator."""
    if accumulator is None:
        return batch
    return BatchResponse.model_construct(
        entities=accumulator.entities + batch.entities,
        unprocessed_keys=list(batch.unprocessed_keys),
        consumed_capacity=batch.consumed_capacity,
    )


class ResultList(list):
    """
    List of entities that also carries DynamoDB response metadata.

    Returned to callers of the adapter so results still behave like a plain
    list while exposing continuation and capacity information.
    """

    def __init__(
        self,
        entities=(),
        consumed_capacity: Any = None,
        scanned_count: Optional[int] = None,
        last_evaluated_key: Optional[Dict[str, Any]] = None,
        unprocessed_keys: Optional[List[Dict[str, Any]]] = None
    ):
        super().__init__(entities)
        self.consumed_capacity = consumed_capacity
        self.scanned_count = scanned_count
        self.last_evaluated_key = last_evaluated_key
        self.unprocessed_keys = unprocessed_keys or []
