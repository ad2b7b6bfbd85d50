"""
Collection Read API

A fluent builder over the Collection's native Query and Scan operations.
Conditions on the current key schema become the KeyConditionExpression
when a partition key equality is present (the request is then a Query);
otherwise every condition becomes a FilterExpression and the request is a
Scan.

Example:
    orders = (
        adapter.query('orders')
        .where(region='europe')
        .condition('created_at', 'gte', since)
        .select('uuid', 'subtotal')
        .desc()
        .all()
    )

Pagination is explicit: ``page()`` performs exactly one round trip and
returns the accumulator; passing that accumulator back into ``page()``
continues from its ``last_evaluated_key``.
"""

import logging
from typing import Any, Dict, Iterator, List, Optional, Tuple

from boto3.dynamodb.conditions import Attr, Key

from ..core import Collection, KeyType, PaginatedResponse, ResultList
from ..exceptions import ValidationError
from ..mapping import CollectionMapping
from ..utils import build_projection_expression, to_dynamodb_value

logger = logging.getLogger(__name__)

KEY_OPERATORS = frozenset(['eq', 'lt', 'lte', 'gt', 'gte', 'between', 'begins_with'])
FILTER_OPERATORS = KEY_OPERATORS | frozenset(['ne', 'in', 'exists', 'not_exists', 'contains'])

# Number of values each operator takes; unlisted operators take one
OPERATOR_ARITY = {
    'between': 2,
    'exists': 0,
    'not_exists': 0,
}

Condition = Tuple[str, str, Tuple[Any, ...]]


class Query:
    """
    Fluent Query/Scan builder for one collection.

    Every builder method returns the query itself so calls can be chained.
    """

    def __init__(self, collection: Collection, mapping: CollectionMapping):
        """Initialize an empty query (a full scan until conditions are added)."""
        self.collection = collection
        self.mapping = mapping
        self._conditions: List[Condition] = []
        self._projection: Optional[List[str]] = None
        self._index: Optional[str] = None
        self._limit: Optional[int] = None
        self._forward: Optional[bool] = None
        self._consistent = False
        self._start_key: Optional[Dict[str, Any]] = None

    # -------------------------------------------------------------------------
    # Builder
    # -------------------------------------------------------------------------

    def where(self, **conditions: Any) -> 'Query':
        """Add equality conditions."""
        for attribute, value in conditions.items():
            self.condition(attribute, 'eq', value)
        return self

    def exclude(self, **conditions: Any) -> 'Query':
        """Add inequality conditions (filters; rejected on the key attributes of a Query)."""
        for attribute, value in conditions.items():
            self.condition(attribute, 'ne', value)
        return self

    def condition(self, attribute: str, operator: str, *values: Any) -> 'Query':
        """Add a condition using one of the supported operators.

        Raises:
            ValidationError: Unknown operator or wrong number of values
        """
        if operator not in FILTER_OPERATORS:
            raise ValidationError(
                f"Unsupported operator '{operator}'. Supported values: {sorted(FILTER_OPERATORS)}",
                errors={attribute: operator}
            )
        expected = OPERATOR_ARITY.get(operator, 1)
        if len(values) != expected:
            raise ValidationError(
                f"Operator '{operator}' expects {expected} value(s), got {len(values)}",
                errors={attribute: operator}
            )
        self._conditions.append((attribute, operator, values))
        return self

    def select(self, *attributes: str) -> 'Query':
        """Restrict returned attributes (ProjectionExpression)."""
        self._projection = list(attributes) or None
        return self

    def index(self, name: str) -> 'Query':
        """Run against a local or global secondary index."""
        self._index = name
        return self

    def limit(self, count: int) -> 'Query':
        """Cap the number of items evaluated per page and returned by ``all()``."""
        if not isinstance(count, int) or count < 1:
            raise ValidationError(f"Limit must be a positive integer, got {count!r}")
        self._limit = count
        return self

    def asc(self) -> 'Query':
        self._forward = True
        return self

    def desc(self) -> 'Query':
        self._forward = False
        return self

    def consistent(self) -> 'Query':
        """Request strongly consistent reads."""
        self._consistent = True
        return self

    def start_from(self, last_evaluated_key: Optional[Dict[str, Any]]) -> 'Query':
        """Resume from a continuation token returned by an earlier page."""
        self._start_key = last_evaluated_key
        return self

    # -------------------------------------------------------------------------
    # Request building
    # -------------------------------------------------------------------------

    def _dump(self, attribute: str, operator: str, value: Any) -> Any:
        if operator == 'contains':
            # Operand is an element of the attribute, not the attribute itself
            return to_dynamodb_value(value)
        if operator == 'in':
            return [to_dynamodb_value(self.collection.coercer.dump(attribute, v)) for v in value]
        return to_dynamodb_value(self.collection.coercer.dump(attribute, value))

    def _split(self) -> Tuple[str, List[Condition], List[Condition]]:
        """Decide between Query and Scan and partition the conditions.

        A Query's filter may not reference the key attributes it runs on, so
        on the query path every key attribute must fold into exactly one key
        condition.

        Raises:
            ValidationError: Conditions on a key attribute that cannot form a
                single key condition
        """
        key_schema = self.collection.key_schema(self._index)
        partition_key = next(
            (name for name, role in key_schema.items() if role == KeyType.HASH),
            None
        )
        has_partition = any(
            attribute == partition_key and operator == 'eq'
            for attribute, operator, _ in self._conditions
        )
        if not has_partition:
            return 'scan', [], list(self._conditions)

        on_keys: Dict[str, List[Condition]] = {}
        filter_conditions: List[Condition] = []
        for condition in self._conditions:
            if condition[0] in key_schema:
                on_keys.setdefault(condition[0], []).append(condition)
            else:
                filter_conditions.append(condition)

        key_conditions = [
            self._key_condition(attribute, conditions, attribute == partition_key)
            for attribute, conditions in on_keys.items()
        ]
        return 'query', key_conditions, filter_conditions

    def _key_condition(self, attribute: str, conditions: List[Condition], is_partition: bool) -> Condition:
        operators = sorted(operator for _, operator, _ in conditions)
        if is_partition:
            if operators == ['eq']:
                return conditions[0]
        elif len(conditions) == 1 and operators[0] in KEY_OPERATORS:
            return conditions[0]
        elif operators == ['gte', 'lte']:
            # lower and upper bound on the sort key
            bounds = {operator: values[0] for _, operator, values in conditions}
            return (attribute, 'between', (bounds['gte'], bounds['lte']))

        allowed = "'eq'" if is_partition else f"one of {sorted(KEY_OPERATORS)} or a 'gte'/'lte' pair"
        raise ValidationError(
            f"Conditions {operators} on key attribute '{attribute}' of {self.collection.name} "
            f"cannot be sent with a Query; use {allowed}",
            errors={attribute: operators}
        )

    def _key_expression(self, condition: Condition):
        attribute, operator, values = condition
        key = Key(attribute)
        dumped = [self._dump(attribute, operator, v) for v in values]
        if operator == 'between':
            return key.between(*dumped)
        return getattr(key, operator)(dumped[0])

    def _filter_expression(self, condition: Condition):
        attribute, operator, values = condition
        attr = Attr(attribute)
        dumped = [self._dump(attribute, operator, v) for v in values]
        if operator == 'exists':
            return attr.exists()
        elif operator == 'not_exists':
            return attr.not_exists()
        elif operator == 'between':
            return attr.between(*dumped)
        elif operator == 'in':
            return attr.is_in(dumped[0])
        return getattr(attr, operator)(dumped[0])

    @staticmethod
    def _combine(expressions: List[Any]):
        combined = expressions[0]
        for expression in expressions[1:]:
            combined = combined & expression
        return combined

    def to_options(self) -> Tuple[str, Dict[str, Any]]:
        """Build the operation name ('query' or 'scan') and boto3 keyword arguments."""
        operation, key_conditions, filter_conditions = self._split()
        options: Dict[str, Any] = {}

        if self._index:
            options['IndexName'] = self._index
        if key_conditions:
            options['KeyConditionExpression'] = self._combine(
                [self._key_expression(c) for c in key_conditions]
            )
        if filter_conditions:
            options['FilterExpression'] = self._combine(
                [self._filter_expression(c) for c in filter_conditions]
            )

        proj_expr, expr_names = build_projection_expression(self._projection)
        if proj_expr:
            options['ProjectionExpression'] = proj_expr
            options['ExpressionAttributeNames'] = expr_names

        if self._limit:
            options['Limit'] = self._limit
        if self._start_key:
            options['ExclusiveStartKey'] = self._start_key
        if self._consistent:
            options['ConsistentRead'] = True
        if self._forward is not None:
            if operation == 'query':
                options['ScanIndexForward'] = self._forward
            else:
                logger.warning(f"Ignoring sort order on scan of {self.collection.name}: scans are unordered")

        return operation, options

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    def page(self, previous_response: Optional[PaginatedResponse] = None) -> PaginatedResponse:
        """Fetch exactly one page, continuing from ``previous_response`` if given."""
        operation, options = self.to_options()
        if previous_response is not None and previous_response.last_evaluated_key:
            options['ExclusiveStartKey'] = previous_response.last_evaluated_key
        return getattr(self.collection, operation)(options, previous_response)

    def all(self) -> ResultList:
        """Follow pages until exhausted (or ``limit`` entities were read)."""
        response = self.page()
        while response.has_more:
            if self._limit and response.count >= self._limit:
                break
            response = self.page(response)

        records = list(response.entities)
        if self._limit:
            records = records[:self._limit]

        logger.debug(f"Read {len(records)} records from {self.collection.name}")
        return ResultList(
            self.mapping.deserialize(records, self.collection.coercer),
            consumed_capacity=response.consumed_capacity,
            scanned_count=response.scanned_count,
            last_evaluated_key=response.last_evaluated_key,
        )

    def count(self) -> int:
        """Count matching items across all pages (Select=COUNT)."""
        operation, options = self.to_options()
        options.pop('ProjectionExpression', None)
        options.pop('ExpressionAttributeNames', None)
        options.pop('Limit', None)
        options['Select'] = 'COUNT'

        run = getattr(self.collection, operation)
        response = run(options)
        while response.has_more:
            options['ExclusiveStartKey'] = response.last_evaluated_key
            response = run(options, response)
        return response.count

    def exists(self) -> bool:
        """Return True as soon as one page contains a matching item."""
        response = self.page()
        while response.count == 0 and response.has_more:
            response = self.page(response)
        return response.count > 0

    def __iter__(self) -> Iterator[Any]:
        return iter(self.all())
