"""
Tests for immutable response accumulators (core/responses.py).
"""

import pytest
from pydantic import ValidationError as PydanticValidationError

from dynamodb_adapter.core import BatchResponse, PaginatedResponse, ResultList, merge_batch, merge_page


def _page(ids, last_key=None, capacity=None, scanned=None):
    return PaginatedResponse(
        count=len(ids),
        scanned_count=scanned if scanned is not None else len(ids),
        entities=tuple({'id': i} for i in ids),
        last_evaluated_key=last_key,
        consumed_capacity=capacity,
    )


class TestMergePage:

    def test_two_pages_accumulate_in_order(self):
        first = _page(['a', 'b', 'c'], last_key={'id': 'c'}, capacity={'CapacityUnits': 1.0})
        second = _page(['d', 'e'], last_key={'id': 'e'}, capacity={'CapacityUnits': 0.5})

        merged = merge_page(first, second)

        assert merged.count == 5
        assert [e['id'] for e in merged.entities] == ['a', 'b', 'c', 'd', 'e']
        assert merged.last_evaluated_key == {'id': 'e'}
        assert merged.consumed_capacity == {'CapacityUnits': 0.5}

    def test_last_key_is_replaced_not_kept(self):
        merged = merge_page(_page(['a'], last_key={'id': 'a'}), _page(['b']))

        assert merged.last_evaluated_key is None
        assert not merged.has_more

    def test_scanned_count_is_summed(self):
        merged = merge_page(_page(['a'], scanned=10), _page(['b'], scanned=4))

        assert merged.scanned_count == 14

    def test_no_accumulator_returns_page(self):
        page = _page(['a'])

        assert merge_page(None, page) is page

    def test_inputs_are_not_mutated(self):
        first = _page(['a', 'b'], last_key={'id': 'b'})
        second = _page(['c'])

        first.merge(second)

        assert first.count == 2
        assert len(first.entities) == 2
        assert first.last_evaluated_key == {'id': 'b'}

    def test_accumulator_is_frozen(self):
        page = _page(['a'])

        with pytest.raises(PydanticValidationError):
            page.count = 3

    def test_merge_reuses_accumulated_entities(self):
        first = _page(['a', 'b'], last_key={'id': 'b'})
        second = _page(['c'])

        merged = merge_page(merge_page(first, second), _page(['d']))

        assert merged.entities[0] is first.entities[0]
        assert merged.entities[2] is second.entities[0]
        assert merged.count == 4
        with pytest.raises(PydanticValidationError):
            merged.count = 0


class TestMergeBatch:

    def test_entities_append_and_unprocessed_replaced(self):
        first = BatchResponse(
            entities=tuple({'id': str(i)} for i in range(7)),
            unprocessed_keys=[{'id': '7'}, {'id': '8'}, {'id': '9'}],
        )
        second = BatchResponse(entities=tuple({'id': str(i)} for i in range(7, 10)))

        merged = merge_batch(first, second)

        assert [e['id'] for e in merged.entities] == [str(i) for i in range(10)]
        assert merged.unprocessed_keys == []
        assert merged.complete
        assert not first.complete

    def test_no_accumulator_returns_batch(self):
        batch = BatchResponse()

        assert merge_batch(None, batch) is batch
        assert batch.merge(BatchResponse(entities=({'id': 'a'},))).entities == ({'id': 'a'},)

    def test_merge_reuses_accumulated_entities(self):
        first = BatchResponse(entities=({'id': 'a'},), unprocessed_keys=[{'id': 'b'}])
        second = BatchResponse(entities=({'id': 'b'},))

        merged = first.merge(second)

        assert merged.entities[0] is first.entities[0]
        assert merged.entities[1] is second.entities[0]
        assert merged.complete


class TestResultList:

    def test_behaves_like_list_with_metadata(self):
        result = ResultList(['a', 'b'], consumed_capacity={'CapacityUnits': 2}, last_evaluated_key={'id': 'b'})

        assert result == ['a', 'b']
        assert len(result) == 2
        assert result.consumed_capacity == {'CapacityUnits': 2}
        assert result.last_evaluated_key == {'id': 'b'}
        assert result.unprocessed_keys == []
        assert result.scanned_count is None
