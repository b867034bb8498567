"""
Unit tests for the POS exception hierarchy.
"""

import pytest

from storepos.exceptions import (
    PosError, BusinessLogicError, ValidationError, NotFoundError,
    InsufficientStockError, DraftIncompleteError, CommitFailedError,
    AlreadyCommittedError, EmptyCartError, InvalidQuantityError,
    ItemNotInDraftError, violation_error
)
from storepos.services.draft_sale import DraftViolation


class TestPosErrorPayload:

    def test_to_dict_merges_payload(self):
        error = NotFoundError('Cliente no encontrado', payload={'customer_id': 9})
        assert error.status_code == 404
        assert error.to_dict() == {
            'customer_id': 9,
            'message': 'Cliente no encontrado',
            'code': 'NOT_FOUND',
            'status': 'error',
        }

    def test_insufficient_stock_carries_details(self):
        error = InsufficientStockError(product_id=4, available=1, requested=3, product_name='Yerba')
        assert isinstance(error, BusinessLogicError)
        assert error.status_code == 409
        assert (error.product_id, error.available, error.requested) == (4, 1, 3)
        assert 'Yerba' in error.message
        assert error.to_dict()['requested'] == 3

    def test_draft_incomplete_lists_missing_fields(self):
        error = DraftIncompleteError(missing=['customer', 'payment_method'])
        assert isinstance(error, ValidationError)
        assert error.status_code == 422
        assert error.to_dict()['missing'] == ['customer', 'payment_method']

    def test_commit_failed_is_retryable_server_error(self):
        error = CommitFailedError(attempts=4)
        assert error.status_code == 503
        assert error.to_dict()['attempts'] == 4

    def test_already_committed_keeps_original(self):
        class Finalized:
            sale_id = 12

        original = Finalized()
        error = AlreadyCommittedError('key-1', original)
        assert error.finalized_sale is original
        assert error.status_code == 200
        assert '12' in error.message

    def test_every_error_is_a_pos_error(self):
        for error in (EmptyCartError(), InvalidQuantityError(), CommitFailedError()):
            assert isinstance(error, PosError)


class TestViolationError:

    @pytest.mark.parametrize('violation,expected', [
        (DraftViolation.EMPTY_CART, EmptyCartError),
        (DraftViolation.INVALID_QUANTITY, InvalidQuantityError),
        (DraftViolation.ITEM_NOT_FOUND, ItemNotInDraftError),
    ])
    def test_maps_violation_to_exception(self, violation, expected):
        error = violation_error(violation)
        assert type(error) is expected
        assert error.code == violation.value

    def test_unknown_violation_is_generic_validation_error(self):
        error = violation_error('SOMETHING_ELSE')
        assert type(error) is ValidationError
        assert error.status_code == 422
