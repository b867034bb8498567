"""
Unit tests for the in-memory draft sale session.
"""

import pytest
from decimal import Decimal

from storepos.models import PaymentMethod
from storepos.services.draft_sale import (
    CustomerRef, DraftSale, DraftSessionStore, DraftViolation, SaleStep
)


@pytest.fixture
def draft():
    return DraftSale()


class TestDraftStep:
    """Tests for the derived workflow step."""

    def test_new_draft_starts_at_customer(self, draft):
        assert draft.step == SaleStep.CUSTOMER
        assert draft.customer is None
        assert draft.line_items == []
        assert draft.payment_method is None
        assert draft.total_amount == Decimal('0.00')

    def test_step_advances_with_each_prerequisite(self, draft):
        draft.select_customer(CustomerRef(id=1, name='C1'))
        assert draft.step == SaleStep.PRODUCTS

        draft.add_item(10, 1, '5.00')
        assert draft.step == SaleStep.PAYMENT

        draft.set_payment_method('CARD')
        assert draft.step == SaleStep.CONFIRMATION
        assert draft.can_commit() is True

    def test_removing_last_item_goes_back_to_products(self, draft):
        draft.select_customer(1)
        draft.add_item(10, 1, '5.00')
        draft.remove_item(10)
        assert draft.step == SaleStep.PRODUCTS

    def test_missing_fields(self, draft):
        assert draft.missing_fields() == ['customer', 'line_items', 'payment_method']
        draft.select_customer(1)
        draft.add_item(10, 1, '5.00')
        assert draft.missing_fields() == ['payment_method']


class TestSelectCustomer:

    def test_accepts_row_like_objects(self, draft):
        class Row:
            id = 7
            name = 'Ana'

        assert draft.select_customer(Row())
        assert draft.customer == CustomerRef(id=7, name='Ana')

    def test_accepts_plain_id(self, draft):
        assert draft.select_customer('3')
        assert draft.customer.id == 3

    def test_rejects_garbage(self, draft):
        result = draft.select_customer('abc')
        assert not result
        assert result.violation == DraftViolation.INVALID_CUSTOMER
        assert draft.customer is None

    def test_replacing_customer_keeps_items(self, draft):
        draft.select_customer(1)
        draft.add_item(10, 2, '1.50')
        draft.select_customer(2)
        assert draft.customer.id == 2
        assert len(draft.line_items) == 1


class TestAddItem:
    """Tests for adding and merging lines."""

    def test_add_new_line(self, draft):
        result = draft.add_item(10, 2, Decimal('10.00'))
        assert result.ok is True
        line = draft.get_line(10)
        assert line.quantity == 2
        assert line.subtotal == Decimal('20.00')
        assert draft.total_amount == Decimal('20.00')

    def test_same_product_merges_quantity(self, draft):
        draft.add_item(10, 2, '10.00')
        draft.add_item(10, 3, '10.00')
        assert len(draft.line_items) == 1
        assert draft.get_line(10).quantity == 5
        assert draft.total_amount == Decimal('50.00')

    def test_merge_keeps_latest_price(self, draft):
        draft.add_item(10, 1, '10.00')
        draft.add_item(10, 1, '12.00')
        line = draft.get_line(10)
        assert line.unit_price == Decimal('12.00')
        assert line.subtotal == Decimal('24.00')

    def test_lines_keep_insertion_order(self, draft):
        draft.add_item(30, 1, '1')
        draft.add_item(10, 1, '1')
        draft.add_item(30, 1, '1')
        assert [line.product_id for line in draft.line_items] == [30, 10]

    @pytest.mark.parametrize('quantity', [0, -1, 1.5, '2', True, None])
    def test_invalid_quantity_leaves_draft_unchanged(self, draft, quantity):
        draft.add_item(10, 1, '1.00')
        result = draft.add_item(10, quantity, '1.00')
        assert result.violation == DraftViolation.INVALID_QUANTITY
        assert draft.get_line(10).quantity == 1

    @pytest.mark.parametrize('price', ['-0.01', 'abc', None, 'NaN'])
    def test_invalid_price(self, draft, price):
        result = draft.add_item(10, 1, price)
        assert result.violation == DraftViolation.INVALID_PRICE
        assert draft.line_items == []

    def test_zero_price_is_allowed(self, draft):
        assert draft.add_item(10, 1, '0')
        assert draft.total_amount == Decimal('0.00')

    def test_total_is_sum_of_subtotals(self, draft):
        draft.add_item(1, 3, '0.10')
        draft.add_item(2, 1, '19.99')
        assert draft.total_amount == Decimal('20.29')


class TestUpdateAndRemove:

    def test_update_quantity_replaces(self, draft):
        draft.add_item(10, 2, '10.00')
        assert draft.update_quantity(10, 7)
        assert draft.get_line(10).quantity == 7
        assert draft.total_amount == Decimal('70.00')

    def test_update_missing_item(self, draft):
        result = draft.update_quantity(99, 1)
        assert result.violation == DraftViolation.ITEM_NOT_FOUND

    def test_update_to_zero_is_rejected(self, draft):
        draft.add_item(10, 2, '10.00')
        result = draft.update_quantity(10, 0)
        assert result.violation == DraftViolation.INVALID_QUANTITY
        assert draft.get_line(10).quantity == 2

    def test_remove_missing_item(self, draft):
        assert draft.remove_item(99).violation == DraftViolation.ITEM_NOT_FOUND


class TestPaymentMethod:

    def test_requires_items(self, draft):
        result = draft.set_payment_method('CASH')
        assert result.violation == DraftViolation.EMPTY_CART
        assert draft.payment_method is None

    def test_parses_case_insensitively(self, draft):
        draft.add_item(10, 1, '1.00')
        assert draft.set_payment_method('transfer')
        assert draft.payment_method == PaymentMethod.TRANSFER

    def test_unknown_method(self, draft):
        draft.add_item(10, 1, '1.00')
        result = draft.set_payment_method('BITCOIN')
        assert result.violation == DraftViolation.INVALID_PAYMENT_METHOD

    def test_removing_all_items_keeps_method_but_blocks_commit(self, draft):
        draft.select_customer(1)
        draft.add_item(10, 1, '1.00')
        draft.set_payment_method('CASH')
        draft.remove_item(10)
        assert draft.can_commit() is False
        assert 'line_items' in draft.missing_fields()


class TestReset:

    def test_reset_clears_everything_and_renews_id(self, draft):
        old_id = draft.draft_id
        draft.select_customer(1)
        draft.add_item(10, 1, '1.00')
        draft.set_payment_method('CASH')

        assert draft.reset()
        assert draft.draft_id != old_id
        assert draft.step == SaleStep.CUSTOMER
        assert draft.line_items == []
        assert draft.payment_method is None

    def test_cancel_is_reset(self, draft):
        draft.add_item(10, 1, '1.00')
        draft.cancel()
        assert draft.line_items == []

    def test_to_dict(self, draft):
        draft.select_customer(CustomerRef(id=1, name='C1'))
        draft.add_item(10, 2, '10.00')
        data = draft.to_dict()
        assert data['step'] == 'PAYMENT'
        assert data['customer'] == {'id': 1, 'name': 'C1'}
        assert data['total_amount'] == '20.00'
        assert data['can_commit'] is False
        assert data['line_items'][0]['subtotal'] == '20.00'


class TestDraftSessionStore:

    def test_one_draft_per_seller(self):
        store = DraftSessionStore()
        first = store.get(1)
        assert store.get(1) is first
        assert store.get(2) is not first
        assert len(store) == 2

    def test_discard(self):
        store = DraftSessionStore()
        store.get(1)
        store.discard(1)
        assert 1 not in store
        store.discard(1)
