"""
Integration tests for the POS JSON endpoints.
"""

from decimal import Decimal

import pytest

from storepos.models import Product, Sale, SaleStatus, InvoiceStatus


@pytest.fixture
def ids(customer, product, seller):
    """Primary keys captured before requests detach the fixture rows."""
    return {'customer': customer.id, 'product': product.id, 'seller': seller.id}


def _fill_draft(client, ids, quantity=2, method='CASH'):
    client.post('/pos/draft/customer', json={'customer_id': ids['customer']})
    client.post('/pos/draft/items', json={'product_id': ids['product'], 'quantity': quantity})
    return client.post('/pos/draft/payment', json={'payment_method': method})


class TestAuthentication:

    def test_draft_requires_seller(self, client):
        response = client.get('/pos/draft')
        assert response.status_code == 401
        assert response.get_json()['code'] == 'UNAUTHORIZED'

    def test_inactive_seller_is_rejected(self, client, session, seller):
        seller.active = False
        session.commit()
        seller_id = seller.id
        with client.session_transaction() as sess:
            sess['user_id'] = seller_id

        assert client.get('/pos/draft').status_code == 401


class TestDraftEndpoints:

    def test_empty_draft(self, auth_client):
        response = auth_client.get('/pos/draft')
        assert response.status_code == 200
        data = response.get_json()
        assert data['step'] == 'CUSTOMER'
        assert data['line_items'] == []
        assert data['can_commit'] is False

    def test_full_workflow_reaches_confirmation(self, auth_client, ids):
        response = _fill_draft(auth_client, ids)
        assert response.status_code == 200
        data = response.get_json()
        assert data['step'] == 'CONFIRMATION'
        assert data['total_amount'] == '20.00'
        assert data['line_items'][0]['unit_price'] == '10.00'
        assert data['customer']['id'] == ids['customer']

    def test_unknown_customer(self, auth_client):
        response = auth_client.post('/pos/draft/customer', json={'customer_id': 999})
        assert response.status_code == 404

    def test_customer_id_must_be_integer(self, auth_client):
        response = auth_client.post('/pos/draft/customer', json={'customer_id': 'x'})
        assert response.status_code == 422

    def test_unknown_product(self, auth_client):
        response = auth_client.post('/pos/draft/items', json={'product_id': 999, 'quantity': 1})
        assert response.status_code == 404

    def test_invalid_quantity(self, auth_client, ids):
        response = auth_client.post('/pos/draft/items', json={'product_id': ids['product'], 'quantity': 0})
        assert response.status_code == 422
        assert response.get_json()['code'] == 'INVALID_QUANTITY'

    def test_explicit_unit_price(self, auth_client, ids):
        response = auth_client.post(
            '/pos/draft/items',
            json={'product_id': ids['product'], 'quantity': 1, 'unit_price': '8.50'}
        )
        assert response.get_json()['total_amount'] == '8.50'

    def test_update_and_remove_item(self, auth_client, ids):
        auth_client.post('/pos/draft/items', json={'product_id': ids['product'], 'quantity': 1})

        response = auth_client.patch(f"/pos/draft/items/{ids['product']}", json={'quantity': 4})
        assert response.get_json()['line_items'][0]['quantity'] == 4

        response = auth_client.delete(f"/pos/draft/items/{ids['product']}")
        assert response.get_json()['line_items'] == []

        response = auth_client.delete(f"/pos/draft/items/{ids['product']}")
        assert response.status_code == 422
        assert response.get_json()['code'] == 'ITEM_NOT_FOUND'

    def test_payment_requires_items(self, auth_client):
        response = auth_client.post('/pos/draft/payment', json={'payment_method': 'CASH'})
        assert response.status_code == 422
        assert response.get_json()['code'] == 'EMPTY_CART'

    def test_unknown_payment_method(self, auth_client, ids):
        auth_client.post('/pos/draft/items', json={'product_id': ids['product'], 'quantity': 1})
        response = auth_client.post('/pos/draft/payment', json={'payment_method': 'CHEQUE'})
        assert response.get_json()['code'] == 'INVALID_PAYMENT_METHOD'

    def test_reset(self, auth_client, ids):
        _fill_draft(auth_client, ids)
        response = auth_client.post('/pos/draft/reset')
        data = response.get_json()
        assert data['step'] == 'CUSTOMER'
        assert data['line_items'] == []

    def test_availability(self, auth_client, ids):
        auth_client.post('/pos/draft/items', json={'product_id': ids['product'], 'quantity': 9})
        data = auth_client.post('/pos/draft/availability').get_json()
        assert data['available'] is False
        assert data['shortages'][0]['available'] == 5
        assert data['shortages'][0]['requested'] == 9


class TestCommitEndpoint:

    def test_commit_creates_sale(self, auth_client, session, ids):
        _fill_draft(auth_client, ids)

        response = auth_client.post('/pos/commit')

        assert response.status_code == 201
        data = response.get_json()
        assert data['already_committed'] is False
        assert data['invoice_number'] == 'FAC-00000001'
        assert data['total_amount'] == '20.00'
        assert data['user_id'] == ids['seller']

        assert session.get(Product, ids['product']).stock == 3
        assert auth_client.get('/pos/draft').get_json()['step'] == 'CUSTOMER'

    def test_incomplete_draft(self, auth_client):
        response = auth_client.post('/pos/commit')
        assert response.status_code == 422
        data = response.get_json()
        assert data['code'] == 'DRAFT_INCOMPLETE'
        assert data['missing'] == ['customer', 'line_items', 'payment_method']

    def test_insufficient_stock_keeps_draft(self, auth_client, session, ids):
        _fill_draft(auth_client, ids, quantity=6)

        response = auth_client.post('/pos/commit')

        assert response.status_code == 409
        data = response.get_json()
        assert data['code'] == 'INSUFFICIENT_STOCK'
        assert data['available'] == 5
        assert auth_client.get('/pos/draft').get_json()['step'] == 'CONFIRMATION'
        assert session.query(Sale).count() == 0

    def test_replayed_key_returns_original(self, auth_client, session, ids):
        _fill_draft(auth_client, ids)
        first = auth_client.post('/pos/commit', headers={'Idempotency-Key': 'tab-1-submit'})
        assert first.status_code == 201

        _fill_draft(auth_client, ids)
        second = auth_client.post('/pos/commit', headers={'Idempotency-Key': 'tab-1-submit'})

        assert second.status_code == 200
        data = second.get_json()
        assert data['already_committed'] is True
        assert data['sale_id'] == first.get_json()['sale_id']
        assert session.query(Sale).count() == 1
        assert session.get(Product, ids['product']).stock == 3


class TestSalesEndpoints:

    @pytest.fixture
    def committed(self, auth_client, ids):
        _fill_draft(auth_client, ids)
        return auth_client.post('/pos/commit').get_json()

    def test_list_and_filter(self, auth_client, committed, ids):
        data = auth_client.get('/pos/sales').get_json()
        assert data['count'] == 1
        assert data['sales'][0]['id'] == committed['sale_id']

        data = auth_client.get('/pos/sales?status=cancelled').get_json()
        assert data['count'] == 0

        data = auth_client.get(f"/pos/sales?customer_id={ids['customer']}&payment_method=cash").get_json()
        assert data['count'] == 1

    def test_list_rejects_bad_filters(self, auth_client):
        assert auth_client.get('/pos/sales?status=LOST').status_code == 422
        assert auth_client.get('/pos/sales?start_date=yesterday').status_code == 422

    def test_detail(self, auth_client, committed):
        data = auth_client.get(f"/pos/sales/{committed['sale_id']}").get_json()
        assert data['invoice']['number'] == 'FAC-00000001'
        assert data['items'][0]['quantity'] == 2

    def test_detail_not_found(self, auth_client):
        assert auth_client.get('/pos/sales/999').status_code == 404

    def test_summary(self, auth_client, committed):
        data = auth_client.get('/pos/sales/summary').get_json()
        assert data == {'completed_sales': 1, 'revenue': '20.00'}

    def test_cancel_restores_stock(self, auth_client, session, committed, ids):
        sale_id = committed['sale_id']

        response = auth_client.post(f'/pos/sales/{sale_id}/cancel')

        assert response.status_code == 200
        data = response.get_json()
        assert data['status'] == 'CANCELLED'
        assert data['restored_products'][0]['new_stock'] == 5

        sale = session.get(Sale, sale_id)
        assert sale.status == SaleStatus.CANCELLED
        assert sale.invoice.invoice_status == InvoiceStatus.CANCELLED
        assert sale.total_amount == Decimal('20.00')
        assert session.get(Product, ids['product']).stock == 5

        again = auth_client.post(f'/pos/sales/{sale_id}/cancel')
        assert again.status_code == 409
        assert again.get_json()['code'] == 'INVALID_SALE_STATE'

    def test_invoice_pdf(self, auth_client, committed):
        response = auth_client.get(f"/pos/sales/{committed['sale_id']}/invoice.pdf")
        assert response.status_code == 200
        assert response.mimetype == 'application/pdf'
        assert response.data.startswith(b'%PDF')
        assert 'FAC-00000001' in response.headers['Content-Disposition']

    def test_invoice_pdf_with_markup_in_business_info(self, app, auth_client, committed, monkeypatch):
        """Business name and address containing < and & still render."""
        monkeypatch.setitem(app.config, 'BUSINESS_NAME', 'Almacén <Centro> & Cía')
        monkeypatch.setitem(app.config, 'BUSINESS_ADDRESS', 'Calle 5 <esq. 9> & Av. Sur')
        monkeypatch.setitem(app.config, 'BUSINESS_PHONE', '<011> 555-0101')

        response = auth_client.get(f"/pos/sales/{committed['sale_id']}/invoice.pdf")

        assert response.status_code == 200
        assert response.data.startswith(b'%PDF')


class TestMetricsEndpoint:

    def test_exposes_commit_counter(self, auth_client, ids):
        _fill_draft(auth_client, ids)
        auth_client.post('/pos/commit')

        response = auth_client.get('/metrics')
        assert response.status_code == 200
        assert b'pos_sale_commits_total' in response.data
