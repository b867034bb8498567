"""
POS blueprint - JSON endpoints for the register.

Draft endpoints mutate the seller's in-memory draft; /pos/commit hands it to
the commit engine. Errors are raised as PosError and rendered by the app's
error handler.
"""
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from flask import Blueprint, request, jsonify, send_file, current_app, g, Response

from storepos.database import get_session
from storepos.exceptions import AlreadyCommittedError, ValidationError, violation_error
from storepos.middleware import require_seller
from storepos.services import catalog_store, party_store
from storepos.services.draft_sale import DraftSale, DraftSessionStore, Transition
from storepos.services.invoice_pdf_service import generate_invoice_pdf
from storepos.services.sale_cancel_service import cancel_sale
from storepos.services.sale_commit_service import SaleCommitEngine, commit_draft
from storepos.services.sale_query_service import get_sale, list_sales, get_sales_summary, sale_to_dict

pos_bp = Blueprint('pos', __name__, url_prefix='/pos')


# ============================================================================
# Helpers
# ============================================================================

def _draft_store() -> DraftSessionStore:
    return current_app.extensions['draft_store']


def _commit_engine() -> SaleCommitEngine:
    return current_app.extensions['commit_engine']


def _current_draft() -> DraftSale:
    return _draft_store().get(g.user_id)


def _payload() -> Dict[str, Any]:
    return request.get_json(silent=True) or {}


def _required_int(payload: Dict[str, Any], field: str) -> int:
    value = payload.get(field)
    if isinstance(value, bool):
        raise ValidationError(f'El campo {field} debe ser un número entero')
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'El campo {field} debe ser un número entero', payload={'field': field})


def _optional_datetime(name: str) -> Optional[datetime]:
    raw = request.args.get(name, '').strip()
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw)
    except ValueError:
        raise ValidationError(f'Fecha inválida en {name}: {raw}', payload={'field': name})


def _apply(result: Transition) -> Tuple[Response, int]:
    """Render the draft after a transition, or raise its violation."""
    if not result:
        raise violation_error(result.violation)
    return jsonify(_current_draft().to_dict()), 200


# ============================================================================
# Draft
# ============================================================================

@pos_bp.route('/draft', methods=['GET'])
@require_seller
def get_draft():
    """Current draft of the logged-in seller."""
    return jsonify(_current_draft().to_dict())


@pos_bp.route('/draft/customer', methods=['POST'])
@require_seller
def select_customer():
    customer_id = _required_int(_payload(), 'customer_id')
    customer = party_store.get_customer(get_session(), customer_id)
    return _apply(_current_draft().select_customer(customer))


@pos_bp.route('/draft/items', methods=['POST'])
@require_seller
def add_item():
    """
    Add a product to the draft.

    Body: {"product_id": int, "quantity": int (default 1), "unit_price": optional}
    The unit price defaults to the catalog price.
    """
    payload = _payload()
    product_id = _required_int(payload, 'product_id')
    product = catalog_store.get_product(get_session(), product_id)

    quantity = payload.get('quantity', 1)
    unit_price = payload.get('unit_price')
    if unit_price is None:
        unit_price = product.price

    return _apply(_current_draft().add_item(product.id, quantity, unit_price))


@pos_bp.route('/draft/items/<int:product_id>', methods=['PATCH'])
@require_seller
def update_item(product_id: int):
    quantity = _payload().get('quantity')
    return _apply(_current_draft().update_quantity(product_id, quantity))


@pos_bp.route('/draft/items/<int:product_id>', methods=['DELETE'])
@require_seller
def remove_item(product_id: int):
    return _apply(_current_draft().remove_item(product_id))


@pos_bp.route('/draft/payment', methods=['POST'])
@require_seller
def set_payment_method():
    return _apply(_current_draft().set_payment_method(_payload().get('payment_method')))


@pos_bp.route('/draft/reset', methods=['POST'])
@require_seller
def reset_draft():
    return _apply(_current_draft().reset())


@pos_bp.route('/draft/availability', methods=['POST'])
@require_seller
def check_availability():
    """Every stock shortage of the draft, without locking or committing."""
    shortages = catalog_store.check_availability(get_session(), _current_draft().line_items)
    return jsonify({'available': not shortages, 'shortages': shortages})


# ============================================================================
# Commit
# ============================================================================

@pos_bp.route('/commit', methods=['POST'])
@require_seller
def commit():
    """
    Finalize the draft.

    An explicit key may be sent in the Idempotency-Key header; otherwise the
    draft id is used. A replayed key answers 200 with the original sale.
    """
    idempotency_key = (
        request.headers.get('Idempotency-Key')
        or _payload().get('idempotency_key')
        or None
    )

    try:
        finalized = commit_draft(_draft_store(), g.user_id, _commit_engine(), idempotency_key)
    except AlreadyCommittedError as e:
        body = e.finalized_sale.to_dict()
        body['already_committed'] = True
        return jsonify(body), 200

    body = finalized.to_dict()
    body['already_committed'] = False
    return jsonify(body), 201


# ============================================================================
# Committed sales
# ============================================================================

@pos_bp.route('/sales', methods=['GET'])
@require_seller
def sales_list():
    """List sales. Filters: customer_id, user_id, status, payment_method, start_date, end_date."""
    sales = list_sales(
        get_session(),
        customer_id=request.args.get('customer_id', type=int),
        user_id=request.args.get('user_id', type=int),
        status=request.args.get('status') or None,
        payment_method=request.args.get('payment_method') or None,
        start_date=_optional_datetime('start_date'),
        end_date=_optional_datetime('end_date'),
    )
    return jsonify({'sales': [sale_to_dict(sale) for sale in sales], 'count': len(sales)})


@pos_bp.route('/sales/summary', methods=['GET'])
@require_seller
def sales_summary():
    summary = get_sales_summary(get_session(), current_app.config.get('CACHE_SALES_TTL'))
    return jsonify({
        'completed_sales': summary['completed_sales'],
        'revenue': str(summary['revenue']),
    })


@pos_bp.route('/sales/<int:sale_id>', methods=['GET'])
@require_seller
def sale_detail(sale_id: int):
    return jsonify(sale_to_dict(get_sale(get_session(), sale_id)))


@pos_bp.route('/sales/<int:sale_id>/cancel', methods=['POST'])
@require_seller
def sale_cancel(sale_id: int):
    """Cancel a completed sale and restock its products."""
    return jsonify(cancel_sale(get_session(), sale_id))


@pos_bp.route('/sales/<int:sale_id>/invoice.pdf', methods=['GET'])
@require_seller
def sale_invoice_pdf(sale_id: int):
    sale = get_sale(get_session(), sale_id)

    business_info = {
        'name': current_app.config.get('BUSINESS_NAME', 'Mi Negocio'),
        'address': current_app.config.get('BUSINESS_ADDRESS', ''),
        'phone': current_app.config.get('BUSINESS_PHONE', ''),
        'email': current_app.config.get('BUSINESS_EMAIL', ''),
    }
    pdf_buffer = generate_invoice_pdf(sale, business_info)

    number = sale.invoice.number if sale.invoice else f'venta_{sale.id}'
    return send_file(
        pdf_buffer,
        mimetype='application/pdf',
        as_attachment=True,
        download_name=f"factura_{number}.pdf"
    )
