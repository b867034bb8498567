"""Read-side queries over committed sales."""
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload, selectinload

from storepos.models import Sale, SaleItem, SaleStatus, PaymentMethod
from storepos.exceptions import NotFoundError, ValidationError
from storepos.services.cache_service import get_cache


def get_sale(session: Session, sale_id: int) -> Sale:
    """Get a sale with items, customer, seller and invoice loaded."""
    sale = (session.query(Sale)
            .options(
                selectinload(Sale.items).joinedload(SaleItem.product),
                joinedload(Sale.customer),
                joinedload(Sale.user),
                joinedload(Sale.invoice),
            )
            .filter(Sale.id == sale_id)
            .first())
    if not sale:
        raise NotFoundError(f'Venta #{sale_id} no encontrada', payload={'sale_id': sale_id})
    return sale


def list_sales(
    session: Session,
    customer_id: Optional[int] = None,
    user_id: Optional[int] = None,
    status: Optional[str] = None,
    payment_method: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
) -> List[Sale]:
    """List sales, newest first, narrowed by any of the given filters."""
    query = session.query(Sale).options(joinedload(Sale.invoice), joinedload(Sale.customer))

    if customer_id:
        query = query.filter(Sale.customer_id == customer_id)
    if user_id:
        query = query.filter(Sale.user_id == user_id)
    if status:
        try:
            query = query.filter(Sale.status == SaleStatus(status.upper()))
        except ValueError:
            raise ValidationError(f'Estado de venta inválido: {status}')
    if payment_method:
        method = PaymentMethod.parse(payment_method)
        if method is None:
            raise ValidationError(f'Método de pago inválido: {payment_method}')
        query = query.filter(Sale.payment_method == method)
    if start_date:
        query = query.filter(Sale.sale_date >= start_date)
    if end_date:
        query = query.filter(Sale.sale_date <= end_date)

    return query.order_by(Sale.sale_date.desc(), Sale.id.desc()).all()


def _load_sales_summary(session: Session) -> Dict[str, Any]:
    count, revenue = session.query(
        func.count(Sale.id),
        func.coalesce(func.sum(Sale.total_amount), 0)
    ).filter(Sale.status == SaleStatus.COMPLETED).one()
    return {
        'completed_sales': int(count),
        'revenue': Decimal(str(revenue)).quantize(Decimal('0.01')),
    }


def get_sales_summary(session: Session, ttl: Optional[int] = None) -> Dict[str, Any]:
    """Count and revenue of completed sales (cached, invalidated on commit/cancel)."""
    try:
        cache = get_cache()
    except RuntimeError:
        return _load_sales_summary(session)
    return cache.memoize('sales', 'summary', lambda: _load_sales_summary(session), ttl)


def sale_to_dict(sale: Sale) -> Dict[str, Any]:
    """Serialize a sale for JSON responses."""
    invoice = sale.invoice
    return {
        'id': sale.id,
        'customer_id': sale.customer_id,
        'customer_name': sale.customer.name if sale.customer else None,
        'user_id': sale.user_id,
        'sale_date': sale.sale_date.isoformat() if sale.sale_date else None,
        'total_amount': str(sale.total_amount),
        'payment_method': sale.payment_method.value,
        'status': sale.status.value,
        'invoice': {
            'id': invoice.id,
            'number': invoice.number,
            'date': invoice.date.isoformat() if invoice.date else None,
            'status': invoice.invoice_status.value if invoice.invoice_status else None,
        } if invoice else None,
        'items': [
            {
                'product_id': item.product_id,
                'quantity': item.quantity,
                'unit_price': str(item.unit_price),
                'subtotal': str(item.subtotal),
            }
            for item in sale.items
        ],
    }
