"""Service for cancelling sales with stock reversal."""
import logging
from typing import Any, Dict

from sqlalchemy.orm import Session

from storepos.database import transaction
from storepos.exceptions import NotFoundError, SaleStateError
from storepos.models import Sale, SaleStatus, InvoiceStatus
from storepos.services import catalog_store
from storepos.services.cache_service import invalidate_sales_cache

logger = logging.getLogger(__name__)


def cancel_sale(session: Session, sale_id: int) -> Dict[str, Any]:
    """
    Cancel a completed sale and give its stock back.

    Steps:
    1. Lock the sale and validate it is COMPLETED
    2. Lock each product and add the sold quantity back
    3. Mark the sale CANCELLED and its invoice CANCELLED
    4. Commit transaction

    The sale and its items are kept for the audit trail; nothing is deleted.

    Returns:
        dict with the sale id and the restored quantities per product

    Raises:
        NotFoundError: sale does not exist
        SaleStateError: sale is not COMPLETED
    """
    with transaction(session):
        sale = (session.query(Sale)
                .filter(Sale.id == sale_id)
                .with_for_update()
                .populate_existing()
                .first())

        if not sale:
            raise NotFoundError(f'Venta #{sale_id} no encontrada', payload={'sale_id': sale_id})

        if sale.status != SaleStatus.COMPLETED:
            raise SaleStateError(
                f'La venta #{sale_id} está en estado {sale.status.value} y no puede cancelarse'
            )

        restored = []
        for item in sale.items:
            product = catalog_store.get_product_for_update(session, item.product_id)
            old_stock = product.stock
            catalog_store.restock(session, item.product_id, item.quantity)
            restored.append({
                'product_id': item.product_id,
                'product_name': product.name,
                'quantity': item.quantity,
                'old_stock': old_stock,
                'new_stock': product.stock,
            })

        sale.status = SaleStatus.CANCELLED
        if sale.invoice:
            sale.invoice.invoice_status = InvoiceStatus.CANCELLED

    logger.info(f"[POS] Sale #{sale_id} cancelled, stock restored for {len(restored)} product(s)")
    invalidate_sales_cache()

    return {
        'sale_id': sale_id,
        'status': SaleStatus.CANCELLED.value,
        'restored_products': restored,
    }
