"""Catalog Store - product stock reads and mutations for sale transactions."""
from typing import Dict, Iterable, List, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from storepos.models import Product
from storepos.exceptions import NotFoundError


def get_product(session: Session, product_id: int) -> Product:
    """Get an active product (no lock) or raise NotFoundError."""
    product = session.query(Product).filter(
        Product.id == product_id,
        Product.active.is_(True)
    ).first()
    if not product:
        raise NotFoundError(f'Producto con ID {product_id} no encontrado', payload={'product_id': product_id})
    return product


def get_product_for_update(session: Session, product_id: int) -> Product:
    """
    Re-read a product inside the caller's transaction, locking its row.

    Uses SELECT ... FOR UPDATE (ignored by SQLite, which serializes writers
    itself) and overwrites any stale copy held in the identity map.
    """
    product = (session.query(Product)
               .filter(Product.id == product_id)
               .with_for_update()
               .populate_existing()
               .first())
    if not product:
        raise NotFoundError(f'Producto con ID {product_id} no encontrado', payload={'product_id': product_id})
    return product


def decrement_stock(session: Session, product_id: int, amount: int) -> bool:
    """
    Subtract ``amount`` from the product's stock in a single UPDATE.

    The WHERE clause only matches while enough stock remains, so the row can
    never go negative even when two transactions raced past their reads.
    Returns True iff the row was updated.
    """
    result = session.execute(
        update(Product)
        .where(Product.id == product_id, Product.stock >= amount)
        .values(stock=Product.stock - amount)
        .execution_options(synchronize_session='fetch')
    )
    return result.rowcount == 1


def restock(session: Session, product_id: int, amount: int) -> None:
    """Add ``amount`` back to the product's stock (sale cancellation)."""
    result = session.execute(
        update(Product)
        .where(Product.id == product_id)
        .values(stock=Product.stock + amount)
        .execution_options(synchronize_session='fetch')
    )
    if result.rowcount != 1:
        raise NotFoundError(f'Producto con ID {product_id} no encontrado', payload={'product_id': product_id})


def check_availability(session: Session, lines: Iterable) -> List[Dict]:
    """
    Report every shortage for the given draft lines without locking.

    The commit engine fails fast on the first shortage; callers that need
    the full picture run this before committing.
    """
    lines = list(lines)
    if not lines:
        return []

    product_ids = [line.product_id for line in lines]
    products = {
        p.id: p for p in session.query(Product).filter(Product.id.in_(product_ids)).all()
    }

    shortages = []
    for line in lines:
        product = products.get(line.product_id)
        available = product.stock if product else 0
        if product is None or available < line.quantity:
            shortages.append({
                'product_id': line.product_id,
                'product_name': product.name if product else None,
                'available': available,
                'requested': line.quantity,
                'missing': product is None,
            })
    return shortages


def low_stock_products(session: Session, product_ids: Iterable[int], default_threshold: Optional[int] = None) -> List[int]:
    """
    Ids of products at or below their reorder threshold.

    Advisory only. A product without ``min_stock`` falls back to
    ``default_threshold`` when one is given.
    """
    product_ids = list(product_ids)
    if not product_ids:
        return []

    low = []
    for product in session.query(Product).filter(Product.id.in_(product_ids)).order_by(Product.id).all():
        threshold = product.min_stock or default_threshold or 0
        if product.stock <= threshold:
            low.append(product.id)
    return low
