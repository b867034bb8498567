"""
Sale commit engine with transactional logic.

Turns a complete DraftSale into a Sale, its SaleItems and an Invoice while
decrementing stock, all inside one transaction:

1. Reject incomplete drafts (no I/O)
2. Replay an already finalized idempotency key
3. Verify customer and seller
4. Lock and re-read every product in draft order, failing on the first shortage
5. Decrement stock with a guarded UPDATE per product
6. Recompute the total from the line subtotals
7. Insert Sale, SaleItems (draft price snapshots) and the Invoice
8. Commit; any failure rolls everything back

Transient database failures are retried with exponential backoff.
"""
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, Any, List, Optional, Tuple

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.orm import Session

from storepos.blueprints.metrics import sale_commit_duration_seconds, sale_commits_total
from storepos.database import transaction
from storepos.exceptions import (
    AlreadyCommittedError, CommitFailedError, DraftIncompleteError,
    InsufficientStockError, PosError
)
from storepos.models import Sale, SaleItem, Invoice, SaleStatus, InvoiceStatus
from storepos.services import catalog_store, party_store
from storepos.services.cache_service import invalidate_sales_cache
from storepos.services.draft_sale import DraftSale, DraftSessionStore
from storepos.services.invoice_numbering import next_invoice_number

logger = logging.getLogger(__name__)

# SQLSTATEs worth a retry: serialization failure, deadlock
TRANSIENT_SQLSTATES = {'40001', '40P01'}


@dataclass(frozen=True)
class FinalizedItem:
    product_id: int
    quantity: int
    unit_price: Decimal
    subtotal: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            'product_id': self.product_id,
            'quantity': self.quantity,
            'unit_price': str(self.unit_price),
            'subtotal': str(self.subtotal),
        }


@dataclass(frozen=True)
class FinalizedSale:
    """Durable outcome of a commit, rebuilt from the stored rows."""
    sale_id: int
    invoice_id: Optional[int]
    invoice_number: Optional[str]
    customer_id: int
    user_id: int
    sale_date: datetime
    total_amount: Decimal
    payment_method: str
    status: str
    idempotency_key: Optional[str]
    items: Tuple[FinalizedItem, ...]
    # Advisory; not part of the sale's identity
    low_stock_product_ids: Tuple[int, ...] = field(default=(), compare=False)

    @classmethod
    def from_sale(cls, sale: Sale, low_stock_product_ids=()) -> 'FinalizedSale':
        invoice = sale.invoice
        return cls(
            sale_id=sale.id,
            invoice_id=invoice.id if invoice else None,
            invoice_number=invoice.number if invoice else None,
            customer_id=sale.customer_id,
            user_id=sale.user_id,
            sale_date=sale.sale_date,
            total_amount=Decimal(sale.total_amount),
            payment_method=sale.payment_method.value,
            status=sale.status.value,
            idempotency_key=sale.idempotency_key,
            items=tuple(
                FinalizedItem(
                    product_id=item.product_id,
                    quantity=item.quantity,
                    unit_price=Decimal(item.unit_price),
                    subtotal=Decimal(item.subtotal),
                )
                for item in sale.items
            ),
            low_stock_product_ids=tuple(low_stock_product_ids),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'sale_id': self.sale_id,
            'invoice_id': self.invoice_id,
            'invoice_number': self.invoice_number,
            'customer_id': self.customer_id,
            'user_id': self.user_id,
            'sale_date': self.sale_date.isoformat() if self.sale_date else None,
            'total_amount': str(self.total_amount),
            'payment_method': self.payment_method,
            'status': self.status,
            'idempotency_key': self.idempotency_key,
            'items': [item.to_dict() for item in self.items],
            'low_stock_product_ids': list(self.low_stock_product_ids),
        }


def _is_transient(error: DBAPIError) -> bool:
    """Deadlocks, serialization failures and dropped connections."""
    if error.connection_invalidated or isinstance(error, OperationalError):
        return True
    sqlstate = getattr(error.orig, 'sqlstate', None) or getattr(error.orig, 'pgcode', None)
    return sqlstate in TRANSIENT_SQLSTATES


class SaleCommitEngine:
    """Commits drafts; one engine instance is shared by every seller."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        invoice_prefix: str = 'FAC-',
        invoice_number_width: int = 8,
        max_retries: int = 3,
        retry_delay: float = 0.05,
        retry_backoff: float = 2.0,
        low_stock_threshold: Optional[int] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._session_factory = session_factory
        self.invoice_prefix = invoice_prefix
        self.invoice_number_width = invoice_number_width
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.retry_backoff = retry_backoff
        self.low_stock_threshold = low_stock_threshold
        self._sleep = sleep

    @classmethod
    def from_config(cls, config, session_factory: Callable[[], Session]) -> 'SaleCommitEngine':
        return cls(
            session_factory,
            invoice_prefix=config.get('INVOICE_PREFIX', 'FAC-'),
            invoice_number_width=config.get('INVOICE_NUMBER_WIDTH', 8),
            max_retries=config.get('COMMIT_MAX_RETRIES', 3),
            retry_delay=config.get('COMMIT_RETRY_DELAY', 0.05),
            retry_backoff=config.get('COMMIT_RETRY_BACKOFF', 2.0),
            low_stock_threshold=config.get('LOW_STOCK_THRESHOLD'),
        )

    def commit(self, draft: DraftSale, seller_id: int, idempotency_key: Optional[str] = None) -> FinalizedSale:
        """
        Finalize ``draft`` for ``seller_id``.

        Raises:
            DraftIncompleteError: customer, items or payment method missing
            NotFoundError: customer, seller or product does not exist
            InsufficientStockError: first line whose stock cannot cover it
            AlreadyCommittedError: key already finalized (carries the original)
            CommitFailedError: retries exhausted or unexpected failure
        """
        if not draft.can_commit():
            sale_commits_total.labels(outcome='incomplete').inc()
            raise DraftIncompleteError(missing=draft.missing_fields())

        key = idempotency_key or draft.draft_id
        started = time.perf_counter()
        delay = self.retry_delay
        attempt = 0

        while True:
            attempt += 1
            session = self._session_factory()
            try:
                sale_id, low_stock = self._commit_once(session, draft, seller_id, key)
            except AlreadyCommittedError as e:
                logger.warning(f"[POS] Duplicate commit for key {key} (sale #{e.finalized_sale.sale_id})")
                sale_commits_total.labels(outcome='already_committed').inc()
                raise
            except InsufficientStockError as e:
                # A concurrent commit of the same key may have taken the stock
                existing = self._find_committed(session, key)
                if existing is not None:
                    logger.warning(f"[POS] Duplicate commit for key {key} (sale #{existing.id})")
                    sale_commits_total.labels(outcome='already_committed').inc()
                    raise AlreadyCommittedError(key, FinalizedSale.from_sale(existing)) from e
                logger.warning(f"[POS] Commit rejected: {e.message}")
                sale_commits_total.labels(outcome='insufficient_stock').inc()
                raise
            except PosError:
                sale_commits_total.labels(outcome='rejected').inc()
                raise
            except IntegrityError as e:
                # A concurrent commit of the same key won the unique index
                existing = self._find_committed(session, key)
                if existing is not None:
                    sale_commits_total.labels(outcome='already_committed').inc()
                    raise AlreadyCommittedError(key, FinalizedSale.from_sale(existing))
                if attempt > self.max_retries:
                    self._give_up(key, attempt, e)
                logger.warning(f"[POS] Integrity conflict on attempt {attempt} for key {key}: {e.orig}")
            except DBAPIError as e:
                if not _is_transient(e) or attempt > self.max_retries:
                    self._give_up(key, attempt, e)
                logger.warning(f"[POS] Transient database error on attempt {attempt} for key {key}: {e.orig}")
            except Exception as e:
                logger.error(f"[POS] Unexpected error committing key {key}: {e}", exc_info=True)
                sale_commits_total.labels(outcome='failed').inc()
                raise CommitFailedError(attempts=attempt) from e
            else:
                # Durable from here on: a failed read-back must not retry
                sale_commits_total.labels(outcome='committed').inc()
                sale_commit_duration_seconds.observe(time.perf_counter() - started)
                invalidate_sales_cache()

                # Rebuilt after commit so the result matches what a replay would read
                finalized = FinalizedSale.from_sale(session.get(Sale, sale_id), low_stock)
                logger.info(
                    f"[POS] Sale #{finalized.sale_id} committed: invoice {finalized.invoice_number}, "
                    f"total {finalized.total_amount}, seller {seller_id}"
                )
                return finalized

            if delay:
                self._sleep(delay)
            delay *= self.retry_backoff

    # =====================================================
    # PRIVATE HELPERS
    # =====================================================

    def _commit_once(self, session: Session, draft: DraftSale, seller_id: int, key: str) -> Tuple[int, List[int]]:
        """One attempt, wrapped in a single transaction. Returns the sale id and low stock ids."""
        lines = draft.line_items

        with transaction(session):
            existing = self._find_committed(session, key)
            if existing is not None:
                raise AlreadyCommittedError(key, FinalizedSale.from_sale(existing))

            party_store.get_customer(session, draft.customer.id)
            party_store.get_user(session, seller_id)

            # Lock and verify every product before touching any stock
            for line in lines:
                product = catalog_store.get_product_for_update(session, line.product_id)
                if product.stock < line.quantity:
                    raise InsufficientStockError(line.product_id, product.stock, line.quantity, product.name)

            for line in lines:
                if not catalog_store.decrement_stock(session, line.product_id, line.quantity):
                    product = catalog_store.get_product_for_update(session, line.product_id)
                    raise InsufficientStockError(line.product_id, product.stock, line.quantity, product.name)

            total_amount = sum((line.subtotal for line in lines), Decimal('0.00')).quantize(Decimal('0.01'))

            sale = Sale(
                customer_id=draft.customer.id,
                user_id=seller_id,
                sale_date=datetime.now(),
                total_amount=total_amount,
                payment_method=draft.payment_method,
                status=SaleStatus.COMPLETED,
                idempotency_key=key,
            )
            session.add(sale)
            session.flush()

            for line in lines:
                session.add(SaleItem(
                    sale_id=sale.id,
                    product_id=line.product_id,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    subtotal=line.subtotal,
                ))

            invoice_number = next_invoice_number(session, self.invoice_prefix, self.invoice_number_width)
            session.add(Invoice(
                sale_id=sale.id,
                number=invoice_number,
                date=sale.sale_date,
                invoice_status=InvoiceStatus.ISSUED,
            ))
            session.flush()

            low_stock = catalog_store.low_stock_products(
                session, [line.product_id for line in lines], self.low_stock_threshold
            )
            sale_id = sale.id

        return sale_id, low_stock

    def _find_committed(self, session: Session, key: str) -> Optional[Sale]:
        return session.query(Sale).filter(Sale.idempotency_key == key).first()

    def _give_up(self, key: str, attempts: int, error: Exception):
        logger.error(f"[POS] Commit for key {key} failed after {attempts} attempt(s): {error}", exc_info=True)
        sale_commits_total.labels(outcome='failed').inc()
        raise CommitFailedError(attempts=attempts) from error


def commit_draft(
    store: DraftSessionStore,
    seller_id: int,
    engine: SaleCommitEngine,
    idempotency_key: Optional[str] = None,
) -> FinalizedSale:
    """
    Commit the seller's active draft and reset it once the sale is durable.

    The draft is kept untouched on every recoverable failure so the seller
    can adjust it and retry.
    """
    draft = store.get(seller_id)
    try:
        finalized = engine.commit(draft, seller_id, idempotency_key)
    except AlreadyCommittedError:
        draft.reset()
        raise
    draft.reset()
    return finalized
