"""
Invoice Numbering Service.

Numbers come from a counter row in ``invoice_sequence``. The increment runs
as one UPDATE inside the caller's transaction: the row stays locked until
that transaction ends, so concurrent commits draw distinct, increasing values
and a rolled back commit never publishes the number it drew.
"""
import logging

from sqlalchemy import update
from sqlalchemy.orm import Session

from storepos.models import InvoiceSequence

logger = logging.getLogger(__name__)

DEFAULT_SERIES = 'sale'


def format_invoice_number(prefix: str, value: int, width: int = 8) -> str:
    """Render e.g. ``FAC-00000042``."""
    return f"{prefix}{value:0{width}d}"


def next_invoice_number(session: Session, prefix: str = 'FAC-', width: int = 8,
                        series: str = DEFAULT_SERIES) -> str:
    """Allocate the next invoice number of ``series``."""
    result = session.execute(
        update(InvoiceSequence)
        .where(InvoiceSequence.name == series)
        .values(last_value=InvoiceSequence.last_value + 1)
        .execution_options(synchronize_session=False)
    )

    if result.rowcount == 0:
        # First invoice of the series; a concurrent creator surfaces as an
        # IntegrityError on the primary key and the commit is retried.
        logger.info(f"[INVOICE] Creating numbering series '{series}'")
        session.add(InvoiceSequence(name=series, last_value=1))
        session.flush()
        value = 1
    else:
        value = session.query(InvoiceSequence.last_value).filter(
            InvoiceSequence.name == series
        ).scalar()

    return format_invoice_number(prefix, value, width)
