"""Invoice Sequence model - counter row backing invoice numbering."""
from sqlalchemy import Column, BigInteger, String
from storepos.database import Base


class InvoiceSequence(Base):
    """
    One row per numbering series.

    Incremented by a single UPDATE inside the commit transaction that draws
    the next number; the row lock that UPDATE takes serializes concurrent
    commits, so they never share a value.
    """

    __tablename__ = 'invoice_sequence'

    name = Column(String(32), primary_key=True)
    last_value = Column(BigInteger, nullable=False, default=0)

    def __repr__(self):
        return f"<InvoiceSequence(name='{self.name}', last_value={self.last_value})>"
