"""Invoice model (factura emitida por una venta)."""
from sqlalchemy import Column, BigInteger, String, DateTime, Enum, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from storepos.database import Base, BigIntId
import enum


class InvoiceStatus(str, enum.Enum):
    """Invoice status enum."""
    ISSUED = 'ISSUED'
    PAID = 'PAID'
    CANCELLED = 'CANCELLED'


class Invoice(Base):
    """Invoice - 0..1 per Sale, with a unique externally visible number."""

    __tablename__ = 'invoice'

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    sale_id = Column(BigInteger, ForeignKey('sale.id', ondelete='CASCADE'), nullable=False, unique=True)
    number = Column(String(32), nullable=False, unique=True)
    date = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    invoice_status = Column(Enum(InvoiceStatus, name='invoice_status'), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    sale = relationship('Sale', back_populates='invoice')

    def __repr__(self):
        return f"<Invoice(id={self.id}, number='{self.number}', sale_id={self.sale_id})>"
