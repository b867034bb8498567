"""Sale model."""
from sqlalchemy import Column, BigInteger, String, Numeric, DateTime, Enum, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from storepos.database import Base, BigIntId
import enum


class SaleStatus(str, enum.Enum):
    """Sale status enum."""
    PENDING = 'PENDING'
    COMPLETED = 'COMPLETED'
    CANCELLED = 'CANCELLED'


class PaymentMethod(str, enum.Enum):
    """Accepted payment methods at the register."""
    CASH = 'CASH'
    CARD = 'CARD'
    TRANSFER = 'TRANSFER'
    OTHER = 'OTHER'

    @classmethod
    def parse(cls, value):
        """Return the member for ``value`` (member or name) or None."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            return None


class Sale(Base):
    """Sale (venta confirmada)."""

    __tablename__ = 'sale'

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    customer_id = Column(BigInteger, ForeignKey('customer.id'), nullable=False, index=True)
    user_id = Column(BigInteger, ForeignKey('app_user.id'), nullable=False, index=True)
    sale_date = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    total_amount = Column(Numeric(10, 2), nullable=False)
    payment_method = Column(Enum(PaymentMethod, name='sale_payment_method'), nullable=False)
    status = Column(Enum(SaleStatus, name='sale_status'), nullable=False, default=SaleStatus.PENDING)

    # Idempotency key to prevent duplicate sales on double-submit
    idempotency_key = Column(String(64), unique=True, nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    customer = relationship('Customer', back_populates='sales')
    user = relationship('AppUser', back_populates='sales')
    items = relationship('SaleItem', back_populates='sale', cascade='all, delete-orphan', order_by='SaleItem.id')
    invoice = relationship('Invoice', back_populates='sale', uselist=False, cascade='all, delete-orphan')

    def __repr__(self):
        return f"<Sale(id={self.id}, total={self.total_amount}, status={self.status.value})>"
