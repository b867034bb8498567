"""Product model."""
from sqlalchemy import Column, Integer, String, Boolean, Numeric, DateTime, CheckConstraint
from sqlalchemy.sql import func
from storepos.database import Base, BigIntId


class Product(Base):
    """
    Product with its on-hand stock.

    ``stock`` is only mutated inside sale commit/cancel transactions and can
    never go negative. ``min_stock`` is an advisory reorder threshold.
    """

    __tablename__ = 'product'
    __table_args__ = (
        CheckConstraint('stock >= 0', name='ck_product_stock_non_negative'),
    )

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    sku = Column(String(64), nullable=True, unique=True)
    name = Column(String(200), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    stock = Column(Integer, nullable=False, default=0)
    min_stock = Column(Integer, nullable=False, default=0)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', stock={self.stock})>"

    @property
    def is_low_stock(self):
        """True when stock sits at or below the reorder threshold."""
        return self.stock <= (self.min_stock or 0)
