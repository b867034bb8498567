"""Models package - exports all SQLAlchemy models."""
from storepos.models.app_user import AppUser, UserRole
from storepos.models.customer import Customer
from storepos.models.product import Product
from storepos.models.sale import Sale, SaleStatus, PaymentMethod
from storepos.models.sale_item import SaleItem
from storepos.models.invoice import Invoice, InvoiceStatus
from storepos.models.invoice_sequence import InvoiceSequence

__all__ = [
    'AppUser', 'UserRole', 'Customer', 'Product',
    'Sale', 'SaleStatus', 'PaymentMethod', 'SaleItem',
    'Invoice', 'InvoiceStatus', 'InvoiceSequence',
]
