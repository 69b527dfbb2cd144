from .auth import User, SessionToken
from .catalog import Product, PRODUCT_CATEGORIES
from .sales import Sale, SaleLine, PAYMENT_METHODS
from .invoices import Invoice, InvoiceLine, INVOICE_STATUSES

__all__ = [
    'User', 'SessionToken',
    'Product', 'PRODUCT_CATEGORIES',
    'Sale', 'SaleLine', 'PAYMENT_METHODS',
    'Invoice', 'InvoiceLine', 'INVOICE_STATUSES',
]
