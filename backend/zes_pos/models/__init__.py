from .inventory import Product
from .customers import Customer
from .invoices import Invoice, InvoiceItem, Payment
from .auth import User, SessionToken

__all__ = [
    'Product',
    'Customer',
    'Invoice', 'InvoiceItem', 'Payment',
    'User', 'SessionToken',
]
