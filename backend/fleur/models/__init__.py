from .inventory import Product, ProductOption, DisposalLogEntry
from .sales import Invoice, InvoiceLine, InvoiceReturn, InvoiceReturnLine
from .orders import Order, OrderItem, OrderHistoryEntry
from .debts import Debt
from .people import Customer, Employee, UserAccessRequest
from .auth import User, SessionToken
from .security import SecurityEvent
from .documents import DocumentSequence

__all__ = [
    'Product', 'ProductOption', 'DisposalLogEntry',
    'Invoice', 'InvoiceLine', 'InvoiceReturn', 'InvoiceReturnLine',
    'Order', 'OrderItem', 'OrderHistoryEntry',
    'Debt',
    'Customer', 'Employee', 'UserAccessRequest',
    'User', 'SessionToken',
    'SecurityEvent',
    'DocumentSequence',
]
