from .tenancy import Organization
from .auth import User, Operator, SessionToken
from .catalog import Supplier, Product
from .sales import Sale
from .inventory import Purchase, Instance, StockAdjustment

__all__ = [
    'Organization',
    'User', 'Operator', 'SessionToken',
    'Supplier', 'Product',
    'Sale',
    'Purchase', 'Instance', 'StockAdjustment',
]
