from .auth import User, SessionToken
from .inventory import Product, ProductUnit
from .warranties import Warranty
from .sales import Order, OrderLine, Quote, QuoteLine
from .activity import ActivityLog
from .communications import EmailLog
from .retailers import RetailerInventoryItem

__all__ = [
    'User', 'SessionToken',
    'Product', 'ProductUnit',
    'Warranty',
    'Order', 'OrderLine', 'Quote', 'QuoteLine',
    'ActivityLog',
    'EmailLog',
    'RetailerInventoryItem',
]
