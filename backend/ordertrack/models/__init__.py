from .customers import Customer
from .products import ProductTemplate
from .orders import Order, Delivery
from .payments import Payment, EntryType
from .settings import AppSetting

__all__ = [
    'Customer',
    'ProductTemplate',
    'Order', 'Delivery',
    'Payment', 'EntryType',
    'AppSetting',
]
