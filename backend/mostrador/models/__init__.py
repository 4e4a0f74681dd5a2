from .inventory import Product
from .customers import Client, ClientMovement
from .shifts import Shift
from .sales import Sale

__all__ = [
    'Product',
    'Client', 'ClientMovement',
    'Shift',
    'Sale',
]
