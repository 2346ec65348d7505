from .tenancy import Merchant, Location
from .auth import User, UserRole
from .catalog import Product
from .inventory import InventoryEntry, StockMovement, MovementType, PaymentStatus
from .sales import Sale, SaleItem
from .communications import Notification, AuditLog

__all__ = [
    'Merchant', 'Location',
    'User', 'UserRole',
    'Product',
    'InventoryEntry', 'StockMovement', 'MovementType', 'PaymentStatus',
    'Sale', 'SaleItem',
    'Notification', 'AuditLog',
]
