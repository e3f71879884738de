from laundry.models.inventory import InventoryItem, StockStatus
from laundry.models.notification import Notification, NotificationReceipt, NotificationType, Priority
from laundry.models.order import Order, OrderStatus, PaymentMethod, PaymentStatus
from laundry.models.user import Role, User

__all__ = [
    "InventoryItem",
    "StockStatus",
    "Notification",
    "NotificationReceipt",
    "NotificationType",
    "Priority",
    "Order",
    "OrderStatus",
    "PaymentMethod",
    "PaymentStatus",
    "Role",
    "User",
]
