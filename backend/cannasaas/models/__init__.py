from .tenancy import Organization, Dispensary
from .customers import Customer
from .catalog import Product, ProductVariant, StockMovement
from .carts import Cart, CartItem
from .orders import Order, OrderItem, OrderStatusHistory, OrderSequence
from .compliance import ComplianceLog, DailySalesReport, COMPLIANCE_EVENT_TYPES
from .deliveries import Delivery
from .notifications import OrderStatusEvent

__all__ = [
    'Organization', 'Dispensary',
    'Customer',
    'Product', 'ProductVariant', 'StockMovement',
    'Cart', 'CartItem',
    'Order', 'OrderItem', 'OrderStatusHistory', 'OrderSequence',
    'ComplianceLog', 'DailySalesReport', 'COMPLIANCE_EVENT_TYPES',
    'Delivery',
    'OrderStatusEvent',
]
