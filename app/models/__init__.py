from .coupon import Coupon
from .error_log import ErrorLog
from .order import Order, OrderItem
from .payment import PaymentAttempt, PaymentEvent
from .product import Product
from .shipping import ShippingMethod
from .tax import TaxRule
from .user import User

__all__ = [
    "Coupon",
    "ErrorLog",
    "Order",
    "OrderItem",
    "PaymentAttempt",
    "PaymentEvent",
    "Product",
    "ShippingMethod",
    "TaxRule",
    "User",
]
