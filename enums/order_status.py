from enum import Enum


class OrderStatus(str, Enum):
    PENDING = "pending"        # Created at checkout, waiting for payment
    CONFIRMED = "confirmed"    # Payment settled
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"    # Payment window expired with no funds observed
    REFUNDED = "refunded"
