"""
Order-related exceptions.
"""

from .base import ShopException


class OrderException(ShopException):
    """Base exception for order-related errors."""
    pass


class OrderNotFoundException(OrderException):
    def __init__(self, order_id: int):
        super().__init__(
            f"Order #{order_id} not found",
            {'order_id': order_id}
        )


class InvalidOrderStateException(OrderException):
    """Raised when an operation is not valid for the order's current payment/order state."""

    def __init__(self, order_id: int, current_state: str, required_state: str | None = None):
        message = f"Order #{order_id} is in state '{current_state}'"
        if required_state:
            message += f", expected '{required_state}'"
        super().__init__(
            message,
            {'order_id': order_id, 'current_state': current_state, 'required_state': required_state}
        )


class OrderOwnershipException(OrderException):
    def __init__(self, order_id: int, user_id: int):
        super().__init__(
            f"Order #{order_id} does not belong to user {user_id}",
            {'order_id': order_id, 'user_id': user_id}
        )


class EmptyCartException(OrderException):
    def __init__(self, user_id: int):
        super().__init__(
            f"User {user_id} has no active cart items",
            {'user_id': user_id}
        )
