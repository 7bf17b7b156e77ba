"""
User-related exceptions.
"""

from .base import ShopException


class UserException(ShopException):
    """Base exception for user-related errors."""
    pass


class UserNotFoundException(UserException):
    def __init__(self, user_id: int):
        super().__init__(
            f"User {user_id} not found",
            {'user_id': user_id}
        )
