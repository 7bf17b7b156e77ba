"""
Payment-related exceptions.
"""

from .base import ShopException


class PaymentException(ShopException):
    """Base exception for payment-related errors."""
    pass


class UnsupportedCurrencyException(PaymentException):
    def __init__(self, currency: str, network: str | None = None):
        message = f"Currency '{currency}' is not supported"
        if network:
            message += f" on network '{network}'"
        super().__init__(message, {'currency': currency, 'network': network})
