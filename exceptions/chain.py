"""
Blockchain access exceptions.
"""

from .base import ShopException


class ChainException(ShopException):
    """Base exception for JSON-RPC and transfer errors."""
    pass


class ChainReadException(ChainException):
    """
    RPC call failed (timeout, connection refused, malformed response).

    Transient: callers must not interpret it as "no funds".
    """

    def __init__(self, operation: str, reason: str, network: str | None = None):
        super().__init__(
            f"RPC {operation} failed: {reason}",
            {'operation': operation, 'reason': reason, 'network': network}
        )


class TransferFailedException(ChainException):
    """Signed transfer was rejected, reverted or never included."""

    def __init__(self, address: str, reason: str, tx_hash: str | None = None):
        super().__init__(
            f"Transfer from {address} failed: {reason}",
            {'address': address, 'reason': reason, 'tx_hash': tx_hash}
        )
