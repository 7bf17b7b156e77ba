from enum import Enum


class PaymentCheckStatus(str, Enum):
    """Status reported to the buyer while a crypto order is awaiting payment."""
    PAID = "paid"
    PENDING_CONFIRMATION = "pending_confirmation"
    EXPIRED = "expired"
    WAITING = "waiting"
