from enum import Enum


class PaymentStatus(str, Enum):
    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"
    REFUNDED = "refunded"    # Terminal
    FAILED = "failed"        # Terminal (payment window expired)

    def is_terminal(self) -> bool:
        return self in (PaymentStatus.REFUNDED, PaymentStatus.FAILED)
