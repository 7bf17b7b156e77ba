import logging
from dataclasses import dataclass
from datetime import datetime

from enums.currency import Currency

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MonitoredPayment:
    order_id: int
    address: str
    expected_amount: float
    currency: Currency
    registered_at: datetime


class PaymentMonitorRegistry:
    """
    Explicit registry of orders whose payment address is being watched.

    Checkout registers, settlement and expiry unregister. Both operations are
    idempotent. The verification scheduler polls the database, not this registry;
    the registry answers "is anything still watching order X" for the API and logs.
    """

    def __init__(self):
        self._entries: dict[int, MonitoredPayment] = {}

    def register(self, order_id: int, address: str, expected_amount: float, currency: Currency | str) -> None:
        self._entries[order_id] = MonitoredPayment(
            order_id=order_id,
            address=address,
            expected_amount=expected_amount,
            currency=Currency.normalize(currency),
            registered_at=datetime.now(),
        )
        logger.debug(f"Monitoring started for order {order_id} at {address}")

    def unregister(self, order_id: int) -> bool:
        removed = self._entries.pop(order_id, None) is not None
        if removed:
            logger.debug(f"Monitoring stopped for order {order_id}")
        return removed

    def is_monitored(self, order_id: int) -> bool:
        return order_id in self._entries

    def get(self, order_id: int) -> MonitoredPayment | None:
        return self._entries.get(order_id)

    def snapshot(self) -> list[MonitoredPayment]:
        return list(self._entries.values())

    def clear(self) -> None:
        self._entries.clear()


payment_monitor_registry = PaymentMonitorRegistry()
