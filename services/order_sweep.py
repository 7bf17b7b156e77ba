import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from db import session_commit
from enums.sweep_outcome import SweepOutcome
from models.order import OrderDTO
from repositories.order import OrderRepository
from services.address_deriver import AddressDeriver
from services.sweep_executor import SweepExecutor, SweepResult

logger = logging.getLogger(__name__)


class OrderSweepService:
    """
    Sweeps the payment address of one paid order and records the outcome on it.

    SWEPT            -> funds_swept with timestamp and tx hash
    INSUFFICIENT_GAS -> stays unswept, note records the reason (retried next tick)
    NO_FUNDS / DUST  -> funds_swept with a diagnostic note, never retried
    """

    def __init__(self, deriver: AddressDeriver, sweep_executor: SweepExecutor):
        self.deriver = deriver
        self.sweep_executor = sweep_executor

    async def sweep_order(self, order: OrderDTO, session: AsyncSession | Session) -> SweepResult | None:
        """Returns None when the order is skipped (address not derivable from its buyer)."""
        derived = self.deriver.derive(order.user_id)
        if order.payment_address and order.payment_address.lower() != derived.address.lower():
            logger.warning(f"Order {order.order_number}: payment address {order.payment_address} is not "
                           f"the buyer-derived address, skipping sweep (legacy order-tied address)")
            return None

        result = await self.sweep_executor.sweep(derived, order.currency)
        now = datetime.now()
        if result.outcome == SweepOutcome.SWEPT:
            await OrderRepository.mark_swept(order.id, now, result.tx_hash, None, session)
            logger.info(f"Order {order.order_number}: funds swept ({result.tx_hash})")
        elif result.outcome.is_retryable():
            await OrderRepository.set_sweep_note(order.id, result.message, session)
            logger.info(f"Order {order.order_number}: sweep deferred, {result.message}")
        else:
            await OrderRepository.mark_swept(order.id, now, None, result.message, session)
            logger.info(f"Order {order.order_number}: marked swept without transfer ({result.outcome.value}: "
                        f"{result.message})")
        await session_commit(session)
        return result
