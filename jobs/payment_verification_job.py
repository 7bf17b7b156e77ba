"""Payment Verification Job

Polls every unpaid crypto order:
- Funds at the payment address -> capture funding tx hash (best effort), settle
- No funds and past payment_expiry -> failed/cancelled, monitoring stopped
- Otherwise retried next tick

Paid and cancelled orders drop out of the query, so both transitions are terminal.
"""

import asyncio
import logging
from contextlib import AbstractAsyncContextManager
from datetime import datetime
from typing import Callable

import config
from db import get_db_session, session_commit, session_rollback
from models.order import OrderDTO
from repositories.order import OrderRepository
from services.crypto_payment import CryptoPaymentService
from services.order_settlement import OrderSettlementService
from services.payment_monitor import payment_monitor_registry

logger = logging.getLogger(__name__)


class PaymentVerificationJob:
    """Background job that settles or expires pending crypto orders."""

    def __init__(self, crypto_payment: CryptoPaymentService, check_interval_seconds: int | None = None,
                 session_factory: Callable[[], AbstractAsyncContextManager] = get_db_session):
        self.crypto_payment = crypto_payment
        self.check_interval_seconds = check_interval_seconds or config.PAYMENT_VERIFICATION_INTERVAL_SECONDS
        self.session_factory = session_factory
        self.running = False
        self.task = None

    async def start(self):
        if self.running:
            logger.warning("[PaymentVerification] Job already running")
            return
        self.running = True
        self.task = asyncio.create_task(self._run_loop())
        logger.info(f"[PaymentVerification] Job started (interval: {self.check_interval_seconds}s)")

    async def stop(self):
        self.running = False
        if self.task:
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass
        logger.info("[PaymentVerification] Job stopped")

    async def _run_loop(self):
        while self.running:
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"[PaymentVerification] Error in verification loop: {e}", exc_info=True)
            await asyncio.sleep(self.check_interval_seconds)

    async def run_once(self) -> dict[str, int]:
        """One tick. Returns counters for settled, expired, waiting and failed orders."""
        stats = {"settled": 0, "expired": 0, "waiting": 0, "errors": 0}
        async with self.session_factory() as session:
            pending = await OrderRepository.get_unpaid_crypto(session)
            if not pending:
                logger.debug("[PaymentVerification] No pending crypto payments")
                return stats

            logger.info(f"[PaymentVerification] Checking {len(pending)} pending crypto payments")
            for order in pending:
                try:
                    outcome = await self.verify_order(order, session)
                    stats[outcome] += 1
                except Exception as e:
                    stats["errors"] += 1
                    await session_rollback(session)
                    logger.error(f"[PaymentVerification] Order {order.order_number} failed: {type(e).__name__}: {e}")
        return stats

    async def verify_order(self, order: OrderDTO, session) -> str:
        matcher = self.crypto_payment.matcher
        check = await matcher.inspect(order.payment_address, order.total_amount, order.currency)

        if check.received:
            tx_hash = await self.crypto_payment.lookup_transaction_hash(order, check.minimum)
            if tx_hash and not order.payment_transaction_hash:
                logger.info(f"[PaymentVerification] Order {order.order_number} funding tx {tx_hash}")
            settled = await OrderSettlementService.settle(order.id, session, tx_hash)
            if settled:
                logger.info(f"[PaymentVerification] Order {order.order_number} confirmed (sweep runs separately)")
            # After settle(): a lost settlement race rolls the session back
            if tx_hash:
                await self._record_confirmations(order, tx_hash, session)
            return "settled"

        if order.payment_expiry and datetime.now() > order.payment_expiry:
            expired = await OrderRepository.mark_expired(order.id, datetime.now(), session)
            await session_commit(session)
            payment_monitor_registry.unregister(order.id)
            if expired:
                logger.info(f"[PaymentVerification] Order {order.order_number} unpaid past expiry, cancelled")
            return "expired"

        return "waiting"

    async def _record_confirmations(self, order: OrderDTO, tx_hash: str, session) -> None:
        try:
            confirmations = await self.crypto_payment.chain_reader.confirmations(tx_hash)
        except Exception as e:
            logger.debug(f"[PaymentVerification] Confirmations unavailable for {tx_hash}: {e}")
            return
        await OrderRepository.update_confirmations(order.id, confirmations, session)
        await session_commit(session)
