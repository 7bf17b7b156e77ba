"""Fund Sweeper Job

Moves funds of paid crypto orders from the buyer-derived payment address to
the treasury. Slower cadence than verification: sweeping is never on the
buyer's critical path.
"""

import asyncio
import logging
from contextlib import AbstractAsyncContextManager
from typing import Callable

import config
from db import get_db_session, session_rollback
from repositories.order import OrderRepository
from services.order_sweep import OrderSweepService

logger = logging.getLogger(__name__)


class FundSweeperJob:
    """Background job that sweeps paid, unswept crypto orders one by one."""

    def __init__(self, order_sweep: OrderSweepService, check_interval_seconds: int | None = None,
                 session_factory: Callable[[], AbstractAsyncContextManager] = get_db_session):
        self.order_sweep = order_sweep
        self.check_interval_seconds = check_interval_seconds or config.FUND_SWEEP_INTERVAL_SECONDS
        self.session_factory = session_factory
        self.running = False
        self.task = None

    async def start(self):
        if self.running:
            logger.warning("[FundSweeper] Job already running")
            return
        self.running = True
        self.task = asyncio.create_task(self._run_loop())
        logger.info(f"[FundSweeper] Job started (interval: {self.check_interval_seconds}s)")

    async def stop(self):
        self.running = False
        if self.task:
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass
        logger.info("[FundSweeper] Job stopped")

    async def _run_loop(self):
        while self.running:
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"[FundSweeper] Error in sweep loop: {e}", exc_info=True)
            await asyncio.sleep(self.check_interval_seconds)

    async def run_once(self) -> dict[str, int]:
        stats = {"swept": 0, "deferred": 0, "closed": 0, "skipped": 0, "errors": 0}
        async with self.session_factory() as session:
            orders = await OrderRepository.get_paid_unswept_crypto(session)
            if not orders:
                logger.debug("[FundSweeper] No paid orders awaiting sweep")
                return stats

            logger.info(f"[FundSweeper] Sweeping {len(orders)} paid orders")
            for order in orders:
                try:
                    result = await self.order_sweep.sweep_order(order, session)
                except Exception as e:
                    stats["errors"] += 1
                    await session_rollback(session)
                    logger.error(f"[FundSweeper] Order {order.order_number} sweep failed, retrying next tick: "
                                 f"{type(e).__name__}: {e}")
                    continue

                if result is None:
                    stats["skipped"] += 1
                elif result.success:
                    stats["swept"] += 1
                elif result.outcome.is_retryable():
                    stats["deferred"] += 1
                else:
                    stats["closed"] += 1
        return stats
