import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from db import session_commit, session_rollback
from enums.payment_status import PaymentStatus
from exceptions.order import OrderNotFoundException
from models.order import OrderDTO, OrderItemDTO
from models.payment import PaymentDTO
from repositories.cart import CartRepository
from repositories.order import OrderRepository
from repositories.payment import PaymentRepository
from repositories.user import UserRepository
from services.notification import NotificationService
from services.payment_monitor import payment_monitor_registry
from services.referral import ReferralService
from services.stock import StockService

logger = logging.getLogger(__name__)


class OrderSettlementService:
    """
    Transitions an order to confirmed/paid exactly once.

    Used by the verification scheduler, the manual "I have paid" path and the
    card-gateway settlement callbacks. Never sweeps funds.
    """

    @staticmethod
    async def settle(order_id: int, session: AsyncSession | Session, tx_hash: str | None = None) -> bool:
        """
        Settle a paid order.

        Returns True if this call performed the settlement, False if the order was
        already paid (or no longer payable). The unpaid -> paid switch is a
        conditional UPDATE, so of two concurrent callers only one proceeds.
        """
        order = await OrderRepository.get_by_id(order_id, session)
        if order is None:
            raise OrderNotFoundException(order_id)
        if order.payment_status == PaymentStatus.PAID:
            logger.debug(f"Order {order.order_number} already paid, settlement skipped")
            return False
        if order.payment_status != PaymentStatus.UNPAID:
            logger.warning(f"Order {order.order_number} is {order.payment_status.value}, refusing to settle")
            return False

        try:
            won = await OrderRepository.mark_paid(order_id, datetime.now(), tx_hash, session)
            if not won:
                await session_rollback(session)
                logger.info(f"Order {order.order_number} was settled concurrently, skipping")
                return False

            items = await OrderRepository.get_items(order_id, session)
            await OrderSettlementService._record_payment(order, tx_hash, session)
            await OrderSettlementService._mark_cart_items_ordered(order, items, session)
            await OrderSettlementService._award_referral_bonus(order, session)
            for item in items:
                await StockService.decrement_stock(item.product_id, item.variant_id, item.quantity, session)
            await session_commit(session)
        except Exception:
            await session_rollback(session)
            raise

        logger.info(f"Order {order.order_number} settled ({order.payment_method.value}, "
                     f"{order.total_amount} {order.currency.value})")

        payment_monitor_registry.unregister(order_id)
        await OrderSettlementService._notify_buyer(order_id, items, session)
        return True

    @staticmethod
    async def _record_payment(order: OrderDTO, tx_hash: str | None, session: AsyncSession | Session) -> None:
        existing = await PaymentRepository.get_by_order_id(order.id, session)
        if existing is not None:
            logger.warning(f"Order {order.order_number} already has payment record {existing.id}")
            return
        await PaymentRepository.create(PaymentDTO(
            order_id=order.id,
            user_id=order.user_id,
            amount=order.total_amount,
            currency=order.currency,
            method=order.payment_method,
            transaction_hash=tx_hash or order.payment_transaction_hash,
        ), session)

    @staticmethod
    async def _mark_cart_items_ordered(order: OrderDTO, items: list[OrderItemDTO],
                                       session: AsyncSession | Session) -> None:
        # Only the items this order was built from; items added after checkout stay active
        cart_item_ids = [item.cart_item_id for item in items if item.cart_item_id is not None]
        untracked = {(item.product_id, item.variant_id) for item in items if item.cart_item_id is None}
        if untracked:
            active_items = await CartRepository.get_active_items_by_user(order.user_id, session)
            cart_item_ids += [ci.id for ci in active_items if (ci.product_id, ci.variant_id) in untracked]
        updated = await CartRepository.mark_ordered(cart_item_ids, session)
        logger.debug(f"Order {order.order_number}: {updated} cart items marked ordered")

    @staticmethod
    async def _award_referral_bonus(order: OrderDTO, session: AsyncSession | Session) -> None:
        buyer = await UserRepository.get_by_id(order.user_id, session)
        if buyer is None or buyer.referred_by_user_id is None:
            return
        if not await OrderRepository.claim_referral_bonus(order.id, session):
            return
        await ReferralService.credit_referral_bonus(buyer.referred_by_user_id, session)

    @staticmethod
    async def _notify_buyer(order_id: int, items: list[OrderItemDTO], session: AsyncSession | Session) -> None:
        try:
            order = await OrderRepository.get_by_id(order_id, session)
            buyer = await UserRepository.get_by_id(order.user_id, session)
            await NotificationService.send_order_confirmation(order, items, buyer.email if buyer else None)
        except Exception as e:
            logger.error(f"Order {order_id} settled but confirmation failed: {type(e).__name__}: {e}")
