from datetime import datetime
import logging

from sqlalchemy import select, update, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from db import session_execute, session_flush
from enums.currency import Currency
from enums.order_status import OrderStatus
from enums.payment_method import PaymentMethod
from enums.payment_status import PaymentStatus
from models.order import Order, OrderDTO, OrderItem, OrderItemDTO

logger = logging.getLogger(__name__)


class OrderRepository:
    @staticmethod
    async def create(order_dto: OrderDTO, session: AsyncSession | Session) -> int:
        order_data = order_dto.model_dump(exclude_none=True)
        order_data.pop('id', None)
        if 'currency' in order_data:
            order_data['currency'] = Currency.normalize(order_data['currency']).value
        order = Order(**order_data)
        session.add(order)
        await session_flush(session)
        return order.id

    @staticmethod
    async def create_item(order_item_dto: OrderItemDTO, session: AsyncSession | Session) -> int:
        item = OrderItem(**order_item_dto.model_dump(exclude_none=True, exclude={'id'}))
        session.add(item)
        await session_flush(session)
        return item.id

    @staticmethod
    async def get_by_id(order_id: int, session: AsyncSession | Session) -> OrderDTO | None:
        stmt = select(Order).where(Order.id == order_id).execution_options(populate_existing=True)
        order = await session_execute(stmt, session)
        order = order.scalar()
        if order is not None:
            return OrderDTO.model_validate(order, from_attributes=True)
        else:
            return None

    @staticmethod
    async def get_items(order_id: int, session: AsyncSession | Session) -> list[OrderItemDTO]:
        stmt = select(OrderItem).where(OrderItem.order_id == order_id).order_by(OrderItem.id)
        items = await session_execute(stmt, session)
        return [OrderItemDTO.model_validate(item, from_attributes=True) for item in items.scalars().all()]

    @staticmethod
    async def count(session: AsyncSession | Session) -> int:
        stmt = select(func.count(Order.id))
        result = await session_execute(stmt, session)
        return result.scalar() or 0

    @staticmethod
    async def get_unpaid_crypto(session: AsyncSession | Session) -> list[OrderDTO]:
        """Orders the verification scheduler polls: crypto, unpaid, address assigned."""
        stmt = select(Order).where(
            Order.payment_method == PaymentMethod.CRYPTO,
            Order.payment_status == PaymentStatus.UNPAID,
            Order.payment_address.is_not(None)
        ).order_by(Order.id).execution_options(populate_existing=True)
        orders = await session_execute(stmt, session)
        return [OrderDTO.model_validate(order, from_attributes=True) for order in orders.scalars().all()]

    @staticmethod
    async def get_paid_unswept_crypto(session: AsyncSession | Session) -> list[OrderDTO]:
        stmt = select(Order).where(
            Order.payment_method == PaymentMethod.CRYPTO,
            Order.payment_status == PaymentStatus.PAID,
            or_(Order.funds_swept.is_(False), Order.funds_swept.is_(None))
        ).order_by(Order.id).execution_options(populate_existing=True)
        orders = await session_execute(stmt, session)
        return [OrderDTO.model_validate(order, from_attributes=True) for order in orders.scalars().all()]

    @staticmethod
    async def get_open_crypto_orders_by_user(user_id: int, now: datetime,
                                             session: AsyncSession | Session) -> list[OrderDTO]:
        """Unpaid crypto orders of a buyer whose payment window is still open, newest first."""
        stmt = select(Order).where(
            Order.user_id == user_id,
            Order.payment_method == PaymentMethod.CRYPTO,
            Order.payment_status == PaymentStatus.UNPAID,
            Order.status == OrderStatus.PENDING,
            Order.payment_expiry > now
        ).order_by(Order.created_at.desc(), Order.id.desc()).execution_options(populate_existing=True)
        orders = await session_execute(stmt, session)
        return [OrderDTO.model_validate(order, from_attributes=True) for order in orders.scalars().all()]

    @staticmethod
    async def mark_paid(order_id: int, paid_at: datetime, tx_hash: str | None,
                        session: AsyncSession | Session) -> bool:
        """
        Conditional unpaid -> paid transition.

        Only one caller can win the UPDATE ... WHERE payment_status='unpaid'.
        Returns True for the winner, False when the order was already settled or cancelled.
        """
        values = {
            'payment_status': PaymentStatus.PAID,
            'status': OrderStatus.CONFIRMED,
            'paid_at': paid_at,
        }
        if tx_hash:
            values['payment_transaction_hash'] = func.coalesce(Order.payment_transaction_hash, tx_hash)
        stmt = (
            update(Order)
            .where(Order.id == order_id, Order.payment_status == PaymentStatus.UNPAID)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await session_execute(stmt, session)
        return result.rowcount == 1

    @staticmethod
    async def mark_expired(order_id: int, cancelled_at: datetime, session: AsyncSession | Session) -> bool:
        """Conditional unpaid -> failed/cancelled transition. A settled order is never resurrected."""
        stmt = (
            update(Order)
            .where(Order.id == order_id, Order.payment_status == PaymentStatus.UNPAID)
            .values(
                payment_status=PaymentStatus.FAILED,
                status=OrderStatus.CANCELLED,
                cancelled_at=cancelled_at
            )
            .execution_options(synchronize_session=False)
        )
        result = await session_execute(stmt, session)
        return result.rowcount == 1

    @staticmethod
    async def claim_referral_bonus(order_id: int, session: AsyncSession | Session) -> bool:
        """Flip referral_bonus_awarded false -> true. True only for the single caller that flipped it."""
        stmt = (
            update(Order)
            .where(Order.id == order_id, Order.referral_bonus_awarded.is_(False))
            .values(referral_bonus_awarded=True)
            .execution_options(synchronize_session=False)
        )
        result = await session_execute(stmt, session)
        return result.rowcount == 1

    @staticmethod
    async def update_confirmations(order_id: int, confirmations: int, session: AsyncSession | Session) -> None:
        stmt = (
            update(Order)
            .where(Order.id == order_id)
            .values(payment_confirmations=confirmations)
            .execution_options(synchronize_session=False)
        )
        await session_execute(stmt, session)

    @staticmethod
    async def mark_swept(order_id: int, swept_at: datetime, tx_hash: str | None, note: str | None,
                         session: AsyncSession | Session) -> None:
        stmt = (
            update(Order)
            .where(Order.id == order_id)
            .values(
                funds_swept=True,
                funds_swept_at=swept_at,
                funds_swept_tx_hash=tx_hash,
                funds_swept_note=note
            )
            .execution_options(synchronize_session=False)
        )
        await session_execute(stmt, session)

    @staticmethod
    async def set_sweep_note(order_id: int, note: str, session: AsyncSession | Session) -> None:
        """Record a diagnosed but unresolved sweep failure without marking the order swept."""
        stmt = (
            update(Order)
            .where(Order.id == order_id)
            .values(funds_swept_note=note)
            .execution_options(synchronize_session=False)
        )
        await session_execute(stmt, session)
