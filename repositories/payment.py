from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from db import session_execute, session_flush
from enums.currency import Currency
from models.payment import Payment, PaymentDTO


class PaymentRepository:
    @staticmethod
    async def get_by_order_id(order_id: int, session: AsyncSession | Session) -> PaymentDTO | None:
        """Non-refund settlement record of an order, if any."""
        stmt = select(Payment).where(
            Payment.order_id == order_id,
            Payment.is_refund.is_(False)
        ).order_by(Payment.id).limit(1)
        payment = await session_execute(stmt, session)
        payment = payment.scalar()
        if payment is not None:
            return PaymentDTO.model_validate(payment, from_attributes=True)
        else:
            return None

    @staticmethod
    async def create(payment_dto: PaymentDTO, session: AsyncSession | Session) -> int:
        payment_data = payment_dto.model_dump(exclude_none=True, exclude={'id'})
        payment_data['currency'] = Currency.normalize(payment_dto.currency).value
        payment = Payment(**payment_data)
        session.add(payment)
        await session_flush(session)
        return payment.id
