from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from db import session_execute
from models.user import UserDTO, User


class UserRepository:
    @staticmethod
    async def get_by_id(user_id: int, session: AsyncSession | Session) -> UserDTO | None:
        stmt = select(User).where(User.id == user_id).execution_options(populate_existing=True)
        user = await session_execute(stmt, session)
        user = user.scalar()
        if user is not None:
            return UserDTO.model_validate(user, from_attributes=True)
        else:
            return user

    @staticmethod
    async def set_crypto_payment_address(user_id: int, address: str, session: Session | AsyncSession) -> bool:
        """Store the derived address once. An already assigned address is never overwritten."""
        stmt = (
            update(User)
            .where(User.id == user_id, User.crypto_payment_address.is_(None))
            .values(crypto_payment_address=address)
            .execution_options(synchronize_session=False)
        )
        result = await session_execute(stmt, session)
        return result.rowcount == 1

    @staticmethod
    async def credit_balance(user_id: int, amount: float, session: Session | AsyncSession) -> bool:
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(balance=User.balance + amount)
            .execution_options(synchronize_session=False)
        )
        result = await session_execute(stmt, session)
        return result.rowcount == 1
