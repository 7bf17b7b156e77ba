from datetime import datetime

from pydantic import BaseModel
from sqlalchemy import Column, Integer, DateTime, String, Float, ForeignKey, func, CheckConstraint

from models.base import Base


class User(Base):
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True)
    email = Column(String, unique=True, nullable=True)
    name = Column(String, nullable=True)
    registered_at = Column(DateTime, default=func.now())

    # Wallet balance (referral bonuses are credited here)
    balance = Column(Float, nullable=False, default=0.0)

    # Referral-System
    referred_by_user_id = Column(Integer, ForeignKey('users.id'), nullable=True)

    # Deterministic, derived from (user id, master secret). Assigned once on first
    # crypto checkout and never regenerated.
    crypto_payment_address = Column(String(42), unique=True, nullable=True)

    __table_args__ = (
        CheckConstraint('balance >= 0', name='check_wallet_balance_positive'),
    )


class UserDTO(BaseModel):
    id: int | None = None
    email: str | None = None
    name: str | None = None
    registered_at: datetime | None = None
    balance: float | None = None
    referred_by_user_id: int | None = None
    crypto_payment_address: str | None = None
