from datetime import datetime

from pydantic import BaseModel, field_validator
from sqlalchemy import Column, Integer, Float, String, ForeignKey, DateTime, Boolean, func, Enum as SQLEnum

from enums.currency import Currency
from enums.payment_method import PaymentMethod
from models.base import Base


class Payment(Base):
    """
    Append-only record of a completed settlement.

    At most one non-refund Payment exists per order; settlement checks before inserting.
    """
    __tablename__ = 'payments'

    id = Column(Integer, primary_key=True, unique=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    amount = Column(Float, nullable=False)
    currency = Column(String(8), nullable=False)
    method = Column(SQLEnum(PaymentMethod), nullable=False)
    transaction_hash = Column(String(66), nullable=True)
    is_refund = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=func.now())


class PaymentDTO(BaseModel):
    id: int | None = None
    order_id: int | None = None
    user_id: int | None = None
    amount: float | None = None
    currency: Currency | None = None
    method: PaymentMethod | None = None
    transaction_hash: str | None = None
    is_refund: bool | None = False
    created_at: datetime | None = None

    @field_validator('currency', mode='before')
    @classmethod
    def normalize_currency(cls, value):
        return Currency.normalize(value)
