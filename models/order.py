from datetime import datetime

from pydantic import BaseModel, field_validator
from sqlalchemy import Column, Integer, Float, DateTime, ForeignKey, String, Boolean, Text, func, CheckConstraint, Enum as SQLEnum
from sqlalchemy.orm import relationship

from enums.currency import Currency
from enums.order_status import OrderStatus
from enums.payment_method import PaymentMethod
from enums.payment_status import PaymentStatus
from models.base import Base


class Order(Base):
    __tablename__ = 'orders'

    id = Column(Integer, primary_key=True, unique=True)
    order_number = Column(String, unique=True, nullable=False)  # ORD-<epoch ms>-<seq>
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False)
    status = Column(SQLEnum(OrderStatus), nullable=False, default=OrderStatus.PENDING)
    created_at = Column(DateTime, default=func.now())
    paid_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)

    # Money
    subtotal = Column(Float, nullable=False, default=0.0)
    delivery_fee = Column(Float, nullable=False, default=0.0)
    tax_amount = Column(Float, nullable=False, default=0.0)
    discount_amount = Column(Float, nullable=False, default=0.0)
    total_amount = Column(Float, nullable=False)
    # Plain string column: legacy rows may still hold "USDT"; DTOs normalize on read
    currency = Column(String(8), nullable=False, default=Currency.USDC.value)

    # Payment
    payment_method = Column(SQLEnum(PaymentMethod), nullable=False, default=PaymentMethod.CRYPTO)
    payment_status = Column(SQLEnum(PaymentStatus), nullable=False, default=PaymentStatus.UNPAID)
    payment_address = Column(String(42), nullable=True)
    payment_network = Column(String(16), nullable=True)
    payment_expiry = Column(DateTime, nullable=True)
    # Informational only, reported to the buyer; settlement is gated on balance, never on confirmations
    required_confirmations = Column(Integer, nullable=False, default=0)
    payment_confirmations = Column(Integer, nullable=False, default=0)
    payment_transaction_hash = Column(String(66), nullable=True)
    referral_bonus_awarded = Column(Boolean, nullable=False, default=False)

    # Sweep state lags payment state; paid + unswept is a normal, expected state
    funds_swept = Column(Boolean, nullable=False, default=False)
    funds_swept_at = Column(DateTime, nullable=True)
    funds_swept_tx_hash = Column(String(66), nullable=True)
    funds_swept_note = Column(Text, nullable=True)

    # Relations
    user = relationship('User', backref='orders')
    items = relationship('OrderItem', back_populates='order', cascade='all, delete-orphan')

    __table_args__ = (
        CheckConstraint('total_amount > 0', name='check_order_total_amount_positive'),
        CheckConstraint('payment_confirmations >= 0', name='check_confirmations_positive'),
    )


class OrderItem(Base):
    __tablename__ = 'order_items'

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey('orders.id', ondelete='CASCADE'), nullable=False)
    product_id = Column(Integer, ForeignKey('products.id'), nullable=False)
    variant_id = Column(Integer, ForeignKey('product_variants.id'), nullable=True)
    cart_item_id = Column(Integer, ForeignKey('cart_items.id'), nullable=True)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Float, nullable=False)

    order = relationship('Order', back_populates='items')

    __table_args__ = (
        CheckConstraint('quantity > 0', name='check_order_item_quantity_positive'),
    )


class OrderDTO(BaseModel):
    id: int | None = None
    order_number: str | None = None
    user_id: int | None = None
    status: OrderStatus | None = None
    created_at: datetime | None = None
    paid_at: datetime | None = None
    cancelled_at: datetime | None = None
    notes: str | None = None
    subtotal: float | None = None
    delivery_fee: float | None = 0.0
    tax_amount: float | None = 0.0
    discount_amount: float | None = 0.0
    total_amount: float | None = None
    currency: Currency | None = None
    payment_method: PaymentMethod | None = None
    payment_status: PaymentStatus | None = None
    payment_address: str | None = None
    payment_network: str | None = None
    payment_expiry: datetime | None = None
    required_confirmations: int | None = None
    payment_confirmations: int | None = None
    payment_transaction_hash: str | None = None
    referral_bonus_awarded: bool | None = None
    funds_swept: bool | None = None
    funds_swept_at: datetime | None = None
    funds_swept_tx_hash: str | None = None
    funds_swept_note: str | None = None

    @field_validator('currency', mode='before')
    @classmethod
    def normalize_currency(cls, value):
        return Currency.normalize(value)


class OrderItemDTO(BaseModel):
    id: int | None = None
    order_id: int | None = None
    product_id: int | None = None
    variant_id: int | None = None
    cart_item_id: int | None = None
    quantity: int | None = None
    unit_price: float | None = None
