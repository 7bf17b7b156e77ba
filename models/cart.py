# A cart belongs to one user. Items move active -> ordered only when the order they
# were checked out in is settled; items added after checkout stay active.
from pydantic import BaseModel, field_validator
from sqlalchemy import Column, Integer, ForeignKey, Float, String, CheckConstraint, Enum as SQLEnum
from sqlalchemy.orm import relationship

from enums.cart_item_status import CartItemStatus
from enums.currency import Currency
from models.base import Base


class Cart(Base):
    __tablename__ = "carts"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, unique=True)

    items = relationship('CartItem', back_populates='cart', cascade='all, delete-orphan')


class CartItem(Base):
    __tablename__ = "cart_items"

    id = Column(Integer, primary_key=True)
    cart_id = Column(Integer, ForeignKey("carts.id"), nullable=False)
    product_id = Column(Integer, ForeignKey('products.id'), nullable=False)
    variant_id = Column(Integer, ForeignKey('product_variants.id'), nullable=True)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Float, nullable=False, default=0.0)
    # Plain string column: rows written before the USDC migration still hold "USDT"
    currency = Column(String(8), nullable=False, default=Currency.USDC.value)
    status = Column(SQLEnum(CartItemStatus), nullable=False, default=CartItemStatus.ACTIVE)

    cart = relationship('Cart', back_populates='items')

    __table_args__ = (
        CheckConstraint('quantity > 0', name='check_quantity_positive'),
    )


class CartItemDTO(BaseModel):
    id: int | None = None
    cart_id: int | None = None
    product_id: int | None = None
    variant_id: int | None = None
    quantity: int | None = None
    unit_price: float | None = None
    currency: Currency | None = None
    status: CartItemStatus | None = None

    @field_validator('currency', mode='before')
    @classmethod
    def normalize_currency(cls, value):
        return Currency.normalize(value)
