from pydantic import BaseModel
from sqlalchemy import Column, Integer, String, Float, Boolean, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship

from models.base import Base


class Product(Base):
    __tablename__ = 'products'

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    price = Column(Float, nullable=False, default=0.0)
    # When variants exist this is the sum of the variant stocks
    stock = Column(Integer, nullable=False, default=0)
    out_of_stock = Column(Boolean, nullable=False, default=False)

    variants = relationship('ProductVariant', back_populates='product', cascade='all, delete-orphan')

    __table_args__ = (
        CheckConstraint('stock >= 0', name='check_product_stock_positive'),
    )


class ProductVariant(Base):
    __tablename__ = 'product_variants'

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey('products.id', ondelete='CASCADE'), nullable=False)
    name = Column(String, nullable=False)
    stock = Column(Integer, nullable=False, default=0)

    product = relationship('Product', back_populates='variants')

    __table_args__ = (
        CheckConstraint('stock >= 0', name='check_variant_stock_positive'),
    )


class ProductDTO(BaseModel):
    id: int | None = None
    name: str | None = None
    price: float | None = None
    stock: int | None = None
    out_of_stock: bool | None = None
