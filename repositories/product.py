from sqlalchemy import select, update, func, case
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from db import session_execute
from models.product import Product, ProductDTO, ProductVariant


class ProductRepository:
    @staticmethod
    async def get_by_id(product_id: int, session: Session | AsyncSession) -> ProductDTO | None:
        stmt = select(Product).where(Product.id == product_id).execution_options(populate_existing=True)
        product = await session_execute(stmt, session)
        product = product.scalar()
        if product is not None:
            return ProductDTO.model_validate(product, from_attributes=True)
        return None

    @staticmethod
    async def count_variants(product_id: int, session: Session | AsyncSession) -> int:
        stmt = select(func.count(ProductVariant.id)).where(ProductVariant.product_id == product_id)
        result = await session_execute(stmt, session)
        return result.scalar() or 0

    @staticmethod
    async def sum_variant_stock(product_id: int, session: Session | AsyncSession) -> int:
        stmt = select(func.coalesce(func.sum(ProductVariant.stock), 0)).where(ProductVariant.product_id == product_id)
        result = await session_execute(stmt, session)
        return int(result.scalar() or 0)

    @staticmethod
    async def decrement_variant_stock(variant_id: int, quantity: int, session: Session | AsyncSession) -> None:
        """stock = max(stock - quantity, 0)"""
        new_stock = case((ProductVariant.stock - quantity < 0, 0), else_=ProductVariant.stock - quantity)
        stmt = (
            update(ProductVariant)
            .where(ProductVariant.id == variant_id)
            .values(stock=new_stock)
            .execution_options(synchronize_session=False)
        )
        await session_execute(stmt, session)

    @staticmethod
    async def decrement_stock(product_id: int, quantity: int, session: Session | AsyncSession) -> None:
        new_stock = case((Product.stock - quantity < 0, 0), else_=Product.stock - quantity)
        stmt = (
            update(Product)
            .where(Product.id == product_id)
            .values(stock=new_stock)
            .execution_options(synchronize_session=False)
        )
        await session_execute(stmt, session)

    @staticmethod
    async def set_stock(product_id: int, stock: int, session: Session | AsyncSession) -> None:
        stmt = (
            update(Product)
            .where(Product.id == product_id)
            .values(stock=stock, out_of_stock=stock <= 0)
            .execution_options(synchronize_session=False)
        )
        await session_execute(stmt, session)
