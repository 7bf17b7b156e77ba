from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from db import session_execute
from enums.cart_item_status import CartItemStatus
from models.cart import Cart, CartItem, CartItemDTO


class CartRepository:
    @staticmethod
    async def get_active_items_by_user(user_id: int, session: Session | AsyncSession) -> list[CartItemDTO]:
        stmt = (
            select(CartItem)
            .join(Cart, Cart.id == CartItem.cart_id)
            .where(Cart.user_id == user_id, CartItem.status == CartItemStatus.ACTIVE)
            .order_by(CartItem.id)
            .execution_options(populate_existing=True)
        )
        cart_items = await session_execute(stmt, session)
        return [CartItemDTO.model_validate(ci, from_attributes=True) for ci in cart_items.scalars().all()]

    @staticmethod
    async def mark_ordered(cart_item_ids: list[int], session: Session | AsyncSession) -> int:
        """active -> ordered for exactly the given items. Items in any other state are left alone."""
        if not cart_item_ids:
            return 0
        stmt = (
            update(CartItem)
            .where(CartItem.id.in_(cart_item_ids), CartItem.status == CartItemStatus.ACTIVE)
            .values(status=CartItemStatus.ORDERED)
            .execution_options(synchronize_session=False)
        )
        result = await session_execute(stmt, session)
        return result.rowcount
