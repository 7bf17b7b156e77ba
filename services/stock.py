import logging

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from repositories.product import ProductRepository

logger = logging.getLogger(__name__)


class StockService:

    @staticmethod
    async def decrement_stock(product_id: int, variant_id: int | None, quantity: int,
                              session: AsyncSession | Session) -> None:
        """
        Reduce stock by the ordered quantity, flooring at 0.

        A variant sale recomputes the product stock as the sum of its variants.
        The product's out_of_stock flag follows the resulting stock.
        """
        if variant_id is not None:
            await ProductRepository.decrement_variant_stock(variant_id, quantity, session)
            new_stock = await ProductRepository.sum_variant_stock(product_id, session)
        else:
            await ProductRepository.decrement_stock(product_id, quantity, session)
            if await ProductRepository.count_variants(product_id, session) > 0:
                new_stock = await ProductRepository.sum_variant_stock(product_id, session)
            else:
                product = await ProductRepository.get_by_id(product_id, session)
                if product is None:
                    logger.warning(f"Stock update skipped: product {product_id} not found")
                    return
                new_stock = product.stock
        await ProductRepository.set_stock(product_id, new_stock, session)
        if new_stock == 0:
            logger.info(f"Product {product_id} is now out of stock")
