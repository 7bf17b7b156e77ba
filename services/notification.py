import logging

import aiohttp

import config
from models.order import OrderDTO, OrderItemDTO

logger = logging.getLogger(__name__)


class NotificationService:

    @staticmethod
    def build_order_confirmation_html(order: OrderDTO, items: list[OrderItemDTO]) -> str:
        currency = order.currency.value if order.currency else ""
        rows = "".join(
            f"<tr><td>Product #{item.product_id}</td><td>{item.quantity}</td>"
            f"<td>{item.unit_price * item.quantity:.2f} {currency}</td></tr>"
            for item in items
        )
        return (
            f"<h2>Thank you for your order!</h2>"
            f"<p>Your payment for order <b>{order.order_number}</b> has been confirmed.</p>"
            f"<table><tr><th>Item</th><th>Qty</th><th>Total</th></tr>{rows}</table>"
            f"<p>Delivery: {order.delivery_fee or 0:.2f} {currency}<br>"
            f"<b>Total: {order.total_amount:.2f} {currency}</b></p>"
        )

    @staticmethod
    async def send_order_confirmation(order: OrderDTO, items: list[OrderItemDTO], email: str | None) -> bool:
        """
        Send the order-confirmation email through the Resend API.

        Best-effort: every failure is logged and reported as False, never raised.
        """
        if not email:
            logger.info(f"Order {order.order_number}: buyer has no email, confirmation skipped")
            return False
        if not config.RESEND_API_KEY:
            logger.warning(f"Order {order.order_number}: RESEND_API_KEY not set, confirmation skipped")
            return False

        payload = {
            "from": config.RESEND_FROM_EMAIL,
            "to": [email],
            "subject": f"Order confirmed - {config.APP_NAME}",
            "html": NotificationService.build_order_confirmation_html(order, items),
        }
        headers = {
            "Authorization": f"Bearer {config.RESEND_API_KEY}",
            "Content-Type": "application/json",
        }
        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    config.RESEND_API_URL, json=payload, headers=headers, timeout=aiohttp.ClientTimeout(total=15)
                ) as resp:
                    if resp.status >= 300:
                        body = await resp.text()
                        logger.warning(f"Resend API error {resp.status} for order {order.order_number}: {body[:200]}")
                        return False
        except Exception as e:
            logger.error(f"Failed to send confirmation for order {order.order_number}: {type(e).__name__}: {e}")
            return False

        logger.info(f"Order confirmation sent for {order.order_number}")
        return True
