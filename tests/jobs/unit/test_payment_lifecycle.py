"""
Scheduler-driven payment lifecycle: a verification tick settles the funded
order, a later sweep tick moves the funds to the treasury.
"""

import pytest
from sqlalchemy import select

from enums.cart_item_status import CartItemStatus
from enums.order_status import OrderStatus
from enums.payment_status import PaymentStatus
from jobs.fund_sweeper_job import FundSweeperJob
from jobs.payment_verification_job import PaymentVerificationJob
from models.cart import CartItem
from models.order import Order
from models.payment import Payment
from models.user import User

TREASURY = "0x1111111111111111111111111111111111111111"


class TestSchedulerLifecycle:

    @pytest.mark.asyncio
    async def test_verification_then_sweep(self, crypto_payment, order_sweep, chain, session,
                                           session_factory, shop, make_order):
        verification = PaymentVerificationJob(crypto_payment, check_interval_seconds=3600,
                                              session_factory=session_factory)
        sweeper = FundSweeperJob(order_sweep, check_interval_seconds=3600, session_factory=session_factory)
        order_id = make_order(total_amount=100.0)
        # Within the 0.1% tolerance of 100 USDC
        chain.fund_token(shop.buyer_address, 99_950_000)
        chain.fund_native(shop.buyer_address, 10 ** 16)

        verification_stats = await verification.run_once()

        order = session.get(Order, order_id)
        assert verification_stats["settled"] == 1
        assert order.payment_status == PaymentStatus.PAID
        assert order.status == OrderStatus.CONFIRMED
        assert order.funds_swept is False
        payment = session.scalars(select(Payment).where(Payment.order_id == order_id)).one()
        assert payment.amount == 100.0
        assert session.get(CartItem, 1).status == CartItemStatus.ORDERED
        assert session.get(CartItem, 2).status == CartItemStatus.ORDERED
        assert session.get(User, shop.referrer_id).balance == 4.0
        assert chain.sent == []

        sweep_stats = await sweeper.run_once()

        session.refresh(order)
        assert sweep_stats["swept"] == 1
        assert order.funds_swept is True
        assert order.funds_swept_tx_hash == chain.sent[0]["tx_hash"]
        assert chain.token_balances[TREASURY.lower()] == 99_950_000
        assert chain.token_balances[shop.buyer_address.lower()] == 0

        # Both schedulers are idle afterwards
        assert (await verification.run_once())["settled"] == 0
        assert (await sweeper.run_once())["swept"] == 0
