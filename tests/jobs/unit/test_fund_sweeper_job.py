"""
Unit tests for FundSweeperJob.

Sweeping lags settlement: paid + unswept is a normal state, and only
gas shortages and transfer failures are retried.
"""

import pytest

from enums.order_status import OrderStatus
from enums.payment_status import PaymentStatus
from jobs.fund_sweeper_job import FundSweeperJob
from models.order import Order

TREASURY = "0x1111111111111111111111111111111111111111"
LEGACY_ADDRESS = "0x4444444444444444444444444444444444444444"


@pytest.fixture
def job(order_sweep, session_factory):
    return FundSweeperJob(order_sweep, check_interval_seconds=3600, session_factory=session_factory)


@pytest.fixture
def make_paid_order(make_order):
    def _make(**kwargs):
        return make_order(payment_status=PaymentStatus.PAID, status=OrderStatus.CONFIRMED, **kwargs)
    return _make


class TestFundSweeperJob:

    @pytest.mark.asyncio
    async def test_paid_order_swept(self, job, chain, session, shop, make_paid_order):
        order_id = make_paid_order()
        chain.fund_token(shop.buyer_address, 100_000_000)
        chain.fund_native(shop.buyer_address, 10 ** 16)

        stats = await job.run_once()

        order = session.get(Order, order_id)
        assert stats["swept"] == 1
        assert order.funds_swept is True
        assert order.funds_swept_at is not None
        assert order.funds_swept_tx_hash == chain.sent[0]["tx_hash"]
        assert chain.token_balances[TREASURY.lower()] == 100_000_000

    @pytest.mark.asyncio
    async def test_swept_order_not_revisited(self, job, chain, shop, make_paid_order):
        make_paid_order()
        chain.fund_token(shop.buyer_address, 100_000_000)
        chain.fund_native(shop.buyer_address, 10 ** 16)

        await job.run_once()
        stats = await job.run_once()

        assert stats == {"swept": 0, "deferred": 0, "closed": 0, "skipped": 0, "errors": 0}
        assert len(chain.sent) == 1

    @pytest.mark.asyncio
    async def test_missing_gas_deferred(self, job, chain, session, shop, make_paid_order):
        order_id = make_paid_order()
        chain.fund_token(shop.buyer_address, 100_000_000)

        first = await job.run_once()
        order = session.get(Order, order_id)
        assert first["deferred"] == 1
        assert order.funds_swept is False
        assert order.funds_swept_note == "insufficient native token for gas"

        chain.fund_native(shop.buyer_address, 10 ** 16)
        second = await job.run_once()

        assert second["swept"] == 1
        assert session.get(Order, order_id).funds_swept is True

    @pytest.mark.asyncio
    async def test_no_funds_closed_with_note(self, job, chain, session, shop, make_paid_order):
        order_id = make_paid_order()

        stats = await job.run_once()

        order = session.get(Order, order_id)
        assert stats["closed"] == 1
        assert order.funds_swept is True
        assert order.funds_swept_tx_hash is None
        assert order.funds_swept_note == "no funds"
        assert chain.sent == []

    @pytest.mark.asyncio
    async def test_legacy_order_address_skipped(self, job, chain, session, shop, make_paid_order):
        order_id = make_paid_order(payment_address=LEGACY_ADDRESS)
        chain.fund_token(LEGACY_ADDRESS, 100_000_000)
        chain.fund_native(LEGACY_ADDRESS, 10 ** 16)

        stats = await job.run_once()

        assert stats["skipped"] == 1
        assert session.get(Order, order_id).funds_swept is False
        assert chain.sent == []

    @pytest.mark.asyncio
    async def test_transfer_failure_retried_next_tick(self, job, chain, session, shop, second_buyer,
                                                      make_paid_order):
        failing_id = make_paid_order()
        other_id = make_paid_order(user_id=second_buyer.user_id)
        for address in (shop.buyer_address, second_buyer.address):
            chain.fund_token(address, 100_000_000)
            chain.fund_native(address, 10 ** 16)
        chain.failing_senders.add(shop.buyer_address.lower())

        stats = await job.run_once()

        assert stats["errors"] == 1
        assert stats["swept"] == 1
        assert session.get(Order, failing_id).funds_swept is False
        assert session.get(Order, other_id).funds_swept is True

    @pytest.mark.asyncio
    async def test_unpaid_orders_not_swept(self, job, chain, shop, make_order):
        make_order()
        chain.fund_token(shop.buyer_address, 100_000_000)
        chain.fund_native(shop.buyer_address, 10 ** 16)

        stats = await job.run_once()

        assert stats["swept"] == 0
        assert chain.sent == []
