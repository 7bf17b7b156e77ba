"""
Unit tests for PaymentMatcher.

Balances are integers in the token's smallest unit (USDC: 6 decimals) and the
default tolerance is 0.1%, so 100 USDC accepts anything from 99.9 USDC.
"""

import pytest

from enums.currency import Currency
from enums.network import Network
from exceptions.chain import ChainReadException
from exceptions.payment import UnsupportedCurrencyException
from services.payment_matcher import PaymentMatcher

ADDRESS = "0x2222222222222222222222222222222222222222"


class TestPaymentMatcher:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("balance_units, received", [
        (99_800_000, False),
        (99_899_999, False),
        (99_900_000, True),
        (99_950_000, True),
        (100_000_000, True),
        (150_000_000, True),
    ])
    async def test_tolerance_boundary(self, chain, balance_units, received):
        chain.fund_token(ADDRESS, balance_units)
        assert await PaymentMatcher(chain, 0.1).received(ADDRESS, 100.0, Currency.USDC) is received

    @pytest.mark.asyncio
    async def test_empty_address_not_received(self, chain):
        check = await PaymentMatcher(chain, 0.1).inspect(ADDRESS, 100.0, Currency.USDC)
        assert check.received is False
        assert check.balance == 0
        assert check.expected == 100_000_000
        assert check.minimum == 99_900_000

    @pytest.mark.asyncio
    async def test_converted_price_truncated(self, chain):
        chain.fund_token(ADDRESS, 63_333_333)
        check = await PaymentMatcher(chain, 0).inspect(ADDRESS, 63.333333333333336, Currency.USDC)
        assert check.expected == 63_333_333
        assert check.received is True

    @pytest.mark.asyncio
    async def test_legacy_usdt_order_checked_as_usdc(self, chain):
        chain.fund_token(ADDRESS, 100_000_000)
        check = await PaymentMatcher(chain, 0.1).inspect(ADDRESS, 100.0, "USDT")
        assert check.received is True
        assert check.currency == Currency.USDC

    @pytest.mark.asyncio
    async def test_usd_paid_in_settlement_token(self, chain):
        chain.fund_token(ADDRESS, 25_000_000)
        assert await PaymentMatcher(chain, 0.1).received(ADDRESS, 25.0, Currency.USD) is True

    @pytest.mark.asyncio
    async def test_native_coin(self, chain):
        chain.fund_native(ADDRESS, 50_000_000_000_000_000)  # 0.05 ETH
        check = await PaymentMatcher(chain, 0.1).inspect(ADDRESS, 0.05, Currency.ETH)
        assert check.received is True
        assert check.decimals == 18

    @pytest.mark.asyncio
    async def test_token_balance_ignored_for_native_order(self, chain):
        chain.fund_token(ADDRESS, 100_000_000)
        assert await PaymentMatcher(chain, 0.1).received(ADDRESS, 0.05, Currency.ETH) is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("currency", [Currency.MATIC, Currency.NGN, Currency.EUR])
    async def test_unsupported_currency(self, chain, currency):
        with pytest.raises(UnsupportedCurrencyException):
            await PaymentMatcher(chain, 0.1).inspect(ADDRESS, 10.0, currency)

    @pytest.mark.asyncio
    async def test_settlement_token_on_bsc_uses_18_decimals(self, make_chain):
        bsc = make_chain(network=Network.BSC, decimals=18)
        bsc.fund_token(ADDRESS, 99_950_000_000_000_000_000)

        check = await PaymentMatcher(bsc, 0.1).inspect(ADDRESS, 100.0, Currency.USDC)

        assert check.received is True
        assert check.expected == 100 * 10 ** 18
        assert check.minimum == 99_900_000_000_000_000_000

    @pytest.mark.asyncio
    async def test_native_bnb_supported_on_bsc(self, make_chain):
        bsc = make_chain(network=Network.BSC)
        bsc.fund_native(ADDRESS, 10 ** 18)
        assert await PaymentMatcher(bsc, 0.1).received(ADDRESS, 1.0, Currency.BNB) is True

    @pytest.mark.asyncio
    async def test_rpc_failure_propagates(self, chain):
        """An outage must never read as 'not paid'."""
        chain.failing_addresses.add(ADDRESS.lower())
        with pytest.raises(ChainReadException):
            await PaymentMatcher(chain, 0.1).received(ADDRESS, 100.0, Currency.USDC)

    @pytest.mark.asyncio
    async def test_tolerance_defaults_to_config(self, chain):
        assert PaymentMatcher(chain).tolerance_percent == 0.1
