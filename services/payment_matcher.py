import logging
from dataclasses import dataclass

import config
from enums.currency import Currency
from exceptions.payment import UnsupportedCurrencyException
from services.chain_reader import ChainReader
from utils.token_amounts import to_base_units, minimum_accepted

logger = logging.getLogger(__name__)

NATIVE_DECIMALS = 18


@dataclass(frozen=True)
class PaymentCheck:
    received: bool
    balance: int
    expected: int
    minimum: int
    decimals: int
    currency: Currency


class PaymentMatcher:
    """
    Decides whether an expected amount has arrived at a payment address.

    Read-only. RPC failures surface as ChainReadException instead of False so
    that an outage is never mistaken for "no funds" (which would expire a paid order).
    """

    def __init__(self, chain_reader: ChainReader, tolerance_percent: float | None = None):
        self.chain_reader = chain_reader
        self.tolerance_percent = config.PAYMENT_TOLERANCE_PERCENT if tolerance_percent is None else tolerance_percent

    def _is_native(self, currency: Currency) -> bool:
        return currency.value == self.chain_reader.network.native_symbol

    async def inspect(self, address: str, expected_amount: float, currency: Currency | str) -> PaymentCheck:
        normalized = Currency.normalize(currency)
        network = self.chain_reader.network

        if normalized.is_settlement_token():
            decimals = await self.chain_reader.token_decimals()
            balance = await self.chain_reader.token_balance(address)
        elif self._is_native(normalized):
            decimals = NATIVE_DECIMALS
            balance = await self.chain_reader.native_balance(address)
        else:
            raise UnsupportedCurrencyException(normalized.value, network.value)

        expected = to_base_units(expected_amount, decimals)
        minimum = minimum_accepted(expected, self.tolerance_percent)
        received = balance >= minimum
        logger.debug(f"Payment check {address} ({normalized.value}): balance={balance} "
                     f"expected={expected} minimum={minimum} received={received}")
        return PaymentCheck(received=received, balance=balance, expected=expected,
                            minimum=minimum, decimals=decimals, currency=normalized)

    async def received(self, address: str, expected_amount: float, currency: Currency | str) -> bool:
        check = await self.inspect(address, expected_amount, currency)
        return check.received
