import logging
from dataclasses import dataclass

import config
from enums.currency import Currency
from enums.sweep_outcome import SweepOutcome
from exceptions.chain import ChainReadException
from exceptions.configuration import TreasuryNotConfiguredException
from exceptions.payment import UnsupportedCurrencyException
from services.address_deriver import DerivedAccount
from services.chain_reader import ChainReader

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    success: bool
    outcome: SweepOutcome
    tx_hash: str | None = None
    amount_swept: int | None = None
    message: str | None = None


class SweepExecutor:
    """
    Moves the full balance of a derived payment address to the treasury.

    Safe to call repeatedly: an empty address yields NO_FUNDS and sends nothing.
    Transfer failures raise TransferFailedException; RPC failures raise ChainReadException.
    """

    def __init__(self, chain_reader: ChainReader, treasury_address: str | None = None,
                 gas_margin_percent: int | None = None):
        self.chain_reader = chain_reader
        self.treasury_address = config.MAIN_WALLET_ADDRESS if treasury_address is None else treasury_address
        self.gas_margin_percent = config.SWEEP_GAS_MARGIN_PERCENT if gas_margin_percent is None else gas_margin_percent

    def _with_margin(self, gas: int, gas_price: int) -> int:
        return gas * gas_price * (100 + self.gas_margin_percent) // 100

    async def sweep(self, derived: DerivedAccount, currency: Currency | str,
                    treasury_address: str | None = None) -> SweepResult:
        treasury = treasury_address or self.treasury_address
        if not treasury:
            raise TreasuryNotConfiguredException()

        normalized = Currency.normalize(currency)
        if normalized.is_settlement_token():
            return await self._sweep_token(derived, treasury)
        if normalized.value == self.chain_reader.network.native_symbol:
            return await self._sweep_native(derived, treasury)
        raise UnsupportedCurrencyException(normalized.value, self.chain_reader.network.value)

    async def _sweep_token(self, derived: DerivedAccount, treasury: str) -> SweepResult:
        balance = await self.chain_reader.token_balance(derived.address)
        if balance == 0:
            return SweepResult(success=False, outcome=SweepOutcome.NO_FUNDS, message="no funds")

        try:
            gas = await self.chain_reader.estimate_token_transfer_gas(derived.address, treasury, balance)
        except ChainReadException as e:
            logger.warning(f"Token transfer gas estimation failed for {derived.address}, "
                           f"using {config.TOKEN_TRANSFER_GAS_FALLBACK}: {e}")
            gas = config.TOKEN_TRANSFER_GAS_FALLBACK

        gas_price = await self.chain_reader.current_gas_price()
        gas_budget = self._with_margin(gas, gas_price)
        native_balance = await self.chain_reader.native_balance(derived.address)
        if native_balance < gas_budget:
            logger.info(f"Sweep of {derived.address} waits for gas: have {native_balance} wei, need {gas_budget} wei")
            return SweepResult(success=False, outcome=SweepOutcome.INSUFFICIENT_GAS,
                               message="insufficient native token for gas")

        tx_hash = await self.chain_reader.send_token_transfer(derived.signer, treasury, balance, gas, gas_price)
        logger.info(f"Swept {balance} token units from {derived.address} to treasury: {tx_hash}")
        return SweepResult(success=True, outcome=SweepOutcome.SWEPT, tx_hash=tx_hash, amount_swept=balance)

    async def _sweep_native(self, derived: DerivedAccount, treasury: str) -> SweepResult:
        balance = await self.chain_reader.native_balance(derived.address)
        if balance == 0:
            return SweepResult(success=False, outcome=SweepOutcome.NO_FUNDS, message="no funds")

        try:
            gas = await self.chain_reader.estimate_gas({"from": derived.address, "to": treasury, "value": balance})
        except ChainReadException as e:
            logger.warning(f"Native transfer gas estimation failed for {derived.address}, "
                           f"using {config.NATIVE_TRANSFER_GAS_FALLBACK}: {e}")
            gas = config.NATIVE_TRANSFER_GAS_FALLBACK

        gas_price = await self.chain_reader.current_gas_price()
        amount_to_send = balance - self._with_margin(gas, gas_price)
        if amount_to_send <= 0:
            return SweepResult(success=False, outcome=SweepOutcome.DUST,
                               message="insufficient funds to cover gas")

        tx_hash = await self.chain_reader.send_native_transfer(derived.signer, treasury, amount_to_send, gas, gas_price)
        logger.info(f"Swept {amount_to_send} wei from {derived.address} to treasury: {tx_hash}")
        return SweepResult(success=True, outcome=SweepOutcome.SWEPT, tx_hash=tx_hash, amount_swept=amount_to_send)
