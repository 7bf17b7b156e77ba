import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

import config
from db import session_commit, session_rollback
from enums.currency import Currency
from enums.order_status import OrderStatus
from enums.payment_check_status import PaymentCheckStatus
from enums.payment_method import PaymentMethod
from enums.payment_status import PaymentStatus
from exceptions.chain import ChainException
from exceptions.order import (
    OrderNotFoundException,
    OrderOwnershipException,
    InvalidOrderStateException,
    EmptyCartException
)
from exceptions.payment import UnsupportedCurrencyException
from exceptions.user import UserNotFoundException
from models.cart import CartItemDTO
from models.order import OrderDTO, OrderItemDTO
from repositories.cart import CartRepository
from repositories.order import OrderRepository
from repositories.user import UserRepository
from services.address_deriver import AddressDeriver
from services.chain_reader import ChainReader
from services.order_settlement import OrderSettlementService
from services.order_sweep import OrderSweepService
from services.payment_matcher import PaymentMatcher
from services.payment_monitor import payment_monitor_registry

logger = logging.getLogger(__name__)


@dataclass
class CheckoutResult:
    order_id: int
    order_number: str
    payment_address: str
    amount: float
    currency: Currency
    network: str
    expiry: datetime
    reused: bool = False


@dataclass
class ConfirmationResult:
    success: bool
    status: PaymentCheckStatus
    message: str
    order_status: OrderStatus | None = None
    transaction_hash: str | None = None
    swept: bool = False
    sweep_tx_hash: str | None = None
    sweep_message: str | None = None


@dataclass
class PaymentStatusResult:
    status: PaymentCheckStatus
    payment_received: bool
    payment_address: str
    expected_amount: float
    currency: Currency
    confirmations: int = 0
    required_confirmations: int = 0
    transaction_hash: str | None = None
    expiry: datetime | None = None
    order_status: OrderStatus | None = None


def to_usd(amount: float, currency: Currency | str | None) -> float:
    """
    Price in USD for a cart item or fee. USD-pegged currencies are 1:1, NGN uses config.NGN_PER_USD.

    Raises:
        UnsupportedCurrencyException: for currencies without a USD rate (EUR, native coins)
    """
    currency = Currency.normalize(currency) or Currency.USD
    if currency.is_settlement_token():
        return amount
    if currency == Currency.NGN:
        return amount / config.NGN_PER_USD
    raise UnsupportedCurrencyException(currency.value)


def _cart_signature(entries: list[tuple[int, int | None, int]]) -> str:
    return "|".join(sorted(f"{product_id}:{variant_id or ''}:{quantity}"
                           for product_id, variant_id, quantity in entries))


class CryptoPaymentService:
    """
    Buyer-facing crypto payment flows: checkout, manual "I have paid", status polling.
    """

    def __init__(self, deriver: AddressDeriver, chain_reader: ChainReader,
                 matcher: PaymentMatcher, order_sweep: OrderSweepService):
        self.deriver = deriver
        self.chain_reader = chain_reader
        self.matcher = matcher
        self.order_sweep = order_sweep

    async def get_or_create_payment_address(self, user_id: int, session: AsyncSession | Session) -> str:
        """The buyer's payment address, derived and stored on first use, never regenerated."""
        user = await UserRepository.get_by_id(user_id, session)
        if user is None:
            raise UserNotFoundException(user_id)
        if user.crypto_payment_address:
            return user.crypto_payment_address

        address = self.deriver.derive_address(user_id)
        if not await UserRepository.set_crypto_payment_address(user_id, address, session):
            # Another request stored it first; keep whatever is stored
            user = await UserRepository.get_by_id(user_id, session)
            return user.crypto_payment_address
        logger.info(f"Payment address assigned to user {user_id}: {address}")
        return address

    @staticmethod
    async def _generate_order_number(session: AsyncSession | Session) -> str:
        count = await OrderRepository.count(session)
        return f"ORD-{int(time.time() * 1000)}-{count + 1:04d}"

    async def _find_reusable_order(self, user_id: int, signature: str, delivery_fee: float,
                                   currency: Currency, session: AsyncSession | Session) -> OrderDTO | None:
        open_orders = await OrderRepository.get_open_crypto_orders_by_user(user_id, datetime.now(), session)
        for order in open_orders:
            if not order.payment_address or order.currency != currency:
                continue
            if round(order.delivery_fee or 0.0, 8) != round(delivery_fee, 8):
                continue
            items = await OrderRepository.get_items(order.id, session)
            if _cart_signature([(i.product_id, i.variant_id, i.quantity) for i in items]) == signature:
                return order
        return None

    async def create_crypto_order(self, user_id: int, session: AsyncSession | Session,
                                  delivery_fee: float = 0.0, currency: Currency | str = Currency.USDC,
                                  notes: str | None = None,
                                  delivery_fee_currency: Currency | str = Currency.USD) -> CheckoutResult:
        """
        Build a crypto order from the buyer's active cart items.

        An unexpired unpaid crypto order with the same items is returned instead
        of creating a duplicate. Item prices and the delivery fee are converted to
        USD (see to_usd) and paid 1:1 in the settlement token.
        """
        currency = Currency.normalize(currency)
        if not currency.is_settlement_token():
            raise UnsupportedCurrencyException(currency.value, self.chain_reader.network.value)
        # USD-priced carts are paid in the settlement token
        currency = Currency.USDC

        active_items: list[CartItemDTO] = await CartRepository.get_active_items_by_user(user_id, session)
        if not active_items:
            raise EmptyCartException(user_id)

        unit_prices = {ci.id: to_usd(ci.unit_price, ci.currency) for ci in active_items}
        delivery_fee = to_usd(delivery_fee, delivery_fee_currency)

        signature = _cart_signature([(ci.product_id, ci.variant_id, ci.quantity) for ci in active_items])
        existing = await self._find_reusable_order(user_id, signature, delivery_fee, currency, session)
        if existing is not None:
            logger.info(f"Reusing open crypto order {existing.order_number} for user {user_id}")
            return CheckoutResult(order_id=existing.id, order_number=existing.order_number,
                                  payment_address=existing.payment_address, amount=existing.total_amount,
                                  currency=existing.currency, network=existing.payment_network,
                                  expiry=existing.payment_expiry, reused=True)

        subtotal = sum(unit_prices[ci.id] * ci.quantity for ci in active_items)
        total_amount = subtotal + delivery_fee
        expiry = datetime.now() + timedelta(minutes=config.PAYMENT_WINDOW_MINUTES)
        network = self.chain_reader.network.value

        try:
            payment_address = await self.get_or_create_payment_address(user_id, session)
            order_number = await self._generate_order_number(session)
            order_id = await OrderRepository.create(OrderDTO(
                order_number=order_number,
                user_id=user_id,
                status=OrderStatus.PENDING,
                subtotal=subtotal,
                delivery_fee=delivery_fee,
                total_amount=total_amount,
                currency=currency,
                payment_method=PaymentMethod.CRYPTO,
                payment_status=PaymentStatus.UNPAID,
                payment_address=payment_address,
                payment_network=network,
                payment_expiry=expiry,
                required_confirmations=config.REQUIRED_CONFIRMATIONS,
                notes=notes,
            ), session)
            for ci in active_items:
                await OrderRepository.create_item(OrderItemDTO(
                    order_id=order_id,
                    product_id=ci.product_id,
                    variant_id=ci.variant_id,
                    cart_item_id=ci.id,
                    quantity=ci.quantity,
                    unit_price=unit_prices[ci.id],
                ), session)
            await session_commit(session)
        except Exception:
            await session_rollback(session)
            raise

        payment_monitor_registry.register(order_id, payment_address, total_amount, currency)
        logger.info(f"Crypto order {order_number} created for user {user_id}: "
                    f"{total_amount} {currency.value} to {payment_address} on {network}")
        return CheckoutResult(order_id=order_id, order_number=order_number, payment_address=payment_address,
                              amount=total_amount, currency=currency, network=network, expiry=expiry)

    @staticmethod
    async def _get_owned_order(order_id: int, user_id: int, session: AsyncSession | Session) -> OrderDTO:
        order = await OrderRepository.get_by_id(order_id, session)
        if order is None:
            raise OrderNotFoundException(order_id)
        if order.user_id != user_id:
            raise OrderOwnershipException(order_id, user_id)
        return order

    async def lookup_transaction_hash(self, order: OrderDTO, minimum: int = 0) -> str | None:
        """Best effort; a missing hash never blocks settlement."""
        if order.payment_transaction_hash:
            return order.payment_transaction_hash
        if not order.currency.is_settlement_token():
            return None
        try:
            return await self.chain_reader.find_incoming_token_transfer(order.payment_address, minimum)
        except ChainException as e:
            logger.info(f"Order {order.order_number}: funding tx lookup failed, settling without hash: {e}")
            return None

    async def confirm_payment(self, order_id: int, user_id: int,
                              session: AsyncSession | Session) -> ConfirmationResult:
        """
        Manual "I have paid": check the chain, settle, then try an immediate sweep.

        A failed sweep is reported but never undoes the settlement; the sweep
        scheduler retries it.
        """
        order = await self._get_owned_order(order_id, user_id, session)
        if order.payment_status == PaymentStatus.PAID:
            return ConfirmationResult(success=True, status=PaymentCheckStatus.PAID,
                                      message="Order already confirmed", order_status=order.status,
                                      transaction_hash=order.payment_transaction_hash,
                                      swept=bool(order.funds_swept), sweep_tx_hash=order.funds_swept_tx_hash)
        if order.payment_method != PaymentMethod.CRYPTO or not order.payment_address:
            raise InvalidOrderStateException(order_id, order.payment_method.value, PaymentMethod.CRYPTO.value)
        if order.payment_status != PaymentStatus.UNPAID:
            return ConfirmationResult(success=False, status=PaymentCheckStatus.EXPIRED,
                                      message="Payment window expired", order_status=order.status)

        check = await self.matcher.inspect(order.payment_address, order.total_amount, order.currency)
        if not check.received:
            return ConfirmationResult(success=False, status=PaymentCheckStatus.WAITING,
                                      message="Payment not detected", order_status=order.status)

        tx_hash = await self.lookup_transaction_hash(order, check.minimum)
        await OrderSettlementService.settle(order_id, session, tx_hash)
        order = await OrderRepository.get_by_id(order_id, session)
        if order.payment_status != PaymentStatus.PAID:
            # Expired by the scheduler between the check and the conditional update
            return ConfirmationResult(success=False, status=PaymentCheckStatus.EXPIRED,
                                      message="Payment window expired", order_status=order.status)

        result = ConfirmationResult(success=True, status=PaymentCheckStatus.PAID, message="Payment confirmed",
                                    order_status=order.status, transaction_hash=order.payment_transaction_hash)
        if order.funds_swept:
            result.swept = True
            result.sweep_tx_hash = order.funds_swept_tx_hash
            return result
        try:
            sweep = await self.order_sweep.sweep_order(order, session)
            if sweep is not None:
                result.swept = sweep.success
                result.sweep_tx_hash = sweep.tx_hash
                result.sweep_message = sweep.message
        except Exception as e:
            logger.error(f"Order {order.order_number}: immediate sweep failed, sweeper will retry: "
                         f"{type(e).__name__}: {e}")
            result.sweep_message = str(e)
        return result

    async def payment_status(self, order_id: int, user_id: int,
                             session: AsyncSession | Session) -> PaymentStatusResult:
        order = await self._get_owned_order(order_id, user_id, session)
        if not order.payment_address:
            raise InvalidOrderStateException(order_id, "no payment address")

        base = dict(payment_address=order.payment_address, expected_amount=order.total_amount,
                    currency=order.currency, required_confirmations=order.required_confirmations or 0,
                    transaction_hash=order.payment_transaction_hash, expiry=order.payment_expiry,
                    order_status=order.status)

        if order.payment_status == PaymentStatus.PAID:
            return PaymentStatusResult(status=PaymentCheckStatus.PAID, payment_received=True,
                                       confirmations=order.payment_confirmations or 0, **base)
        if order.payment_status != PaymentStatus.UNPAID:
            return PaymentStatusResult(status=PaymentCheckStatus.EXPIRED, payment_received=False, **base)

        if await self.matcher.received(order.payment_address, order.total_amount, order.currency):
            confirmations = 0
            if order.payment_transaction_hash:
                confirmations = await self.chain_reader.confirmations(order.payment_transaction_hash)
                await OrderRepository.update_confirmations(order_id, confirmations, session)
                await session_commit(session)
            return PaymentStatusResult(status=PaymentCheckStatus.PENDING_CONFIRMATION, payment_received=True,
                                       confirmations=confirmations, **base)

        if order.payment_expiry and datetime.now() > order.payment_expiry:
            return PaymentStatusResult(status=PaymentCheckStatus.EXPIRED, payment_received=False, **base)
        return PaymentStatusResult(status=PaymentCheckStatus.WAITING, payment_received=False, **base)
