"""
Pytest configuration and fixtures for tests.

This file is automatically loaded by pytest and provides shared fixtures
and configuration for all tests.
"""

import sys
import os
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

# Add parent directory to Python path so tests can import modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from enums.network import Network
from enums.runtime_environment import RuntimeEnvironment

TREASURY_ADDRESS = "0x1111111111111111111111111111111111111111"

# Mock config module completely before any imports
config_mock = MagicMock()
config_mock.RUNTIME_ENVIRONMENT = RuntimeEnvironment.TEST
config_mock.DB_URL = "sqlite+aiosqlite:///:memory:"  # In-memory test database
config_mock.PAYMENT_MASTER_SECRET = "test_master_secret_1234567890abcdef1234567890abcdef"
config_mock.MAIN_WALLET_ADDRESS = TREASURY_ADDRESS
config_mock.ACTIVE_NETWORK = Network.BASE
config_mock.RPC_URL = "http://127.0.0.1:8545"
config_mock.ALCHEMY_API_KEY = ""
config_mock.INFURA_PROJECT_ID = ""
config_mock.BSC_RPC_URL = ""
config_mock.RPC_TIMEOUT_SECONDS = 5
config_mock.REQUIRED_CONFIRMATIONS = 3
config_mock.PAYMENT_WINDOW_MINUTES = 30
config_mock.PAYMENT_TOLERANCE_PERCENT = 0.1
config_mock.INCOMING_TRANSFER_LOOKBACK_BLOCKS = 5000
config_mock.NGN_PER_USD = 1500.0
config_mock.PAYMENT_VERIFICATION_INTERVAL_SECONDS = 30
config_mock.FUND_SWEEP_INTERVAL_SECONDS = 180
config_mock.SWEEP_GAS_MARGIN_PERCENT = 20
config_mock.TOKEN_TRANSFER_GAS_FALLBACK = 65000
config_mock.NATIVE_TRANSFER_GAS_FALLBACK = 21000
config_mock.TRANSFER_RECEIPT_TIMEOUT_SECONDS = 120
config_mock.REFERRAL_REWARD_AMOUNT = 4.0
config_mock.RESEND_API_KEY = ""  # Email disabled unless a test sets it
config_mock.RESEND_API_URL = "https://api.resend.com/emails"
config_mock.RESEND_FROM_EMAIL = "orders@example.com"
config_mock.APP_NAME = "Test Shop"
config_mock.LOG_LEVEL = "INFO"
config_mock.LOG_MASK_SECRETS = True
config_mock.LOG_RETENTION_DAYS = 5
config_mock.WEBAPP_HOST = "127.0.0.1"
config_mock.WEBAPP_PORT = 8000

sys.modules['config'] = config_mock

from exceptions.chain import ChainReadException, TransferFailedException
from models.base import Base
from models.cart import Cart, CartItem
from models.order import Order, OrderItem
from models.product import Product, ProductVariant
from models.user import User
from services.address_deriver import AddressDeriver
from services.payment_monitor import payment_monitor_registry


# ============================================================================
# Chain Fixtures
# ============================================================================

class FakeChainReader:
    """
    In-memory stand-in for ChainReader.

    Balances are keyed by lower-cased address. Transfers move balances and
    charge gas * gas_price from the sender's native balance.
    """

    def __init__(self, network: Network = Network.BASE, decimals: int = 6):
        self.network = network
        self.decimals = decimals
        self.token_balances: dict[str, int] = {}
        self.native_balances: dict[str, int] = {}
        self.gas_price = 1_000_000_000  # 1 gwei
        self.token_transfer_gas: int | None = 50_000  # None -> estimation fails
        self.native_transfer_gas: int | None = 21_000
        self.failing_addresses: set[str] = set()
        self.failing_senders: set[str] = set()
        self.incoming_transfers: dict[str, str] = {}
        self.receipt_blocks: dict[str, int] = {}
        self.block = 1_000
        self.sent: list[dict] = []

    def _check(self, address: str, operation: str):
        if address.lower() in self.failing_addresses:
            raise ChainReadException(operation, "connection timed out", self.network.value)

    def fund_token(self, address: str, units: int):
        self.token_balances[address.lower()] = self.token_balances.get(address.lower(), 0) + units

    def fund_native(self, address: str, wei: int):
        self.native_balances[address.lower()] = self.native_balances.get(address.lower(), 0) + wei

    async def token_decimals(self) -> int:
        return self.decimals

    async def token_balance(self, address: str) -> int:
        self._check(address, "balanceOf")
        return self.token_balances.get(address.lower(), 0)

    async def native_balance(self, address: str) -> int:
        self._check(address, "get_balance")
        return self.native_balances.get(address.lower(), 0)

    async def current_gas_price(self) -> int:
        return self.gas_price

    async def estimate_gas(self, tx: dict) -> int:
        if self.native_transfer_gas is None:
            raise ChainReadException("estimate_gas", "execution reverted", self.network.value)
        return self.native_transfer_gas

    async def estimate_token_transfer_gas(self, sender: str, to: str, amount: int) -> int:
        if self.token_transfer_gas is None:
            raise ChainReadException("estimate_gas", "execution reverted", self.network.value)
        return self.token_transfer_gas

    def _check_sender(self, signer):
        if signer.address.lower() in self.failing_senders:
            raise TransferFailedException(signer.address, "transaction reverted", "0x" + "ee" * 32)

    def _tx_hash(self) -> str:
        return f"0x{len(self.sent) + 1:064x}"

    async def send_token_transfer(self, signer, to: str, amount: int, gas: int, gas_price: int) -> str:
        self._check_sender(signer)
        sender = signer.address.lower()
        self.token_balances[sender] -= amount
        self.token_balances[to.lower()] = self.token_balances.get(to.lower(), 0) + amount
        self.native_balances[sender] -= gas * gas_price
        tx_hash = self._tx_hash()
        self.sent.append({"kind": "token", "from": signer.address, "to": to, "amount": amount,
                          "gas": gas, "gas_price": gas_price, "tx_hash": tx_hash})
        return tx_hash

    async def send_native_transfer(self, signer, to: str, value: int, gas: int, gas_price: int) -> str:
        self._check_sender(signer)
        sender = signer.address.lower()
        self.native_balances[sender] -= value + gas * gas_price
        self.native_balances[to.lower()] = self.native_balances.get(to.lower(), 0) + value
        tx_hash = self._tx_hash()
        self.sent.append({"kind": "native", "from": signer.address, "to": to, "amount": value,
                          "gas": gas, "gas_price": gas_price, "tx_hash": tx_hash})
        return tx_hash

    async def find_incoming_token_transfer(self, address: str, min_amount: int = 0,
                                           lookback_blocks: int | None = None) -> str | None:
        return self.incoming_transfers.get(address.lower())

    async def confirmations(self, tx_hash: str) -> int:
        block = self.receipt_blocks.get(tx_hash)
        return 0 if block is None else self.block - block


@pytest.fixture
def chain():
    return FakeChainReader()


@pytest.fixture
def make_chain():
    return FakeChainReader


@pytest.fixture
def deriver():
    return AddressDeriver("test_master_secret_1234567890abcdef1234567890abcdef")


@pytest.fixture(autouse=True)
def clear_payment_monitor():
    payment_monitor_registry.clear()
    yield
    payment_monitor_registry.clear()


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def engine():
    """In-memory SQLite shared across threads (the HTTP test client runs the app in a worker thread)."""
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    session = Session(engine)
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def session_factory(session):
    """Stands in for db.get_db_session in the background jobs."""
    @asynccontextmanager
    async def factory():
        yield session
    return factory


@pytest.fixture
def shop(session, deriver):
    """
    Referrer + referred buyer, one plain product and one product with two variants,
    and a buyer cart worth 100 (1 x 60 plain, 2 x 20 variant).
    """
    referrer = User(id=1, email="referrer@example.com", name="Referrer", balance=0.0)
    buyer = User(id=2, email="buyer@example.com", name="Buyer", balance=0.0, referred_by_user_id=1)
    session.add_all([referrer, buyer])
    session.flush()

    plain = Product(id=10, name="Notebook", price=60.0, stock=10)
    shirt = Product(id=11, name="Shirt", price=20.0, stock=8)
    session.add_all([plain, shirt])
    session.flush()
    small = ProductVariant(id=100, product_id=11, name="S", stock=5)
    large = ProductVariant(id=101, product_id=11, name="L", stock=3)
    session.add_all([small, large])

    cart = Cart(id=1, user_id=2)
    session.add(cart)
    session.flush()
    plain_item = CartItem(id=1, cart_id=1, product_id=10, quantity=1, unit_price=60.0, currency="USDC")
    shirt_item = CartItem(id=2, cart_id=1, product_id=11, variant_id=100, quantity=2, unit_price=20.0,
                          currency="USDT")
    session.add_all([plain_item, shirt_item])
    session.commit()

    return SimpleNamespace(referrer_id=1, buyer_id=2, plain_product_id=10, shirt_product_id=11,
                           small_variant_id=100, large_variant_id=101, cart_id=1,
                           cart_item_ids=[1, 2], buyer_address=deriver.derive_address(2))


@pytest.fixture
def make_order(session, shop, deriver):
    """Create a crypto order for the buyer's current cart items."""
    counter = {"n": 0}

    def _make(total_amount: float = 100.0, currency: str = "USDC", expiry: datetime | None = None,
              payment_address: str | None = None, user_id: int | None = None, **overrides) -> int:
        counter["n"] += 1
        user_id = user_id or shop.buyer_id
        order = Order(
            order_number=f"ORD-TEST-{counter['n']:04d}",
            user_id=user_id,
            subtotal=total_amount,
            total_amount=total_amount,
            currency=currency,
            payment_address=payment_address or deriver.derive_address(user_id),
            payment_network="base",
            payment_expiry=expiry or datetime.now() + timedelta(minutes=30),
            required_confirmations=3,
            **overrides
        )
        session.add(order)
        session.flush()
        session.add_all([
            OrderItem(order_id=order.id, product_id=shop.plain_product_id, cart_item_id=1,
                      quantity=1, unit_price=60.0),
            OrderItem(order_id=order.id, product_id=shop.shirt_product_id, variant_id=shop.small_variant_id,
                      cart_item_id=2, quantity=2, unit_price=20.0),
        ])
        session.commit()
        return order.id

    return _make


# ============================================================================
# Service Fixtures
# ============================================================================

@pytest.fixture
def order_sweep(chain, deriver):
    from services.order_sweep import OrderSweepService
    from services.sweep_executor import SweepExecutor
    return OrderSweepService(deriver, SweepExecutor(chain, TREASURY_ADDRESS, 20))


@pytest.fixture
def crypto_payment(chain, deriver, order_sweep):
    from services.crypto_payment import CryptoPaymentService
    from services.payment_matcher import PaymentMatcher
    return CryptoPaymentService(deriver, chain, PaymentMatcher(chain, 0.1), order_sweep)


@pytest.fixture
def second_buyer(session, deriver):
    """Unreferred buyer without a cart."""
    session.add(User(id=3, email="second@example.com", name="Second", balance=0.0))
    session.commit()
    return SimpleNamespace(user_id=3, address=deriver.derive_address(3))
