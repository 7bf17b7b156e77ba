import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

import config
from db import create_db_and_tables
from jobs.fund_sweeper_job import FundSweeperJob
from jobs.payment_verification_job import PaymentVerificationJob
from services.address_deriver import AddressDeriver
from services.chain_reader import ChainReader
from services.crypto_payment import CryptoPaymentService
from services.order_sweep import OrderSweepService
from services.payment_matcher import PaymentMatcher
from services.sweep_executor import SweepExecutor
from utils.config_validator import validate_or_exit
from web.payment_router import payment_router

logger = logging.getLogger(__name__)


def build_services(chain_reader: ChainReader | None = None) -> tuple[CryptoPaymentService, OrderSweepService]:
    """Wire the payment services for the configured network."""
    chain_reader = chain_reader or ChainReader(config.ACTIVE_NETWORK)
    deriver = AddressDeriver()
    order_sweep = OrderSweepService(deriver, SweepExecutor(chain_reader))
    crypto_payment = CryptoPaymentService(deriver, chain_reader, PaymentMatcher(chain_reader), order_sweep)
    return crypto_payment, order_sweep


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup and shutdown."""
    validate_or_exit(config)
    await create_db_and_tables()

    crypto_payment, order_sweep = build_services()
    app.state.crypto_payment = crypto_payment
    verification_job = PaymentVerificationJob(crypto_payment)
    sweeper_job = FundSweeperJob(order_sweep)
    await verification_job.start()
    await sweeper_job.start()
    logger.info(f"[Startup] Crypto payments active on {config.ACTIVE_NETWORK.value}")

    yield

    logger.warning('Shutting down..')
    await verification_job.stop()
    await sweeper_job.stop()
    logger.warning('Bye!')


app = FastAPI(lifespan=lifespan)
app.include_router(payment_router)


@app.get("/health")
async def health_check():
    """Health check endpoint for container monitoring."""
    return {"status": "healthy"}
