"""
API router for the buyer-facing crypto payment flow.

Authentication is handled upstream; the authenticated user id arrives in the
X-User-Id header.
"""

import logging
import uuid
from datetime import datetime
from typing import AsyncIterator

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from db import get_db_session
from enums.currency import Currency
from exceptions import (
    ShopException,
    OrderNotFoundException,
    OrderOwnershipException,
    InvalidOrderStateException,
    EmptyCartException,
    UnsupportedCurrencyException,
    UserNotFoundException,
    ChainException,
)
from services.crypto_payment import CryptoPaymentService

logger = logging.getLogger(__name__)

payment_router = APIRouter(prefix="/api/orders", tags=["crypto-payments"])


def generate_correlation_id() -> str:
    """Generate unique correlation ID for request tracing."""
    return f"{datetime.now().strftime('%Y%m%d-%H%M%S')}-{uuid.uuid4().hex[:8]}"


async def get_session() -> AsyncIterator[AsyncSession]:
    async with get_db_session() as session:
        yield session


def get_crypto_payment_service(request: Request) -> CryptoPaymentService:
    return request.app.state.crypto_payment


def get_user_id(x_user_id: int = Header(..., gt=0)) -> int:
    return x_user_id


class CryptoCheckoutPayload(BaseModel):
    delivery_fee: float = Field(0.0, ge=0, description="Delivery fee, priced in delivery_fee_currency")
    delivery_fee_currency: str = Field("USD", description="Currency the delivery fee is priced in (USD or NGN)")
    currency: str = Field("USDC", description="Payment currency (USDC, USD, legacy USDT)")
    notes: str | None = Field(None, max_length=1000)


def _to_http_exception(e: ShopException, correlation_id: str) -> HTTPException:
    if isinstance(e, (OrderNotFoundException, UserNotFoundException)):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(e, OrderOwnershipException):
        code = status.HTTP_403_FORBIDDEN
    elif isinstance(e, InvalidOrderStateException):
        code = status.HTTP_409_CONFLICT
    elif isinstance(e, (EmptyCartException, UnsupportedCurrencyException)):
        code = status.HTTP_400_BAD_REQUEST
    elif isinstance(e, ChainException):
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    log = logger.error if code >= 500 else logger.warning
    log(f"[{correlation_id}] {e!r}")
    return HTTPException(status_code=code, detail=str(e))


@payment_router.post("/crypto-checkout")
async def crypto_checkout(payload: CryptoCheckoutPayload,
                          user_id: int = Depends(get_user_id),
                          session: AsyncSession = Depends(get_session),
                          service: CryptoPaymentService = Depends(get_crypto_payment_service)):
    """
    Create (or reuse) a crypto order for the buyer's active cart items.

    Returns:
        200: order id, payment address, amount, network and expiry
        400: empty cart or unsupported currency
        404: unknown user
    """
    correlation_id = generate_correlation_id()
    try:
        currency = Currency.normalize(payload.currency)
        fee_currency = Currency.normalize(payload.delivery_fee_currency)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail=f"Unknown currency {payload.currency}/{payload.delivery_fee_currency}")
    try:
        result = await service.create_crypto_order(user_id, session, delivery_fee=payload.delivery_fee,
                                                   currency=currency, notes=payload.notes,
                                                   delivery_fee_currency=fee_currency)
    except ShopException as e:
        raise _to_http_exception(e, correlation_id)

    return {
        "orderId": result.order_id,
        "orderNumber": result.order_number,
        "paymentAddress": result.payment_address,
        "amount": result.amount,
        "currency": result.currency.value,
        "network": result.network,
        "expiry": result.expiry.isoformat(),
        "reused": result.reused,
    }


@payment_router.get("/{order_id}/crypto-payment-status")
async def crypto_payment_status(order_id: int,
                                user_id: int = Depends(get_user_id),
                                session: AsyncSession = Depends(get_session),
                                service: CryptoPaymentService = Depends(get_crypto_payment_service)):
    correlation_id = generate_correlation_id()
    try:
        result = await service.payment_status(order_id, user_id, session)
    except ShopException as e:
        raise _to_http_exception(e, correlation_id)

    return {
        "status": result.status.value,
        "paymentReceived": result.payment_received,
        "confirmations": result.confirmations,
        "requiredConfirmations": result.required_confirmations,
        "paymentAddress": result.payment_address,
        "expectedAmount": result.expected_amount,
        "currency": result.currency.value,
        "transactionHash": result.transaction_hash,
        "orderStatus": result.order_status.value if result.order_status else None,
        "expiry": result.expiry.isoformat() if result.expiry else None,
    }


@payment_router.post("/{order_id}/confirm-crypto-payment")
async def confirm_crypto_payment(order_id: int,
                                 user_id: int = Depends(get_user_id),
                                 session: AsyncSession = Depends(get_session),
                                 service: CryptoPaymentService = Depends(get_crypto_payment_service)):
    """
    "I have paid": verify on-chain, settle, attempt an immediate sweep.

    Returns:
        200: order paid (sweep outcome reported separately, never fails the request)
        400: payment not detected yet
        409: payment window expired
    """
    correlation_id = generate_correlation_id()
    logger.info(f"[{correlation_id}] Manual payment confirmation for order {order_id} by user {user_id}")
    try:
        result = await service.confirm_payment(order_id, user_id, session)
    except ShopException as e:
        raise _to_http_exception(e, correlation_id)

    body = {
        "success": result.success,
        "status": result.status.value,
        "message": result.message,
        "orderStatus": result.order_status.value if result.order_status else None,
        "transactionHash": result.transaction_hash,
        "fundsSwept": result.swept,
        "sweepTransactionHash": result.sweep_tx_hash,
        "sweepMessage": result.sweep_message,
    }
    if result.success:
        return body
    code = status.HTTP_409_CONFLICT if result.status.value == "expired" else status.HTTP_400_BAD_REQUEST
    return JSONResponse(status_code=code, content=body)
