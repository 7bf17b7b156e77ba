"""
Custom exceptions for the shop backend.

Exception Hierarchy:
--------------------
ShopException (base)
├── OrderException
│   ├── OrderNotFoundException
│   ├── InvalidOrderStateException
│   ├── OrderOwnershipException
│   └── EmptyCartException
├── PaymentException
│   └── UnsupportedCurrencyException
├── ChainException
│   ├── ChainReadException
│   └── TransferFailedException
├── ConfigurationException
│   ├── TreasuryNotConfiguredException
│   └── MasterSecretNotConfiguredException
└── UserException
    └── UserNotFoundException

Usage:
------
Services raise specific exceptions:
    raise OrderNotFoundException(order_id=123)

Schedulers log and continue; the HTTP layer maps them to status codes:
    except OrderNotFoundException as e:
        raise HTTPException(status_code=404, detail=str(e))
"""

from .base import ShopException
from .chain import ChainException, ChainReadException, TransferFailedException
from .configuration import (
    ConfigurationException,
    TreasuryNotConfiguredException,
    MasterSecretNotConfiguredException
)
from .order import (
    OrderException,
    OrderNotFoundException,
    InvalidOrderStateException,
    OrderOwnershipException,
    EmptyCartException
)
from .user import UserException, UserNotFoundException
from .payment import (
    PaymentException,
    UnsupportedCurrencyException
)

__all__ = [
    # Base
    'ShopException',

    # Chain
    'ChainException',
    'ChainReadException',
    'TransferFailedException',

    # Configuration
    'ConfigurationException',
    'TreasuryNotConfiguredException',
    'MasterSecretNotConfiguredException',

    # Order
    'OrderException',
    'OrderNotFoundException',
    'InvalidOrderStateException',
    'OrderOwnershipException',
    'EmptyCartException',

    # Payment
    'PaymentException',
    'UnsupportedCurrencyException',

    # User
    'UserException',
    'UserNotFoundException',
]
