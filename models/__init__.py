"""
Models Package

This file ensures all SQLAlchemy models are imported and registered,
which is required for relationships to work correctly.
"""

from models.base import Base
from models.user import User
from models.product import Product, ProductVariant
from models.cart import Cart, CartItem
from models.order import Order, OrderItem
from models.payment import Payment

__all__ = [
    'Base',
    'User',
    'Product',
    'ProductVariant',
    'Cart',
    'CartItem',
    'Order',
    'OrderItem',
    'Payment',
]
