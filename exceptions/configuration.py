"""
Configuration exceptions.

These signal programming or deployment errors. They are raised, never
defaulted around.
"""

from .base import ShopException

class ConfigurationException(ShopException):
    pass

class TreasuryNotConfiguredException(ConfigurationException):
    def __init__(self):
        super().__init__("MAIN_WALLET_ADDRESS is not configured; refusing to sweep")

class MasterSecretNotConfiguredException(ConfigurationException):
    def __init__(self):
        super().__init__("PAYMENT_MASTER_SECRET is not configured; cannot derive payment addresses")
