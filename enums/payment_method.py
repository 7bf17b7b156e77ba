from enum import Enum


class PaymentMethod(str, Enum):
    WALLET = "wallet"
    PAYSTACK = "paystack"
    SEERBIT = "seerbit"
    CRYPTO = "crypto"
    CARD = "card"
