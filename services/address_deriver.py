import hashlib
import logging
import time
from dataclasses import dataclass

from eth_account import Account
from eth_account.signers.local import LocalAccount

import config
from exceptions.configuration import MasterSecretNotConfiguredException

logger = logging.getLogger(__name__)

# Order of the secp256k1 group; a private key must satisfy 0 < k < n
SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141


@dataclass(frozen=True)
class DerivedAccount:
    user_id: int
    address: str
    signer: LocalAccount
    deterministic: bool = True


class AddressDeriver:
    """
    Derives one payment account per user from PAYMENT_MASTER_SECRET.

    key = sha256("user-" + user_id + sha256hex(master_secret))

    The mapping is pure: the same user always gets the same address, so the
    stored users.crypto_payment_address is only a lookup aid. Anyone holding the
    master secret can recompute every key, and losing it leaves every unswept
    balance unrecoverable.
    """

    def __init__(self, master_secret: str | None = None):
        secret = config.PAYMENT_MASTER_SECRET if master_secret is None else master_secret
        if not secret:
            raise MasterSecretNotConfiguredException()
        self._master_seed = hashlib.sha256(secret.encode()).hexdigest()

    def _key_material(self, user_id: int, salt: str = "") -> bytes:
        return hashlib.sha256(f"user-{user_id}{self._master_seed}{salt}".encode()).digest()

    @staticmethod
    def _is_valid_scalar(key: bytes) -> bool:
        return 0 < int.from_bytes(key, "big") < SECP256K1_N

    def derive(self, user_id: int) -> DerivedAccount:
        key = self._key_material(user_id)
        deterministic = True
        if not self._is_valid_scalar(key):
            # Probability ~2^-128. The time-salted key cannot be recomputed later,
            # so funds sent to it are only sweepable while this process remembers it.
            logger.error(f"Derived key for user {user_id} is not a valid secp256k1 scalar, "
                         f"falling back to a time-salted key (NON-DETERMINISTIC)")
            while not self._is_valid_scalar(key):
                key = self._key_material(user_id, str(time.time_ns()))
            deterministic = False
        signer = Account.from_key(key)
        return DerivedAccount(user_id=user_id, address=signer.address, signer=signer,
                              deterministic=deterministic)

    def derive_address(self, user_id: int) -> str:
        return self.derive(user_id).address
