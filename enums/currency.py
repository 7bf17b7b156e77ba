from enum import Enum


class Currency(str, Enum):
    USDC = "USDC"
    USD = "USD"
    NGN = "NGN"
    EUR = "EUR"
    ETH = "ETH"
    MATIC = "MATIC"
    BNB = "BNB"

    # Historical orders and carts were written with USDT before the platform
    # moved its settlement token to USDC. Every read and write goes through normalize().
    @staticmethod
    def legacy_aliases() -> dict[str, 'Currency']:
        return {"USDT": Currency.USDC}

    @classmethod
    def normalize(cls, value: 'Currency | str | None') -> 'Currency | None':
        """
        Map raw input (enum, str, legacy alias) to the canonical Currency.

        Returns None for None so DTOs with optional currency stay optional.
        Raises ValueError for unknown currencies.
        """
        if value is None or isinstance(value, Currency):
            return value
        raw = str(value).strip().upper()
        alias = cls.legacy_aliases().get(raw)
        if alias is not None:
            return alias
        return cls(raw)

    def is_settlement_token(self) -> bool:
        """USD is priced 1:1 and paid in the settlement token."""
        return self in (Currency.USDC, Currency.USD)
