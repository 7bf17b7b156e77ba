from enum import Enum


class SweepOutcome(str, Enum):
    SWEPT = "SWEPT"                        # Funds moved to the treasury
    NO_FUNDS = "NO_FUNDS"                  # Nothing at the address (already swept or never arrived)
    INSUFFICIENT_GAS = "INSUFFICIENT_GAS"  # Token present, native balance can't pay gas - retry later
    DUST = "DUST"                          # Native balance doesn't cover its own transfer gas

    def is_retryable(self) -> bool:
        return self == SweepOutcome.INSUFFICIENT_GAS

    def is_terminal_failure(self) -> bool:
        return self in (SweepOutcome.NO_FUNDS, SweepOutcome.DUST)
