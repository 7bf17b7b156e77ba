"""
Configuration Validation Module

Validates critical configuration values at startup to fail-fast
with clear error messages instead of runtime failures.
"""

import re
import sys
from typing import Optional

ADDRESS_PATTERN = re.compile(r'^0x[a-fA-F0-9]{40}$')


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""
    pass


def validate_master_secret(secret: Optional[str]) -> None:
    """
    Validate the payment address derivation secret.

    Raises:
        ConfigValidationError: If secret is missing or too weak
    """
    if not secret:
        raise ConfigValidationError(
            "PAYMENT_MASTER_SECRET is required for payment address derivation!\n"
            "Generate a secure secret with: openssl rand -hex 32\n"
            "Add to .env: PAYMENT_MASTER_SECRET=<your-generated-secret>\n"
            "Back it up offline: without it unswept funds can never be recovered."
        )

    if len(secret) < 32:
        raise ConfigValidationError(
            f"PAYMENT_MASTER_SECRET must be at least 32 characters long (currently: {len(secret)})\n"
            "Generate a secure secret with: openssl rand -hex 32"
        )


def validate_treasury_address(address: Optional[str]) -> None:
    """
    Validate the sweep destination.

    Raises:
        ConfigValidationError: If address is missing or not a 20-byte hex address
    """
    validate_required_config(address, 'MAIN_WALLET_ADDRESS', '0x<40-hex-characters>')
    if not ADDRESS_PATTERN.match(address):
        raise ConfigValidationError(
            f"MAIN_WALLET_ADDRESS is not a valid EVM address: {address}"
        )


def validate_required_config(value: Optional[str], name: str, example: str = "") -> None:
    """
    Validate that a required config value is set.

    Raises:
        ConfigValidationError: If value is missing
    """
    if not value:
        error_msg = f"{name} is required but not set!"
        if example:
            error_msg += f"\nAdd to .env: {name}={example}"
        raise ConfigValidationError(error_msg)


def validate_startup_config(config_module) -> None:
    """
    Validate all critical configuration at startup.

    Raises:
        ConfigValidationError: If any validation fails
    """
    validate_master_secret(getattr(config_module, 'PAYMENT_MASTER_SECRET', None))
    validate_treasury_address(getattr(config_module, 'MAIN_WALLET_ADDRESS', None))

    if config_module.REQUIRED_CONFIRMATIONS < 0:
        raise ConfigValidationError("REQUIRED_CONFIRMATIONS must not be negative")
    if not 0 <= config_module.PAYMENT_TOLERANCE_PERCENT < 100:
        raise ConfigValidationError("PAYMENT_TOLERANCE_PERCENT must be between 0 and 100")


def validate_or_exit(config_module) -> None:
    """
    Validate configuration and exit with error code 1 if validation fails.

    This is the main entry point for startup validation.
    """
    try:
        validate_startup_config(config_module)
    except ConfigValidationError as e:
        print(f"\n ERROR: Configuration Validation Failed\n", file=sys.stderr)
        print(str(e), file=sys.stderr)
        print("\nStartup aborted. Please fix configuration and try again.\n", file=sys.stderr)
        sys.exit(1)
