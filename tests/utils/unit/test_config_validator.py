"""
Unit tests for startup configuration validation.
"""

from types import SimpleNamespace

import pytest

from enums.network import Network
from utils.config_validator import (
    ConfigValidationError,
    validate_master_secret,
    validate_treasury_address,
    validate_startup_config,
    validate_or_exit
)


def _config(**overrides):
    values = dict(
        PAYMENT_MASTER_SECRET="x" * 64,
        MAIN_WALLET_ADDRESS="0x1111111111111111111111111111111111111111",
        ACTIVE_NETWORK=Network.BASE,
        REQUIRED_CONFIRMATIONS=3,
        PAYMENT_TOLERANCE_PERCENT=0.1,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


class TestConfigValidator:

    def test_valid_config_passes(self):
        validate_startup_config(_config())

    @pytest.mark.parametrize("secret", [None, "", "short"])
    def test_weak_master_secret(self, secret):
        with pytest.raises(ConfigValidationError):
            validate_master_secret(secret)

    @pytest.mark.parametrize("address", [None, "", "0x123", "1111111111111111111111111111111111111111zz"])
    def test_invalid_treasury(self, address):
        with pytest.raises(ConfigValidationError):
            validate_treasury_address(address)

    @pytest.mark.parametrize("network", list(Network))
    def test_every_network_accepted(self, network):
        validate_startup_config(_config(ACTIVE_NETWORK=network))

    def test_negative_confirmations(self):
        with pytest.raises(ConfigValidationError):
            validate_startup_config(_config(REQUIRED_CONFIRMATIONS=-1))

    def test_tolerance_out_of_range(self):
        with pytest.raises(ConfigValidationError):
            validate_startup_config(_config(PAYMENT_TOLERANCE_PERCENT=100))

    def test_validate_or_exit(self):
        with pytest.raises(SystemExit) as exc_info:
            validate_or_exit(_config(MAIN_WALLET_ADDRESS=""))
        assert exc_info.value.code == 1
