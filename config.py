import os
import sys

from dotenv import load_dotenv

from enums.network import Network
from enums.runtime_environment import RuntimeEnvironment

# Load .env but don't override existing environment variables
# This allows test scripts to set RUNTIME_ENVIRONMENT=TEST before import
load_dotenv(".env", override=False)

# Parse RUNTIME_ENVIRONMENT with clear error message on misconfiguration
try:
    RUNTIME_ENVIRONMENT = RuntimeEnvironment(os.environ.get("RUNTIME_ENVIRONMENT", "DEV"))
except ValueError as e:
    valid_values = [env.value for env in RuntimeEnvironment]
    print(f"\n ERROR: Invalid RUNTIME_ENVIRONMENT configuration\n", file=sys.stderr)
    print(f"Reason: {e}", file=sys.stderr)
    print(f"Valid values: {', '.join(valid_values)}", file=sys.stderr)
    print(f"\nAdd to .env: RUNTIME_ENVIRONMENT={valid_values[0]}\n", file=sys.stderr)
    sys.exit(1)

WEBAPP_HOST = os.environ.get("WEBAPP_HOST", "0.0.0.0")
WEBAPP_PORT = int(os.environ.get("WEBAPP_PORT", "8000"))

# Database
DB_URL = os.environ.get("DB_URL", "sqlite+aiosqlite:///data/shop.db")

# Address derivation
# Highest-sensitivity secret in the system: every derived payment address (and therefore
# every unswept balance) can be recomputed from it. Losing it makes historical sweeps
# impossible; leaking it exposes all derived keys retroactively.
PAYMENT_MASTER_SECRET = os.environ.get("PAYMENT_MASTER_SECRET", "")

# Treasury (sweep destination)
MAIN_WALLET_ADDRESS = os.environ.get("MAIN_WALLET_ADDRESS", "")

# Active network with error handling
try:
    ACTIVE_NETWORK = Network(os.environ.get("ACTIVE_NETWORK", "base").lower())
except ValueError as e:
    valid_networks = [n.value for n in Network]
    print(f"\n ERROR: Invalid ACTIVE_NETWORK configuration\n", file=sys.stderr)
    print(f"Reason: {e}", file=sys.stderr)
    print(f"Valid values: {', '.join(valid_networks)}", file=sys.stderr)
    print(f"Current value: {os.environ.get('ACTIVE_NETWORK', '(not set)')}\n", file=sys.stderr)
    sys.exit(1)

# RPC credentials (provider preference is resolved in Network.rpc_url)
RPC_URL = os.environ.get("RPC_URL", "")  # Explicit override, wins over everything else
ALCHEMY_API_KEY = os.environ.get("ALCHEMY_API_KEY", "")
INFURA_PROJECT_ID = os.environ.get("INFURA_PROJECT_ID", "")
BSC_RPC_URL = os.environ.get("BSC_RPC_URL", "")
RPC_TIMEOUT_SECONDS = int(os.environ.get("RPC_TIMEOUT_SECONDS", "30"))

# Crypto payment configuration
REQUIRED_CONFIRMATIONS = int(os.environ.get("REQUIRED_CONFIRMATIONS", "3"))
PAYMENT_WINDOW_MINUTES = int(os.environ.get("PAYMENT_WINDOW_MINUTES", "30"))
PAYMENT_TOLERANCE_PERCENT = float(os.environ.get("PAYMENT_TOLERANCE_PERCENT", "0.1"))
INCOMING_TRANSFER_LOOKBACK_BLOCKS = int(os.environ.get("INCOMING_TRANSFER_LOOKBACK_BLOCKS", "5000"))

# Checkout pricing: NGN-priced products are billed in USD at this rate (keep in sync with card checkout)
NGN_PER_USD = float(os.environ.get("NGN_PER_USD", "1500"))

# Background jobs
PAYMENT_VERIFICATION_INTERVAL_SECONDS = int(os.environ.get("PAYMENT_VERIFICATION_INTERVAL_SECONDS", "30"))
FUND_SWEEP_INTERVAL_SECONDS = int(os.environ.get("FUND_SWEEP_INTERVAL_SECONDS", "180"))

# Sweep gas configuration
SWEEP_GAS_MARGIN_PERCENT = int(os.environ.get("SWEEP_GAS_MARGIN_PERCENT", "20"))
TOKEN_TRANSFER_GAS_FALLBACK = int(os.environ.get("TOKEN_TRANSFER_GAS_FALLBACK", "65000"))
NATIVE_TRANSFER_GAS_FALLBACK = int(os.environ.get("NATIVE_TRANSFER_GAS_FALLBACK", "21000"))
TRANSFER_RECEIPT_TIMEOUT_SECONDS = int(os.environ.get("TRANSFER_RECEIPT_TIMEOUT_SECONDS", "120"))

# Referral System
REFERRAL_REWARD_AMOUNT = float(os.environ.get("REFERRAL_REWARD_AMOUNT", "4.0"))

# Email (Resend)
RESEND_API_KEY = os.environ.get("RESEND_API_KEY", "")
RESEND_API_URL = os.environ.get("RESEND_API_URL", "https://api.resend.com/emails")
RESEND_FROM_EMAIL = os.environ.get("RESEND_FROM_EMAIL", os.environ.get("FROM_EMAIL", "orders@example.com"))
APP_NAME = os.environ.get("APP_NAME", "Shop")

# Logging Configuration
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")  # DEBUG, INFO, WARNING, ERROR, CRITICAL
LOG_MASK_SECRETS = os.environ.get("LOG_MASK_SECRETS", "true") == "true"  # Mask sensitive data in logs

# Log Retention: Environment-specific defaults
# Dev: keep a month for debugging
# Prod: Use 5 days default to save disk space
if RUNTIME_ENVIRONMENT == RuntimeEnvironment.DEV:
    LOG_RETENTION_DAYS = int(os.environ.get("LOG_RETENTION_DAYS", "30"))
else:
    LOG_RETENTION_DAYS = int(os.environ.get("LOG_RETENTION_DAYS", "5"))
