"""
Application constants.

Centralized constants for the application.
"""

# ========================================================================
# VENDOR HTTP CONSTANTS
# ========================================================================

# HTTP timeouts for vendor REST calls (in seconds)
VENDOR_HTTP_TIMEOUT = 30.0  # Privy, CDP, Paycrest
LLM_TIMEOUT = 20.0  # Gemini generate_content

# CDP JWT lifetime (seconds)
CDP_JWT_TTL_SECONDS = 120

# ========================================================================
# BLOCKCHAIN CONSTANTS
# ========================================================================

# Blockchain read timeouts (in seconds)
BLOCKCHAIN_TIMEOUT = 30.0  # balance, receipt, blockhash, gas price

# Dispatch retry policy
DISPATCH_MAX_ATTEMPTS = 3  # Build+send attempts on blockhash expiry
DISPATCH_RETRY_DELAY = 1.0  # Fixed pause before rebuilding (no backoff)
DISPATCH_TIMEOUT = 45.0  # Upper bound for a single signing RPC call

# Wallet creation retry policy
WALLET_CREATE_MAX_ATTEMPTS = 3
WALLET_CREATE_RETRY_DELAY = 1.0

# Unit conversion
EVM_NATIVE_DECIMALS = 18  # wei per ETH exponent
LAMPORTS_PER_SOL = 1_000_000_000
SOL_DECIMALS = 9

# Gas limits used for fee estimation
EVM_NATIVE_TRANSFER_GAS = 21_000
EVM_TOKEN_TRANSFER_GAS = 65_000
SOLANA_DEFAULT_SIGNATURE_FEE = 5_000  # lamports

# ========================================================================
# RECONCILIATION CONSTANTS
# ========================================================================

RECONCILE_INTERVAL_SECONDS = 60  # Scheduler interval
RECONCILE_GRACE_SECONDS = 15  # Skip rows younger than this
RECONCILE_MAX_AGE_HOURS = 24  # Pending longer than this -> failed (expired)
RECONCILE_BATCH_LIMIT = 50  # Rows processed per run

# ========================================================================
# CONVERSATION CONSTANTS
# ========================================================================

SESSION_HISTORY_LIMIT = 8  # Messages kept for LLM context
SESSION_IDLE_MINUTES = 30  # Pending intent dropped after this much inactivity

# ========================================================================
# OFF-RAMP CONSTANTS
# ========================================================================

RATE_CACHE_TTL_SECONDS = 120  # Paycrest rate quotes
OFFRAMP_MIN_AMOUNT = 1  # Minimum token amount per order
OFFRAMP_MAX_AMOUNT = 10_000  # Maximum token amount per order
OFFRAMP_SUPPORTED_TOKENS = ("USDC", "USDT")
OFFRAMP_SUPPORTED_CURRENCIES = ("NGN", "KES", "GHS", "UGX", "TZS")
OFFRAMP_POLL_INTERVAL_SECONDS = 120  # Status polling for orders without webhook updates
OFFRAMP_POLL_BATCH_LIMIT = 50

# ========================================================================
# INVOICE / PROPOSAL CONSTANTS
# ========================================================================

DOCUMENT_CURRENCIES = ("USD", "USDC", "NGN", "KES", "GHS", "EUR", "GBP")
DOCUMENT_DEFAULT_CURRENCY = "USD"
DOCUMENT_MAX_AMOUNT = 1_000_000_000
DOCUMENT_HISTORY_LIMIT = 10
PROPOSAL_VALID_DAYS = 30  # Shown on the proposal PDF

# Headless browser (PDF export)
PDF_BROWSER_LAUNCH_TIMEOUT = 60.0
PDF_RENDER_TIMEOUT = 30.0  # set_content
PDF_EXPORT_TIMEOUT = 30.0  # page.pdf

# ========================================================================
# TELEGRAM BOT CONSTANTS
# ========================================================================

TELEGRAM_TIMEOUT = 10.0  # Telegram API operations timeout
TELEGRAM_WEBHOOK_PATH = "/api/telegram/webhook"
CDP_WEBHOOK_PATH = "/api/webhooks/cdp"
PAYCREST_WEBHOOK_PATH = "/api/webhooks/paycrest"
