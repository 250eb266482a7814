"""
Standard type definitions for database models.

Provides consistent types for token amounts and JSON payloads across all models.
"""

from sqlalchemy import DECIMAL, JSON
from sqlalchemy.dialects.postgresql import JSONB

# Token amount type for human-unit amounts
# Precision: 36 digits total, 18 after decimal point
# Suitable for: ETH (18 decimals), USDC (6), SOL (9)
TokenAmountType = DECIMAL(36, 18)

# Fiat amount type for off-ramp payouts and rates
# Precision: 18 digits total, 4 after decimal point
FiatAmountType = DECIMAL(18, 4)

# JSONB on PostgreSQL, generic JSON elsewhere
JSONType = JSON().with_variant(JSONB(), "postgresql")
