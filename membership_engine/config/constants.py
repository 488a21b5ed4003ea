"""
Membership engine constants.
"""
from decimal import Decimal

# Basis points
BPS_DENOMINATOR = 10000

# Platform subscription billing cycle
DAY_MS = 24 * 60 * 60 * 1000
SUBSCRIPTION_PERIOD_MS = 30 * DAY_MS
RENEWAL_WARNING_MS = 5 * DAY_MS

# Timestamps below this are treated as seconds (see normalize_timestamp)
SECONDS_THRESHOLD = 1_000_000_000_000

# USDC has 6 decimals on every supported chain
USDC_DECIMALS = 6
USDC_UNIT = Decimal(10) ** USDC_DECIMALS

# Course id = ms timestamp followed by a zero-padded random suffix
COURSE_ID_RANDOM_DIGITS = 6

# Auxiliary tooling retry budget
DEFAULT_RETRY_BUDGET_MS = 5000
DEFAULT_RETRY_DELAY_MS = 1000

# Group text limits
MAX_NAME_LENGTH = 60
MAX_DESCRIPTION_LENGTH = 40000
