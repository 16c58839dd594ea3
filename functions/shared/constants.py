"""
Shared constants for Kirk Client billing.
"""

# Tier ordering for reconciliation (total order, no ties)
TIER_PRIORITY = {"free": 0, "media": 1, "lite": 2, "lifetime": 3}

DEFAULT_TIER = "free"

# Storefront item display name -> tier it grants
ITEM_TIER_MAP = {
    "Media Version": "media",
    "KirkLite": "lite",
    "Kirk Client": "lifetime",
    "Merch": "free",
}

# Tier assignment policies
TIER_POLICY_REPLACE = "replace"
TIER_POLICY_MONOTONIC = "monotonic"
TIER_POLICIES = (TIER_POLICY_REPLACE, TIER_POLICY_MONOTONIC)

# Sentinel user id for purchases without an account
GUEST_USER_ID = "guest"

# Payment providers
PROVIDER_STRIPE = "stripe"
PROVIDER_COINBASE = "coinbase"

PAYMENT_METHOD_STRIPE = "stripe_card"
PAYMENT_METHOD_COINBASE = "crypto_coinbase"

# Webhook event types
STRIPE_PAYMENT_SUCCEEDED = "payment_intent.succeeded"
STRIPE_PAYMENT_FAILED = "payment_intent.payment_failed"
COINBASE_CHARGE_CONFIRMED = "charge:confirmed"
COINBASE_CHARGE_FAILED = "charge:failed"

UNKNOWN_CRYPTOCURRENCY = "unknown"

# Order / pending payment status values
STATUS_PENDING = "pending"
STATUS_COMPLETED = "completed"

# Document collections
USERS = "users"
ORDERS = "orders"
CRYPTO_PAYMENTS = "crypto_payments"

# GSI on crypto payments for webhook lookup
CHARGE_ID_INDEX = "charge-id-index"

# Coinbase Commerce API
COINBASE_API_URL = "https://api.commerce.coinbase.com"
COINBASE_API_VERSION = "2018-03-22"

# Timeouts
DEFAULT_TIMEOUT = 30.0

# Provider page sizes for bulk operations
COGNITO_PAGE_SIZE = 60
DYNAMODB_SCAN_PAGE_SIZE = 500
