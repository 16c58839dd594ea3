# Shared utilities package
from .constants import GUEST_USER_ID, TIER_PRIORITY
from .documents import SERVER_TIMESTAMP, ArrayUnion, DocumentStore
from .errors import APIError
from .response_utils import error_response, success_response
from .subscriptions import apply_subscription, resolve_tier

__all__ = [
    "GUEST_USER_ID",
    "TIER_PRIORITY",
    "SERVER_TIMESTAMP",
    "ArrayUnion",
    "DocumentStore",
    "APIError",
    "error_response",
    "success_response",
    "apply_subscription",
    "resolve_tier",
]
