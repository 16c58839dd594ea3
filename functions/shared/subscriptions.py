"""
Subscription tier resolution and the user-record updater.

Tier resolution is pure: purchased items map to tiers by display name and
the highest-priority tier wins. Applying a subscription is one merging
write to the user document.

Tier policy:
    replace   - the tier is whatever this payment's items imply, even if the
                user previously held a higher tier. A later "Merch" purchase
                downgrades a "lifetime" user to "free". Legacy behaviour.
    monotonic - the tier never drops below the one already on record. Reads
                the record before writing, so two concurrent reconciliations
                can still race (last writer wins).
"""

import logging
from typing import Any, Iterable, Optional

from .constants import (
    DEFAULT_TIER,
    GUEST_USER_ID,
    ITEM_TIER_MAP,
    TIER_POLICIES,
    TIER_POLICY_MONOTONIC,
    TIER_POLICY_REPLACE,
    TIER_PRIORITY,
    USERS,
)
from .documents import SERVER_TIMESTAMP, ArrayUnion, DocumentStore

logger = logging.getLogger(__name__)


def item_name(item: Any) -> Optional[str]:
    """Display name of a purchased item, or None if it has none."""
    if isinstance(item, dict):
        name = item.get("name")
        return name if isinstance(name, str) else None
    return None


def tier_for_item(item: Any) -> str:
    """Tier granted by a single item. Unknown names grant the lowest tier."""
    return ITEM_TIER_MAP.get(item_name(item), DEFAULT_TIER)


def higher_tier(a: str, b: str) -> str:
    """Return the higher-priority of two tiers (unknown tiers rank below free)."""
    return a if TIER_PRIORITY.get(a, -1) >= TIER_PRIORITY.get(b, -1) else b


def resolve_tier(items: Iterable[Any]) -> str:
    """
    Resolve the single highest-priority tier implied by purchased items.

    Args:
        items: Sequence of item dicts carrying a "name"

    Returns:
        Tier name; "free" for an empty or entirely unrecognized sequence
    """
    resolved = DEFAULT_TIER
    for item in items or ():
        resolved = higher_tier(resolved, tier_for_item(item))
    return resolved


def apply_subscription(
    store: DocumentStore,
    user_id: str,
    items: Iterable[Any],
    policy: str = TIER_POLICY_REPLACE,
) -> str:
    """
    Write the tier implied by a payment to the user's document.

    Sets subscriptionType and lastPurchase, and unions every item name into
    purchases. Fields not named here are left untouched.

    Args:
        store: Document store
        user_id: Account id (must not be the guest sentinel)
        items: Purchased items from this payment
        policy: "replace" or "monotonic"

    Returns:
        The tier that was written

    Raises:
        ValueError: For a missing/guest user id or unknown policy
        PersistenceError: If the store read or write fails
    """
    if not user_id or user_id == GUEST_USER_ID:
        raise ValueError("Subscriptions can only be applied to a real user")
    if policy not in TIER_POLICIES:
        raise ValueError(f"Unknown tier policy: {policy}")

    items = list(items or ())
    tier = resolve_tier(items)

    if policy == TIER_POLICY_MONOTONIC:
        current = store.get(USERS, user_id, consistent=True)
        current_tier = current.get("subscriptionType", DEFAULT_TIER) if current else DEFAULT_TIER
        kept = higher_tier(current_tier, tier)
        if kept != tier:
            logger.info(f"Keeping {kept} for user {user_id} (payment implies {tier})")
        tier = kept

    store.set(
        USERS,
        user_id,
        {
            "subscriptionType": tier,
            "lastPurchase": SERVER_TIMESTAMP,
            "purchases": ArrayUnion(item_name(item) for item in items),
        },
        merge=True,
    )

    logger.info(
        f"User {user_id} subscription updated to: {tier}",
        extra={"user_id": user_id, "tier": tier, "tier_policy": policy},
    )
    return tier
