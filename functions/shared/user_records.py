"""
User document provisioning.
"""

import logging

from .auth_users import username_for
from .constants import DEFAULT_TIER, USERS
from .documents import SERVER_TIMESTAMP, DocumentStore
from .types import AuthUser, UserRecord

logger = logging.getLogger(__name__)


def new_user_fields(uid: str, username: str, email) -> UserRecord:
    """Fields of a freshly provisioned user document.

    purchases is left absent: it is a string set that the first
    reconciliation creates.
    """
    return {
        "uid": uid,
        "username": username,
        "email": email,
        "hwid": "N/A",
        "createdAt": SERVER_TIMESTAMP,
        "lastLogin": SERVER_TIMESTAMP,
        "accountStatus": "active",
        "subscriptionType": DEFAULT_TIER,
    }


def provision_user(store: DocumentStore, user: AuthUser) -> bool:
    """
    Create the user document unless one already exists.

    Returns:
        True if created, False if it already existed
    """
    uid = user["uid"]
    username = user.get("username") or username_for(user.get("displayName"), user.get("email"), uid)
    created = store.create(USERS, uid, new_user_fields(uid, username, user.get("email")))
    if created:
        logger.info(f"User document created for {uid}")
    else:
        logger.warning(f"User document already exists for: {uid}")
    return created
