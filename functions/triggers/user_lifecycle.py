"""
Auth lifecycle triggers - user document provisioning and cleanup.

on_user_create runs as the Cognito post-confirmation trigger; on_user_delete
is invoked with the deleted account (directly or via an EventBridge rule).
Both also accept a plain {"uid", "email", "displayName"} payload.

Failures are logged and swallowed: a document store problem must never
block sign-up or account deletion.
"""

import logging
from typing import Optional

from shared.app_context import get_app_context
from shared.constants import USERS
from shared.logging_utils import configure_structured_logging, set_request_id
from shared.types import AuthUser
from shared.user_records import provision_user

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


def extract_auth_user(event: dict) -> Optional[AuthUser]:
    """Pull the account identity out of a trigger event.

    Supports Cognito trigger events, EventBridge envelopes and plain
    payloads. Returns None if no user id is present.
    """
    if isinstance(event.get("request"), dict) and "userAttributes" in event["request"]:
        attrs = event["request"].get("userAttributes") or {}
        uid = attrs.get("sub") or event.get("userName")
        email = attrs.get("email")
        display_name = attrs.get("name") or attrs.get("preferred_username")
    else:
        payload = event.get("detail") if isinstance(event.get("detail"), dict) else event
        uid = payload.get("uid")
        email = payload.get("email")
        display_name = payload.get("displayName")

    if not uid:
        return None
    return {"uid": uid, "email": email, "displayName": display_name}


def _trigger_result(event: dict):
    # Cognito requires the event back; other invokers ignore the result
    return event if "triggerSource" in event else None


def on_user_create(event, context):
    """Create the user document for a newly confirmed account."""
    configure_structured_logging()
    set_request_id(event)

    user = extract_auth_user(event)
    if user is None:
        logger.warning("User create event without a user id, ignoring")
        return _trigger_result(event)

    try:
        provision_user(get_app_context().store, user)
    except Exception as e:
        logger.error(f"Error auto-creating user document for {user['uid']}: {e}", exc_info=True)

    return _trigger_result(event)


def on_user_delete(event, context):
    """Delete the user document of a removed account."""
    configure_structured_logging()
    set_request_id(event)

    user = extract_auth_user(event)
    if user is None:
        logger.warning("User delete event without a user id, ignoring")
        return _trigger_result(event)

    try:
        get_app_context().store.delete(USERS, user["uid"])
        logger.info(f"User document deleted for: {user['uid']}")
    except Exception as e:
        logger.error(f"Error deleting user document for {user['uid']}: {e}", exc_info=True)

    return _trigger_result(event)
