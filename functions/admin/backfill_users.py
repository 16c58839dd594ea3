"""
Backfill Users - GET/POST /admin/users/backfill

Creates user documents for auth accounts that never got one (for example
when the sign-up trigger failed). Existing documents are left untouched.

Request body (optional):
{
    "users": [{"uid": "...", "email": "...", "username": "..."}]
}

With a user list only those accounts are provisioned; without one every
user in the Cognito pool is checked.
"""

import logging
import time
from typing import Iterable

from shared.app_context import AppContext, get_app_context
from shared.errors import APIError, ConfigurationError, InvalidRequestError
from shared.logging_utils import configure_structured_logging, log_api_request, set_request_id
from shared.request_utils import get_method, get_origin, parse_json_body, require_method
from shared.response_utils import error_response, preflight_response, success_response
from shared.types import AuthUser
from shared.user_records import provision_user

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

ALLOWED_METHODS = "GET, POST, OPTIONS"


def _explicit_users(body: dict) -> list[AuthUser]:
    users = body.get("users")
    if not isinstance(users, list):
        raise InvalidRequestError("users must be a list", code="invalid_users")

    parsed = []
    for entry in users:
        if not isinstance(entry, dict) or not entry.get("uid"):
            raise InvalidRequestError("Each user needs a uid", code="invalid_users")
        parsed.append({
            "uid": entry["uid"],
            "email": entry.get("email"),
            "username": entry.get("username"),
            "displayName": entry.get("displayName"),
        })
    return parsed


def backfill_users(app: AppContext, users: Iterable[AuthUser]) -> dict:
    """Provision every user without a document and summarize the run."""
    results = []
    for user in users:
        created = provision_user(app.store, user)
        results.append({
            "status": "created" if created else "already_exists",
            "uid": user["uid"],
            "email": user.get("email"),
        })

    created_count = sum(1 for r in results if r["status"] == "created")
    return {
        "success": True,
        "message": "User document check/creation complete",
        "totalUsers": len(results),
        "created": created_count,
        "alreadyExisted": len(results) - created_count,
        "results": results,
    }


def handler(event, context):
    """Lambda handler for the user backfill endpoint."""
    start_time = time.time()
    configure_structured_logging()
    set_request_id(event)
    origin = get_origin(event)
    method = get_method(event)

    if method == "OPTIONS":
        return preflight_response(origin, ALLOWED_METHODS)

    try:
        require_method(event, "GET", "POST")
        body = parse_json_body(event) if method == "POST" else {}
        app = get_app_context()

        if "users" in body:
            users = _explicit_users(body)
        else:
            if app.auth_directory is None:
                raise ConfigurationError("user_pool_not_configured", "User pool not configured")
            users = app.auth_directory.iter_users()

        summary = backfill_users(app, users)
        logger.info(f"Backfill complete: {summary['created']} created of {summary['totalUsers']}")
        response = success_response(summary, origin=origin)
    except APIError as e:
        response = error_response(e.status_code, e.code, e.message, origin=origin)
    except Exception as e:
        logger.error(f"Error fixing users: {e}", exc_info=True)
        response = error_response(500, "backfill_failed", str(e), origin=origin)

    log_api_request(logger, method, "/admin/users/backfill", response["statusCode"],
                    (time.time() - start_time) * 1000)
    return response
