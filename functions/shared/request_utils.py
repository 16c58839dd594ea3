"""Shared request utilities for API handlers."""

import base64
import json
import logging
from decimal import Decimal
from typing import Optional

from .documents import is_storable
from .errors import InvalidRequestError, MethodNotAllowedError

logger = logging.getLogger(__name__)


def get_header(event: dict, name: str) -> Optional[str]:
    """Case-insensitive header lookup (API Gateway may lowercase headers)."""
    headers = event.get("headers") or {}
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None


def get_origin(event: dict) -> Optional[str]:
    """Extract Origin header from request."""
    return get_header(event, "origin")


def get_method(event: dict) -> str:
    """HTTP method for REST (v1) and HTTP (v2) API Gateway payloads."""
    method = event.get("httpMethod")
    if not method:
        method = (event.get("requestContext") or {}).get("http", {}).get("method", "")
    return (method or "").upper()


def get_raw_body(event: dict) -> str:
    """Request body exactly as sent, decoding API Gateway base64 bodies.

    Signature checks must run against these bytes, not a re-serialized
    JSON document.
    """
    body = event.get("body") or ""
    if event.get("isBase64Encoded"):
        return base64.b64decode(body).decode("utf-8")
    return body


def _reject_constant(name: str):
    raise InvalidRequestError(f"Request body must not contain {name}", code="invalid_json")


def parse_json_body(event: dict) -> dict:
    """
    Parse a JSON object body. Floats become Decimal so values can be stored
    in DynamoDB unchanged; NaN and Infinity are rejected.

    Raises:
        InvalidRequestError: Body is not a JSON object, or holds NaN/Infinity
    """
    try:
        body = json.loads(
            get_raw_body(event) or "{}", parse_float=Decimal, parse_constant=_reject_constant
        )
    except (json.JSONDecodeError, UnicodeDecodeError, ValueError):
        raise InvalidRequestError("Request body must be valid JSON", code="invalid_json") from None
    if not isinstance(body, dict):
        raise InvalidRequestError("Request body must be a JSON object", code="invalid_json")
    return body


def parse_items_field(body: dict) -> list:
    """
    Validate the purchased items of a payment request.

    Raises:
        InvalidRequestError: Not a list, or holds numbers that cannot be stored
    """
    items = body.get("items") or []
    if not isinstance(items, list):
        raise InvalidRequestError("Items must be a list", code="invalid_items")
    if not is_storable(items):
        raise InvalidRequestError("Items contain unsupported numbers", code="invalid_items")
    return items


def require_method(event: dict, *allowed: str) -> str:
    """
    Raises:
        MethodNotAllowedError: Method is not one of `allowed`
    """
    method = get_method(event)
    if method not in allowed:
        raise MethodNotAllowedError(method)
    return method


def parse_amount(value) -> Decimal:
    """
    Validate a payment amount from a request body.

    Raises:
        InvalidRequestError: Missing, non-numeric or not positive
    """
    if isinstance(value, bool) or not isinstance(value, (int, Decimal)):
        raise InvalidRequestError("Invalid amount", code="invalid_amount")
    amount = Decimal(value)
    if not amount.is_finite() or amount <= 0 or not is_storable(amount):
        raise InvalidRequestError("Invalid amount", code="invalid_amount")
    return amount
