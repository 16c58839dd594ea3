"""
Response utilities for Lambda handlers.

Provides consistent response formatting for success, error, webhook
acknowledgement and CORS preflight responses.
"""

import json
import os
from decimal import Decimal
from typing import Any, Dict, List, Optional

# CORS configuration
_PROD_ORIGINS = [
    "https://kirkclient.site",
    "https://www.kirkclient.site",
]
_DEV_ORIGINS = [
    "http://localhost:5000",
    "http://localhost:3000",
]
ALLOWED_ORIGINS: List[str] = (
    _PROD_ORIGINS + _DEV_ORIGINS
    if os.environ.get("ALLOW_DEV_CORS") == "true"
    else _PROD_ORIGINS
)


def get_cors_headers(origin: Optional[str], methods: str = "GET, POST, OPTIONS") -> Dict[str, str]:
    """
    Get CORS headers if origin is allowed.

    Args:
        origin: The Origin header from the request
        methods: Methods advertised in Access-Control-Allow-Methods

    Returns:
        Dict with CORS headers if origin is allowed, empty dict otherwise
    """
    if origin and origin in ALLOWED_ORIGINS:
        return {
            "Access-Control-Allow-Origin": origin,
            "Access-Control-Allow-Methods": methods,
            "Access-Control-Allow-Headers": "Content-Type",
        }
    return {}


def decimal_default(obj: Any) -> Any:
    """JSON serializer for Decimal and set types from DynamoDB."""
    if isinstance(obj, Decimal):
        if obj % 1 == 0:
            return int(obj)
        return float(obj)
    if isinstance(obj, (set, frozenset)):
        return sorted(obj)
    raise TypeError(f"Object of type {type(obj)} is not JSON serializable")


def json_response(status_code: int, body: Any, headers: Optional[dict] = None) -> dict:
    """
    Create standardized JSON response.

    Args:
        status_code: HTTP status code
        body: Response body
        headers: Optional additional headers

    Returns:
        Lambda response dictionary
    """
    response_headers = {"Content-Type": "application/json"}
    if headers:
        response_headers.update(headers)

    return {
        "statusCode": status_code,
        "headers": response_headers,
        "body": json.dumps(body, default=decimal_default),
    }


def error_response(
    status_code: int,
    code: str,
    message: str,
    headers: Optional[Dict[str, str]] = None,
    details: Optional[Dict[str, Any]] = None,
    origin: Optional[str] = None,
) -> dict:
    """
    Create an error response.

    Args:
        status_code: HTTP status code
        code: Machine-readable error code (snake_case)
        message: Human-readable error message
        headers: Additional response headers
        details: Optional additional error details
        origin: Request Origin header for CORS

    Returns:
        Lambda response dict
    """
    response_headers = dict(get_cors_headers(origin))
    if headers:
        response_headers.update(headers)

    body = {
        "error": {
            "code": code,
            "message": message,
        }
    }
    if details:
        body["error"]["details"] = details

    return json_response(status_code, body, response_headers)


def success_response(
    data: Any,
    status_code: int = 200,
    headers: Optional[Dict[str, str]] = None,
    origin: Optional[str] = None,
) -> dict:
    """Create a success response."""
    response_headers = dict(get_cors_headers(origin))
    if headers:
        response_headers.update(headers)

    return json_response(status_code, data, response_headers)


def ack_response(processed: bool = True, error_code: Optional[str] = None, **flags: Any) -> dict:
    """
    Acknowledge a webhook delivery.

    Providers only look at the status code; a 200 stops redelivery. When
    processing failed after verification the body says so without leaking
    internals.
    """
    body: Dict[str, Any] = {"received": True}
    if not processed:
        body["processed"] = False
        if error_code:
            body["error"] = {"code": error_code, "message": "Event received but not fully processed"}
    body.update(flags)
    return json_response(200, body)


def preflight_response(origin: Optional[str], methods: str = "GET, POST, OPTIONS") -> dict:
    """Answer a CORS preflight request."""
    return {
        "statusCode": 204,
        "headers": get_cors_headers(origin, methods),
        "body": "",
    }
