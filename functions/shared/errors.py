"""
Error taxonomy for the billing handlers.

Every error carries a machine-readable code and the HTTP status it maps
to, so handlers can turn any of them into an API Gateway response.
"""

import json
from typing import Optional


class APIError(Exception):
    """Base class for API errors."""

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 400,
        details: Optional[dict] = None,
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)

    def to_response(self, headers: Optional[dict] = None) -> dict:
        """Convert to API Gateway response format."""
        body = {
            "error": {
                "code": self.code,
                "message": self.message,
            }
        }
        if self.details:
            body["error"]["details"] = self.details

        response_headers = {"Content-Type": "application/json"}
        if headers:
            response_headers.update(headers)

        return {
            "statusCode": self.status_code,
            "headers": response_headers,
            "body": json.dumps(body),
        }


class WebhookVerificationError(APIError):
    """Raised when a webhook signature is missing or does not verify."""

    def __init__(self, message: str = "Invalid signature", code: str = "invalid_signature"):
        super().__init__(code=code, message=message, status_code=400)


class MalformedPayloadError(APIError):
    """Raised when a provider payload lacks fields we cannot default."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            code="invalid_event_data",
            message=message,
            status_code=400,
            details=details,
        )


class InvalidRequestError(APIError):
    """Raised for general invalid request errors."""

    def __init__(self, message: str, code: str = "invalid_request", details: Optional[dict] = None):
        super().__init__(
            code=code,
            message=message,
            status_code=400,
            details=details,
        )


class MethodNotAllowedError(APIError):
    """Raised when an endpoint is called with an unsupported HTTP method."""

    def __init__(self, method: str):
        super().__init__(
            code="method_not_allowed",
            message="Method not allowed",
            status_code=405,
            details={"method": method} if method else None,
        )


class PersistenceError(APIError):
    """Raised when a document store read or write fails."""

    def __init__(self, message: str, operation: str = ""):
        super().__init__(
            code="persistence_error",
            message=message,
            status_code=500,
            details={"operation": operation} if operation else None,
        )
        self.operation = operation


class ProviderError(APIError):
    """Raised when a payment provider call fails."""

    def __init__(self, provider: str, message: str, status_code: int = 500):
        super().__init__(
            code=f"{provider}_error",
            message=message,
            status_code=status_code,
        )
        self.provider = provider


class ConfigurationError(APIError):
    """Raised when a required secret or setting is missing."""

    def __init__(self, code: str, message: str):
        super().__init__(code=code, message=message, status_code=500)
