"""
Shared Type Definitions for Lambda Handlers.

TypedDicts for the Lambda events we receive and the documents we store.
"""

from typing import Any, Optional, TypedDict


class APIGatewayEvent(TypedDict, total=False):
    """API Gateway proxy event structure."""

    httpMethod: str
    headers: dict[str, str]
    pathParameters: Optional[dict[str, str]]
    queryStringParameters: Optional[dict[str, str]]
    body: Optional[str]
    requestContext: dict[str, Any]
    resource: str
    path: str
    isBase64Encoded: bool


class LambdaResponse(TypedDict):
    """Standard Lambda response structure."""

    statusCode: int
    headers: dict[str, str]
    body: str


class AuthUser(TypedDict, total=False):
    """Account identity as delivered by auth lifecycle events."""

    uid: str
    username: str
    email: Optional[str]
    displayName: Optional[str]


class UserRecord(TypedDict, total=False):
    """Document in the users collection."""

    uid: str
    username: str
    email: Optional[str]
    hwid: str
    createdAt: str
    lastLogin: str
    accountStatus: str
    subscriptionType: str
    purchases: set[str]
    lastPurchase: str
