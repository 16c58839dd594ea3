"""
Centralized AWS client factory with lazy initialization.

Clients are created on first use so cold starts only pay for the services
a handler actually touches. The AppContext pulls its clients from here
once per container.
"""

_dynamodb = None
_secretsmanager = None
_cognito = None


def get_dynamodb():
    """Get DynamoDB resource, creating it lazily on first use."""
    global _dynamodb
    if _dynamodb is None:
        import boto3
        _dynamodb = boto3.resource("dynamodb")
    return _dynamodb


def get_secretsmanager():
    """Get Secrets Manager client, creating it lazily on first use."""
    global _secretsmanager
    if _secretsmanager is None:
        import boto3
        _secretsmanager = boto3.client("secretsmanager")
    return _secretsmanager


def get_cognito():
    """Get Cognito Identity Provider client, creating it lazily on first use."""
    global _cognito
    if _cognito is None:
        import boto3
        _cognito = boto3.client("cognito-idp")
    return _cognito


def reset_clients():
    """Reset all cached clients. Used in tests for clean state."""
    global _dynamodb, _secretsmanager, _cognito
    _dynamodb = None
    _secretsmanager = None
    _cognito = None
