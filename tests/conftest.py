"""
Shared pytest fixtures for the billing tests.
"""

import os
import sys

import boto3
import pytest
from moto import mock_aws

# Add functions directory to Python path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "functions"))


def pytest_configure(config):
    """Set AWS credentials before test collection.

    This runs before test collection starts, ensuring boto3 resource
    creation during imports doesn't fail with NoRegionError.
    """
    os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
    os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
    os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")
    os.environ.setdefault("AWS_REGION", "us-east-1")


@pytest.fixture(autouse=True)
def aws_credentials():
    """Set fake AWS credentials for all tests."""
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "us-east-1"
    os.environ["AWS_REGION"] = "us-east-1"


@pytest.fixture(autouse=True)
def reset_shared_state():
    """Reset AWS client singletons and the app context between tests."""
    yield
    from shared.app_context import reset_app_context
    from shared.aws_clients import reset_clients

    reset_clients()
    reset_app_context()


def create_dynamodb_tables(dynamodb):
    """Create the billing tables with their GSIs.

    Args:
        dynamodb: boto3 DynamoDB resource
    """
    for table_name in ("kirk-users", "kirk-orders"):
        dynamodb.create_table(
            TableName=table_name,
            KeySchema=[{"AttributeName": "pk", "KeyType": "HASH"}],
            AttributeDefinitions=[{"AttributeName": "pk", "AttributeType": "S"}],
            BillingMode="PAY_PER_REQUEST",
        )

    dynamodb.create_table(
        TableName="kirk-crypto-payments",
        KeySchema=[{"AttributeName": "pk", "KeyType": "HASH"}],
        AttributeDefinitions=[
            {"AttributeName": "pk", "AttributeType": "S"},
            {"AttributeName": "chargeId", "AttributeType": "S"},
        ],
        GlobalSecondaryIndexes=[
            {
                "IndexName": "charge-id-index",
                "KeySchema": [{"AttributeName": "chargeId", "KeyType": "HASH"}],
                "Projection": {"ProjectionType": "ALL"},
            },
        ],
        BillingMode="PAY_PER_REQUEST",
    )


@pytest.fixture
def mock_dynamodb():
    """Provide mocked DynamoDB with tables."""
    with mock_aws():
        dynamodb = boto3.resource("dynamodb", region_name="us-east-1")
        create_dynamodb_tables(dynamodb)
        yield dynamodb


@pytest.fixture
def settings():
    from shared.config import Settings

    return Settings()


@pytest.fixture
def store(mock_dynamodb, settings):
    """Document store over the mocked tables."""
    from shared.documents import DocumentStore

    return DocumentStore(mock_dynamodb, settings.collection_tables)


@pytest.fixture
def app_context(store, settings):
    """App context with a Stripe webhook secret and no provider API clients."""
    from shared.app_context import AppContext

    return AppContext(
        settings=settings,
        store=store,
        stripe_webhook_secret="whsec_test",
    )


@pytest.fixture
def installed_app_context(app_context):
    """Make handlers pick up the test app context."""
    import shared.app_context as app_context_module

    app_context_module._app_context = app_context
    yield app_context
    app_context_module._app_context = None


@pytest.fixture
def api_gateway_event():
    """Base API Gateway event for Lambda handler tests."""
    return {
        "httpMethod": "GET",
        "headers": {},
        "pathParameters": {},
        "queryStringParameters": {},
        "body": None,
        "requestContext": {
            "requestId": "req-test",
            "identity": {"sourceIp": "127.0.0.1"},
        },
    }


@pytest.fixture
def seeded_user(store):
    """A provisioned free-tier user."""
    from shared.constants import USERS

    store.set(
        USERS,
        "user_abc",
        {
            "uid": "user_abc",
            "username": "kirkfan",
            "email": "fan@example.com",
            "hwid": "N/A",
            "accountStatus": "active",
            "subscriptionType": "free",
        },
    )
    return "user_abc"


def scan_all(dynamodb, table_name):
    """All items in a mocked table."""
    return dynamodb.Table(table_name).scan()["Items"]
