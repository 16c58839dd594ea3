"""
Tests for the wipe maintenance script.
"""

import os
import sys

import boto3
import pytest

from conftest import scan_all

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "scripts"))

import wipe  # noqa: E402

from shared.config import Settings  # noqa: E402


@pytest.fixture
def populated(mock_dynamodb):
    """Billing tables with data plus an unrelated table that must survive."""
    mock_dynamodb.create_table(
        TableName="other-service",
        KeySchema=[{"AttributeName": "pk", "KeyType": "HASH"}],
        AttributeDefinitions=[{"AttributeName": "pk", "AttributeType": "S"}],
        BillingMode="PAY_PER_REQUEST",
    )
    mock_dynamodb.Table("other-service").put_item(Item={"pk": "keep"})

    users = mock_dynamodb.Table("kirk-users")
    for i in range(7):
        users.put_item(Item={"pk": f"user_{i}", "subscriptionType": "free"})
    mock_dynamodb.Table("kirk-orders").put_item(Item={"pk": "stripe_pi_1", "status": "completed"})
    return mock_dynamodb


@pytest.fixture
def user_pool(populated):
    cognito = boto3.client("cognito-idp", region_name="us-east-1")
    pool_id = cognito.create_user_pool(PoolName="kirk-users")["UserPool"]["Id"]
    for i in range(5):
        cognito.admin_create_user(UserPoolId=pool_id, Username=f"player{i}", MessageAction="SUPPRESS")
    return cognito, pool_id


class TestDeleteTableItems:
    def test_deletes_across_pages(self, populated):
        deleted = wipe.delete_table_items(populated.Table("kirk-users"), page_size=2)

        assert deleted == 7
        assert scan_all(populated, "kirk-users") == []

    def test_empty_table(self, populated):
        assert wipe.delete_table_items(populated.Table("kirk-crypto-payments")) == 0


class TestWipe:
    def test_wipes_prefixed_tables_only(self, populated):
        result = wipe.wipe(Settings(), populated, None)

        assert result["auth_users"] == 0
        assert result["tables"] == {
            "kirk-crypto-payments": 0,
            "kirk-orders": 1,
            "kirk-users": 7,
        }
        assert scan_all(populated, "kirk-users") == []
        assert scan_all(populated, "kirk-orders") == []
        assert scan_all(populated, "other-service") == [{"pk": "keep"}]

    def test_dry_run_deletes_nothing(self, populated, user_pool):
        cognito, pool_id = user_pool

        result = wipe.wipe(Settings(user_pool_id=pool_id), populated, cognito, dry_run=True)

        assert result["auth_users"] == 5
        assert result["tables"]["kirk-users"] == 7
        assert len(scan_all(populated, "kirk-users")) == 7
        assert len(cognito.list_users(UserPoolId=pool_id)["Users"]) == 5

    def test_deletes_auth_users(self, populated, user_pool):
        cognito, pool_id = user_pool

        result = wipe.wipe(Settings(user_pool_id=pool_id), populated, cognito)

        assert result["auth_users"] == 5
        assert cognito.list_users(UserPoolId=pool_id)["Users"] == []

    def test_auth_users_deleted_in_small_pages(self, populated, user_pool):
        from shared.auth_users import AuthDirectory

        cognito, pool_id = user_pool

        assert AuthDirectory(cognito, pool_id).delete_all(page_size=2) == 5
        assert cognito.list_users(UserPoolId=pool_id)["Users"] == []


class TestMain:
    def test_requires_confirmation(self):
        with pytest.raises(SystemExit) as exc_info:
            wipe.main([])

        assert exc_info.value.code == 2

    def test_confirmed_run(self, populated, monkeypatch):
        monkeypatch.delenv("USER_POOL_ID", raising=False)
        monkeypatch.setattr(wipe, "get_dynamodb", lambda: populated)

        assert wipe.main(["--yes"]) == 0
        assert scan_all(populated, "kirk-orders") == []

    def test_failure_returns_nonzero(self, monkeypatch):
        def broken():
            raise RuntimeError("no credentials")

        monkeypatch.setattr(wipe, "get_dynamodb", broken)

        assert wipe.main(["--yes"]) == 1
