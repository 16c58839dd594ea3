#!/usr/bin/env python3
"""
DANGER: permanently delete ALL auth users and ALL billing data.

Deletes every user in the Cognito pool (USER_POOL_ID) and every item in
every DynamoDB table whose name starts with TABLE_PREFIX (default "kirk-").
Tables themselves are kept.

Both passes are sequential and paginated: one page is deleted, then the
next page is fetched, until nothing is left.

Usage:
    # Show what would be deleted
    python scripts/wipe.py --dry-run

    # Actually wipe
    python scripts/wipe.py --yes
"""

import argparse
import logging
import os
import sys

# Add functions directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../functions"))

from shared.auth_users import AuthDirectory
from shared.aws_clients import get_cognito, get_dynamodb
from shared.config import Settings
from shared.constants import COGNITO_PAGE_SIZE, DYNAMODB_SCAN_PAGE_SIZE

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(message)s",
)
logger = logging.getLogger(__name__)


def list_prefixed_tables(dynamodb, prefix: str) -> list[str]:
    """Names of all tables starting with `prefix`."""
    client = dynamodb.meta.client
    names = []
    kwargs = {}
    while True:
        response = client.list_tables(**kwargs)
        names.extend(n for n in response.get("TableNames", []) if n.startswith(prefix))
        last = response.get("LastEvaluatedTableName")
        if not last:
            return names
        kwargs["ExclusiveStartTableName"] = last


def count_items(table) -> int:
    total = 0
    kwargs = {"Select": "COUNT"}
    while True:
        response = table.scan(**kwargs)
        total += response.get("Count", 0)
        if "LastEvaluatedKey" not in response:
            return total
        kwargs["ExclusiveStartKey"] = response["LastEvaluatedKey"]


def delete_table_items(table, page_size: int = DYNAMODB_SCAN_PAGE_SIZE) -> int:
    """
    Delete every item in a table, one scan page at a time.

    Each pass scans from the start, so deletions never invalidate a cursor;
    the loop ends when a scan comes back empty.

    Returns:
        Number of items deleted
    """
    key_names = [k["AttributeName"] for k in table.key_schema]
    projection = {
        "ProjectionExpression": ", ".join(f"#k{i}" for i in range(len(key_names))),
        "ExpressionAttributeNames": {f"#k{i}": name for i, name in enumerate(key_names)},
    }

    deleted = 0
    while True:
        response = table.scan(Limit=page_size, **projection)
        items = response.get("Items", [])
        if not items:
            return deleted

        # batch_writer splits into 25-item BatchWriteItem calls and retries unprocessed keys
        with table.batch_writer() as batch:
            for item in items:
                batch.delete_item(Key={name: item[name] for name in key_names})
        deleted += len(items)
        logger.info(f"  Deleted {len(items)} items from {table.name}")


def wipe_auth_users(directory: AuthDirectory, dry_run: bool = False) -> int:
    logger.info("Deleting Auth users...")
    count = directory.delete_all(page_size=COGNITO_PAGE_SIZE, dry_run=dry_run)
    logger.info(f"{'Would delete' if dry_run else 'Deleted'} {count} auth users")
    return count


def wipe_tables(dynamodb, prefix: str, dry_run: bool = False) -> dict[str, int]:
    logger.info("Deleting DynamoDB data...")
    counts = {}
    for name in list_prefixed_tables(dynamodb, prefix):
        table = dynamodb.Table(name)
        logger.info(f"Deleting table contents: {name}")
        counts[name] = count_items(table) if dry_run else delete_table_items(table)
        logger.info(f"  {'Would delete' if dry_run else 'Deleted'} {counts[name]} items from {name}")
    return counts


def wipe(settings: Settings, dynamodb, cognito, dry_run: bool = False) -> dict:
    """Run both wipe passes and return what was (or would be) deleted."""
    auth_users = 0
    if settings.user_pool_id:
        auth_users = wipe_auth_users(AuthDirectory(cognito, settings.user_pool_id), dry_run)
    else:
        logger.warning("USER_POOL_ID not set, skipping auth users")

    tables = wipe_tables(dynamodb, settings.table_prefix, dry_run)
    return {"auth_users": auth_users, "tables": tables}


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Delete ALL auth users and ALL billing data")
    parser.add_argument("--yes", action="store_true", help="Confirm the wipe (required unless --dry-run)")
    parser.add_argument("--dry-run", action="store_true", help="Count what would be deleted without deleting")
    args = parser.parse_args(argv)

    if not args.yes and not args.dry_run:
        parser.error("refusing to wipe without --yes")

    settings = Settings.from_env()
    try:
        logger.info(f"Starting wipe (prefix={settings.table_prefix!r}, dry_run={args.dry_run})...")
        wipe(settings, get_dynamodb(), get_cognito() if settings.user_pool_id else None, args.dry_run)
        logger.info("WIPE COMPLETE")
        return 0
    except Exception as e:
        logger.error(f"WIPE FAILED: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
