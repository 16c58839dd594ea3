"""
Cognito user pool access for provisioning and the admin wipe.
"""

import logging
from typing import Iterator, Optional

from .constants import COGNITO_PAGE_SIZE
from .types import AuthUser

logger = logging.getLogger(__name__)


def username_for(display_name: Optional[str], email: Optional[str], uid: str) -> str:
    """Display name, else the email local part, else the uid."""
    if display_name:
        return display_name
    if email and "@" in email:
        return email.split("@")[0]
    return email or uid


def _attributes(user: dict) -> dict:
    return {a["Name"]: a.get("Value") for a in user.get("Attributes", [])}


def to_auth_user(user: dict) -> AuthUser:
    """Convert a Cognito ListUsers entry into an AuthUser."""
    attrs = _attributes(user)
    return {
        "uid": attrs.get("sub") or user["Username"],
        "email": attrs.get("email"),
        "displayName": attrs.get("name") or attrs.get("preferred_username"),
    }


class AuthDirectory:
    """Pages through and deletes users in one Cognito user pool.

    Args:
        cognito: boto3 cognito-idp client
        user_pool_id: Pool to operate on
    """

    def __init__(self, cognito, user_pool_id: str):
        self._cognito = cognito
        self.user_pool_id = user_pool_id

    def iter_pages(self, page_size: int = COGNITO_PAGE_SIZE) -> Iterator[list[dict]]:
        """Yield raw ListUsers pages until the pool is exhausted."""
        kwargs = {"UserPoolId": self.user_pool_id, "Limit": page_size}
        while True:
            response = self._cognito.list_users(**kwargs)
            users = response.get("Users", [])
            if users:
                yield users
            token = response.get("PaginationToken")
            if not token:
                return
            kwargs["PaginationToken"] = token

    def iter_users(self, page_size: int = COGNITO_PAGE_SIZE) -> Iterator[AuthUser]:
        for page in self.iter_pages(page_size):
            for user in page:
                yield to_auth_user(user)

    def delete_all(self, page_size: int = COGNITO_PAGE_SIZE, dry_run: bool = False) -> int:
        """
        Delete every user in the pool, one page at a time.

        Pages are re-listed from the start after each deletion pass, since
        deleting users invalidates the pagination token.

        Returns:
            Number of users deleted (or that would be deleted on a dry run)
        """
        deleted = 0
        kwargs = {"UserPoolId": self.user_pool_id, "Limit": page_size}
        while True:
            response = self._cognito.list_users(**kwargs)
            users = response.get("Users", [])
            if not users:
                break

            if dry_run:
                deleted += len(users)
                token = response.get("PaginationToken")
                if not token:
                    break
                kwargs["PaginationToken"] = token
                continue

            for user in users:
                self._cognito.admin_delete_user(UserPoolId=self.user_pool_id, Username=user["Username"])
            deleted += len(users)
            logger.info(f"Deleted {len(users)} auth users")

        return deleted
