"""
Per-container application context.

Everything a handler needs from outside the request (settings, the
document store, provider clients, webhook secrets) is built here once and
handed to the code that uses it. Nothing in the context changes after
construction.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .auth_users import AuthDirectory
from .aws_clients import get_cognito, get_dynamodb
from .config import Settings, get_secret
from .documents import DocumentStore
from .providers import CoinbaseCommerceClient, StripeGateway

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppContext:
    settings: Settings
    store: DocumentStore
    stripe: Optional[StripeGateway] = None
    coinbase: Optional[CoinbaseCommerceClient] = None
    stripe_webhook_secret: Optional[str] = None
    coinbase_webhook_secret: Optional[str] = None
    auth_directory: Optional[AuthDirectory] = None


def build_app_context(settings: Optional[Settings] = None) -> AppContext:
    """Construct the context from settings and Secrets Manager.

    Providers whose credentials are missing are left as None; handlers
    that need them answer with a configuration error.
    """
    settings = settings or Settings.from_env()

    stripe_api_key = get_secret(settings.stripe_secret_arn, "key")
    coinbase_api_key = get_secret(settings.coinbase_api_key_arn, "key")

    auth_directory = None
    if settings.user_pool_id:
        auth_directory = AuthDirectory(get_cognito(), settings.user_pool_id)

    return AppContext(
        settings=settings,
        store=DocumentStore(get_dynamodb(), settings.collection_tables),
        stripe=StripeGateway(stripe_api_key) if stripe_api_key else None,
        coinbase=(
            CoinbaseCommerceClient(coinbase_api_key, base_url=settings.coinbase_api_url)
            if coinbase_api_key
            else None
        ),
        stripe_webhook_secret=get_secret(settings.stripe_webhook_secret_arn, "secret"),
        coinbase_webhook_secret=get_secret(settings.coinbase_webhook_secret_arn, "secret"),
        auth_directory=auth_directory,
    )


_app_context: Optional[AppContext] = None


def get_app_context() -> AppContext:
    """Return the container's context, building it on first use."""
    global _app_context
    if _app_context is None:
        _app_context = build_app_context()
        logger.info("Application context initialized")
    return _app_context


def reset_app_context() -> None:
    """Drop the cached context. Used in tests for clean state."""
    global _app_context
    _app_context = None
