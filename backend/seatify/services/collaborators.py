"""
Collaborator factory.
Picks the identity, asset-store and notifier implementations from settings.
Each getter doubles as a FastAPI dependency, so tests override them the same
way they override get_db.
"""

from seatify.core.config import get_settings
from seatify.services.interfaces import (
    AssetStore,
    BookingNotifier,
    HttpAssetStore,
    IdentityDirectory,
    InlineAssetStore,
    LoggingNotifier,
    SqlIdentityDirectory,
    WebhookNotifier,
)

_identity: IdentityDirectory = None
_asset_store: AssetStore = None
_notifier: BookingNotifier = None


def get_identity_directory() -> IdentityDirectory:
    global _identity
    if _identity is None:
        _identity = SqlIdentityDirectory()
    return _identity


def get_asset_store() -> AssetStore:
    """
    HttpAssetStore when ASSET_STORE_URL is set, otherwise images are inlined
    as data: URLs.
    """
    global _asset_store
    if _asset_store is None:
        settings = get_settings()
        if settings.ASSET_STORE_URL:
            _asset_store = HttpAssetStore(
                settings.ASSET_STORE_URL, timeout=settings.COLLABORATOR_TIMEOUT_SECONDS
            )
        else:
            _asset_store = InlineAssetStore()
    return _asset_store


def get_notifier() -> BookingNotifier:
    global _notifier
    if _notifier is None:
        settings = get_settings()
        if settings.NOTIFY_WEBHOOK_URL:
            _notifier = WebhookNotifier(
                settings.NOTIFY_WEBHOOK_URL, timeout=settings.COLLABORATOR_TIMEOUT_SECONDS
            )
        else:
            _notifier = LoggingNotifier()
    return _notifier
