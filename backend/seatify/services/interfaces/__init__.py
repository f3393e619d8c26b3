"""
Collaborator interfaces for dependency inversion.
The booking core talks to identity, asset hosting and notification delivery
only through these, so implementations can be swapped per deployment.
"""

from .identity import IdentityDirectory, ResolvedUser, SqlIdentityDirectory
from .asset_store import AssetStore, HttpAssetStore, InlineAssetStore
from .notifier import BookingNotice, BookingNotifier, LoggingNotifier, WebhookNotifier

__all__ = [
    'IdentityDirectory', 'ResolvedUser', 'SqlIdentityDirectory',
    'AssetStore', 'HttpAssetStore', 'InlineAssetStore',
    'BookingNotice', 'BookingNotifier', 'LoggingNotifier', 'WebhookNotifier',
]
