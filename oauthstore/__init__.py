"""
oauthstore Python Package

Redis persistence for OAuth2 clients, authorization codes and
access/refresh grants.
"""

__version__ = "0.1.0"

from .storage import (
    AccessData,
    AuthorizeData,
    Client,
    DefaultClient,
    RedisStorage,
    Storage,
    StorageConfig,
    create_storage,
)

__all__ = [
    "AccessData",
    "AuthorizeData",
    "Client",
    "DefaultClient",
    "RedisStorage",
    "Storage",
    "StorageConfig",
    "create_storage",
]
