"""
Storage package for oauthstore.

This package persists OAuth2 clients, authorization codes and
access/refresh grants in Redis:
- Record types and the Storage contract
- JSON record codec with a closed client-type registry
- Key naming for the shared key-space
- Redis storage implementation and factory
"""

from .types import (
    # Records
    Client,
    DefaultClient,
    AuthorizeData,
    AccessData,

    # Contract
    Storage,
)

from .errors import (
    StorageError,
    EncodeError,
    DecodeError,
    NotFoundError,
    ExpiredError,
    BackendError,
    ConfigurationError,
    StorageClosedError,
)

from .keys import KeySpace, Namespace
from .codec import RecordCodec

from .redis_storage import RedisStorage

from .factory import (
    StorageConfig,
    create_connection_pool,
    create_storage,
)

__all__ = [
    # Records
    "Client",
    "DefaultClient",
    "AuthorizeData",
    "AccessData",
    "Storage",

    # Errors
    "StorageError",
    "EncodeError",
    "DecodeError",
    "NotFoundError",
    "ExpiredError",
    "BackendError",
    "ConfigurationError",
    "StorageClosedError",

    # Key-space and codec
    "KeySpace",
    "Namespace",
    "RecordCodec",

    # Redis storage
    "RedisStorage",
    "StorageConfig",
    "create_connection_pool",
    "create_storage",
]
