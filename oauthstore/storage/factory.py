"""
Factory for creating storage implementations.
Provides a centralized way to configure the Redis connection pool and
build a RedisStorage on top of it.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Type

import redis.asyncio as redis

from ..util.config import get_config_value
from .codec import RecordCodec
from .errors import ConfigurationError
from .keys import KEY_DELIMITER
from .redis_storage import RedisStorage
from .types import Client, DefaultClient


logger = logging.getLogger(__name__)


@dataclass
class StorageConfig:
    """Configuration for the Redis storage backend."""
    redis_url: str = "redis://localhost:6379/0"
    key_prefix: str = "oauth"
    max_connections: int = 50
    socket_timeout: Optional[float] = 5.0
    socket_connect_timeout: Optional[float] = 5.0

    @classmethod
    def from_env(cls) -> "StorageConfig":
        """Create configuration from OAUTHSTORE_* environment variables"""
        defaults = cls()
        return cls(
            redis_url=get_config_value("redis_url", defaults.redis_url),
            key_prefix=get_config_value("key_prefix", defaults.key_prefix),
            max_connections=get_config_value("max_connections", defaults.max_connections, int),
            socket_timeout=get_config_value("socket_timeout", defaults.socket_timeout, float),
            socket_connect_timeout=get_config_value(
                "socket_connect_timeout", defaults.socket_connect_timeout, float
            ),
        )

    def validate(self) -> bool:
        """Validate the configuration"""
        if not self.redis_url:
            raise ConfigurationError("redis_url is required", config_key="redis_url")
        if KEY_DELIMITER in self.key_prefix:
            raise ConfigurationError(
                f"key_prefix must not contain {KEY_DELIMITER!r}", config_key="key_prefix"
            )
        if self.max_connections <= 0:
            raise ConfigurationError("max_connections must be positive", config_key="max_connections")
        for name in ("socket_timeout", "socket_connect_timeout"):
            value = getattr(self, name)
            if value is not None and value <= 0:
                raise ConfigurationError(f"{name} must be positive", config_key=name)
        return True

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'redis_url': self.redis_url,
            'key_prefix': self.key_prefix,
            'max_connections': self.max_connections,
            'socket_timeout': self.socket_timeout,
            'socket_connect_timeout': self.socket_connect_timeout,
        }


def create_connection_pool(config: StorageConfig) -> redis.ConnectionPool:
    """
    Create the Redis connection pool described by a configuration.

    Args:
        config: Storage configuration

    Returns:
        ConnectionPool instance
    """
    config.validate()

    return redis.ConnectionPool.from_url(
        config.redis_url,
        max_connections=config.max_connections,
        socket_timeout=config.socket_timeout,
        socket_connect_timeout=config.socket_connect_timeout,
    )


def create_storage(config: Optional[StorageConfig] = None,
                   client_types: Iterable[Type[Client]] = (DefaultClient,)) -> RedisStorage:
    """
    Create a Redis storage.

    Args:
        config: Storage configuration; read from the environment if omitted
        client_types: Every client class the storage may encounter

    Returns:
        RedisStorage instance
    """
    if config is None:
        config = StorageConfig.from_env()

    pool = create_connection_pool(config)
    logger.info(f"Created Redis storage with key prefix {config.key_prefix!r}")

    return RedisStorage(pool, config.key_prefix, RecordCodec(client_types))
