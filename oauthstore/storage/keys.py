"""
Key naming for the Redis key-space used by oauthstore.
"""

from enum import Enum

from .errors import ConfigurationError


KEY_DELIMITER = ":"


class Namespace(str, Enum):
    """Record families stored in the key-space."""

    CLIENT = "client"
    AUTHORIZE = "auth"
    ACCESS = "access"
    ACCESS_TOKEN = "access_token"
    REFRESH_TOKEN = "refresh_token"

    def __str__(self) -> str:
        return self.value


class KeySpace:
    """
    Maps (namespace, id) pairs to fully qualified Redis keys.

    Keys have the form ``<prefix>:<namespace>:<id>``. Neither the prefix
    nor any namespace contains the delimiter, so everything after the
    second delimiter is the id and distinct pairs never collide.
    """

    def __init__(self, prefix: str = ""):
        if KEY_DELIMITER in prefix:
            raise ConfigurationError(
                f"key prefix must not contain {KEY_DELIMITER!r}",
                config_key="key_prefix",
            )
        self.prefix = prefix

    def make_key(self, namespace: Namespace, id: str) -> str:
        """Build the key for a record id in the given namespace."""
        namespace = Namespace(namespace)
        if self.prefix:
            return f"{self.prefix}{KEY_DELIMITER}{namespace.value}{KEY_DELIMITER}{id}"
        return f"{namespace.value}{KEY_DELIMITER}{id}"

    def pattern(self, namespace: Namespace) -> str:
        """Glob pattern matching every key of a namespace, for SCAN."""
        return self.make_key(namespace, "*")

