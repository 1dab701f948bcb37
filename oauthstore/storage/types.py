"""
Storage types and interfaces for oauthstore.

This module provides the record types persisted by the storage layer
(clients, authorization codes and access/refresh grants) and the abstract
Storage contract consumed by the authorization-protocol engine.
"""

import hmac
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, ClassVar, Dict, Optional

from ..common.utils import ensure_utc, get_current_time


_MISSING = object()


def get_field(data: Dict[str, Any], name: str, kind: Any, default: Any = _MISSING) -> Any:
    """
    Read a field of a decoded payload and check its type.

    bool is only accepted where it is listed explicitly, although it is
    a subclass of int.

    Raises:
        KeyError: If the field is missing and no default is given
        TypeError: If the value has another type
    """
    value = data.get(name, default)
    if value is _MISSING:
        raise KeyError(name)

    kinds = kind if isinstance(kind, tuple) else (kind,)
    if not isinstance(value, kinds) or (isinstance(value, bool) and bool not in kinds):
        raise TypeError(f"field {name!r} has unexpected type {type(value).__name__}")
    return value


# Value kinds allowed inside extension maps (user_data, scope payloads).
SCALAR_TYPES = (type(None), bool, int, float, str)


def validate_extension_value(value: Any, path: str = "user_data") -> None:
    """
    Check that a value belongs to the closed set of extension value kinds.

    Allowed kinds are None, bool, int, float, str, lists of allowed kinds
    and string-keyed mappings of allowed kinds.

    Raises:
        TypeError: If any nested value falls outside the allowed set
    """
    if isinstance(value, SCALAR_TYPES):
        return

    if isinstance(value, list):
        for index, item in enumerate(value):
            validate_extension_value(item, f"{path}[{index}]")
        return

    if isinstance(value, dict):
        for key, item in value.items():
            if not isinstance(key, str):
                raise TypeError(f"{path} has non-string key {key!r}")
            validate_extension_value(item, f"{path}.{key}")
        return

    raise TypeError(f"{path} has unsupported value type {type(value).__name__}")


class Client(ABC):
    """
    A registered OAuth2 client.

    Concrete client classes declare a unique ``kind`` tag so the record
    codec can encode them inside other records and rebuild the right class
    on decode.
    """

    kind: ClassVar[str] = ""

    @abstractmethod
    def get_id(self) -> str:
        """Client id."""
        pass

    @abstractmethod
    def get_secret(self) -> str:
        """Client secret."""
        pass

    @abstractmethod
    def get_redirect_uri(self) -> str:
        """Base client uri."""
        pass

    @abstractmethod
    def get_user_data(self) -> Dict[str, Any]:
        """Data to be passed to storage. Not used by the library."""
        pass

    @abstractmethod
    def to_dict(self) -> Dict[str, Any]:
        """Convert client to a JSON-compatible dictionary."""
        pass

    @classmethod
    @abstractmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Client':
        """Create a client from its dictionary representation."""
        pass

    def client_secret_matches(self, secret: str) -> bool:
        """Compare the given secret with the stored one in constant time."""
        return hmac.compare_digest(self.get_secret().encode('utf-8'), secret.encode('utf-8'))


@dataclass
class DefaultClient(Client):
    """Stock client implementation."""

    kind: ClassVar[str] = "default"

    id: str = ""
    secret: str = ""
    redirect_uri: str = ""
    user_data: Dict[str, Any] = field(default_factory=dict)

    def get_id(self) -> str:
        return self.id

    def get_secret(self) -> str:
        return self.secret

    def get_redirect_uri(self) -> str:
        return self.redirect_uri

    def get_user_data(self) -> Dict[str, Any]:
        return self.user_data

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'secret': self.secret,
            'redirect_uri': self.redirect_uri,
            'user_data': self.user_data,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DefaultClient':
        return cls(
            id=get_field(data, 'id', str),
            secret=get_field(data, 'secret', str, ""),
            redirect_uri=get_field(data, 'redirect_uri', str, ""),
            user_data=get_field(data, 'user_data', dict, {}),
        )


@dataclass
class AuthorizeData:
    """
    A single-use authorization code.

    The code is readable only until ``expires_in`` seconds have elapsed;
    the backing engine enforces the expiry.
    """

    client: Optional[Client] = None
    code: str = ""
    expires_in: int = 0
    scope: str = ""
    redirect_uri: str = ""
    state: str = ""
    created_at: datetime = field(default_factory=get_current_time)
    user_data: Dict[str, Any] = field(default_factory=dict)
    code_challenge: str = ""
    code_challenge_method: str = ""

    def __post_init__(self):
        self.created_at = ensure_utc(self.created_at)

    def expire_at(self) -> datetime:
        """Returns the expiration date."""
        return self.created_at + timedelta(seconds=self.expires_in)

    def is_expired(self) -> bool:
        """Is the authorization code expired."""
        return self.expire_at() < get_current_time()


@dataclass
class AccessData:
    """
    An issued access/refresh token pair bound to a client.

    ``authorize_data`` is set when the grant came from an authorization
    code, ``access_data`` when it came from refreshing a previous grant.
    """

    client: Optional[Client] = None
    authorize_data: Optional[AuthorizeData] = None
    access_data: Optional['AccessData'] = None
    access_token: str = ""
    refresh_token: str = ""
    expires_in: int = 0
    scope: str = ""
    redirect_uri: str = ""
    created_at: datetime = field(default_factory=get_current_time)
    user_data: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.created_at = ensure_utc(self.created_at)

    def expire_at(self) -> datetime:
        """Returns the expiration date."""
        return self.created_at + timedelta(seconds=self.expires_in)

    def is_expired(self) -> bool:
        """Is the access token expired."""
        return self.expire_at() < get_current_time()


class Storage(ABC):
    """
    Persistence contract used by the authorization-protocol engine.

    Implementations must be safe for concurrent use. Reads of absent
    records raise NotFoundError; deletes of absent records succeed.
    """

    def clone(self) -> 'Storage':
        """
        Return a storage usable by a single request.

        Implementations whose connections are already safe for concurrent
        use return themselves.
        """
        return self

    @abstractmethod
    async def close(self) -> None:
        """Release the resources held by the storage."""
        pass

    @abstractmethod
    async def create_client(self, client: Client) -> None:
        """Insert a client, overwriting any existing one with the same id."""
        pass

    @abstractmethod
    async def get_client(self, client_id: str) -> Client:
        """Load a client by id."""
        pass

    @abstractmethod
    async def update_client(self, client: Client) -> None:
        """Overwrite a client."""
        pass

    @abstractmethod
    async def delete_client(self, client: Client) -> None:
        """Delete a client."""
        pass

    @abstractmethod
    async def save_authorize(self, data: AuthorizeData) -> None:
        """Save authorize data."""
        pass

    @abstractmethod
    async def load_authorize(self, code: str) -> AuthorizeData:
        """Look up AuthorizeData by a code."""
        pass

    @abstractmethod
    async def remove_authorize(self, code: str) -> None:
        """Revoke or delete the authorization code."""
        pass

    @abstractmethod
    async def save_access(self, data: AccessData) -> None:
        """Write AccessData reachable by its access and refresh tokens."""
        pass

    @abstractmethod
    async def load_access(self, token: str) -> AccessData:
        """Retrieve access data by access token, with clients loaded."""
        pass

    @abstractmethod
    async def remove_access(self, token: str) -> None:
        """Revoke access data by access token, along with its refresh token."""
        pass

    @abstractmethod
    async def load_refresh(self, token: str) -> AccessData:
        """Retrieve access data by refresh token, with clients loaded."""
        pass

    @abstractmethod
    async def remove_refresh(self, token: str) -> None:
        """Revoke access data by refresh token, along with its access token."""
        pass
