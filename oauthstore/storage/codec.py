"""
Record codec for oauthstore.

Records are serialized as UTF-8 JSON envelopes::

    {"v": 1, "type": "access", "data": {...}}

Embedded clients are written as ``{"kind": <kind>, "data": {...}}`` and
rebuilt on decode from a closed registry of client classes fixed when the
codec is constructed.
"""

import json
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Optional, Type, TypeVar, Union

from ..common.utils import parse_iso_timestamp
from .errors import ConfigurationError, DecodeError, EncodeError
from .types import (
    AccessData,
    AuthorizeData,
    Client,
    DefaultClient,
    get_field,
    validate_extension_value,
)

CODEC_VERSION = 1

Record = Union[Client, AuthorizeData, AccessData]
R = TypeVar('R', Client, AuthorizeData, AccessData)


def _record_type_name(record_type: type) -> str:
    if issubclass(record_type, Client):
        return "client"
    if issubclass(record_type, AuthorizeData):
        return "authorize"
    if issubclass(record_type, AccessData):
        return "access"
    raise TypeError(f"unsupported record type {record_type.__name__}")


class RecordCodec:
    """
    Two-way codec between storage records and opaque bytes.

    The set of client classes the codec can encounter is given up front
    and cannot change afterwards.
    """

    def __init__(self, client_types: Iterable[Type[Client]] = (DefaultClient,)):
        registry: Dict[str, Type[Client]] = {}
        for client_type in client_types:
            if not client_type.kind:
                raise ConfigurationError(
                    f"client type {client_type.__name__} has no kind tag",
                    config_key="client_types",
                )
            existing = registry.get(client_type.kind)
            if existing is not None and existing is not client_type:
                raise ConfigurationError(
                    f"client kind {client_type.kind!r} registered by both "
                    f"{existing.__name__} and {client_type.__name__}",
                    config_key="client_types",
                )
            registry[client_type.kind] = client_type

        if not registry:
            raise ConfigurationError("at least one client type is required", config_key="client_types")

        self._client_types = MappingProxyType(registry)

    @property
    def client_types(self) -> Mapping[str, Type[Client]]:
        """Read-only view of the registered client classes by kind."""
        return self._client_types

    def encode(self, record: Record) -> bytes:
        """
        Serialize a record.

        Raises:
            EncodeError: If the record or any embedded value can't be encoded
        """
        try:
            envelope = {
                'v': CODEC_VERSION,
                'type': _record_type_name(type(record)),
                'data': self._dump(record),
            }
            return json.dumps(
                envelope, separators=(',', ':'), ensure_ascii=False, allow_nan=False
            ).encode('utf-8')
        except (AttributeError, RecursionError, TypeError, ValueError) as e:
            raise EncodeError(
                f"unable to encode {type(record).__name__}",
                details={'record_type': type(record).__name__},
                cause=e,
            ) from e

    def decode(self, payload: Union[bytes, str], record_type: Type[R]) -> R:
        """
        Deserialize a record of the expected type.

        Raises:
            DecodeError: If the payload is malformed or holds another type
        """
        try:
            if isinstance(payload, bytes):
                payload = payload.decode('utf-8')
            envelope = json.loads(payload)
            if not isinstance(envelope, dict):
                raise TypeError("envelope must be an object")

            version = envelope.get('v')
            if version != CODEC_VERSION:
                raise ValueError(f"unsupported codec version {version!r}")

            expected = _record_type_name(record_type)
            actual = envelope.get('type')
            if actual != expected:
                raise ValueError(f"expected {expected!r} record, got {actual!r}")

            data = get_field(envelope, 'data', dict)
            record = self._load(data, expected)
            if not isinstance(record, record_type):
                raise TypeError(
                    f"decoded {type(record).__name__} is not a {record_type.__name__}"
                )
            return record
        except (AttributeError, KeyError, RecursionError, TypeError, ValueError) as e:
            raise DecodeError(
                f"unable to decode {record_type.__name__}",
                details={'record_type': record_type.__name__},
                cause=e,
            ) from e

    def _dump(self, record: Record) -> Dict[str, Any]:
        if isinstance(record, Client):
            return self._dump_client(record)
        if isinstance(record, AuthorizeData):
            return self._dump_authorize(record)
        return self._dump_access(record)

    def _load(self, data: Dict[str, Any], type_name: str) -> Record:
        if type_name == "client":
            return self._load_client(data)
        if type_name == "authorize":
            return self._load_authorize(data)
        return self._load_access(data)

    def _dump_client(self, client: Client) -> Dict[str, Any]:
        registered = self._client_types.get(client.kind)
        if registered is not type(client):
            raise TypeError(f"client type {type(client).__name__} is not registered")

        data = client.to_dict()
        validate_extension_value(data, "client")
        return {'kind': client.kind, 'data': data}

    def _load_client(self, data: Dict[str, Any]) -> Client:
        kind = get_field(data, 'kind', str)
        client_type = self._client_types.get(kind)
        if client_type is None:
            raise ValueError(f"unknown client kind {kind!r}")
        return client_type.from_dict(get_field(data, 'data', dict))

    def _dump_optional_client(self, client: Optional[Client]) -> Optional[Dict[str, Any]]:
        return self._dump_client(client) if client is not None else None

    def _load_optional_client(self, data: Dict[str, Any]) -> Optional[Client]:
        value = get_field(data, 'client', (dict, type(None)), None)
        return self._load_client(value) if value is not None else None

    def _dump_authorize(self, data: AuthorizeData) -> Dict[str, Any]:
        validate_extension_value(data.user_data)
        return {
            'client': self._dump_optional_client(data.client),
            'code': data.code,
            'expires_in': data.expires_in,
            'scope': data.scope,
            'redirect_uri': data.redirect_uri,
            'state': data.state,
            'created_at': data.created_at.isoformat(),
            'user_data': data.user_data,
            'code_challenge': data.code_challenge,
            'code_challenge_method': data.code_challenge_method,
        }

    def _load_authorize(self, data: Dict[str, Any]) -> AuthorizeData:
        return AuthorizeData(
            client=self._load_optional_client(data),
            code=get_field(data, 'code', str),
            expires_in=get_field(data, 'expires_in', int),
            scope=get_field(data, 'scope', str, ""),
            redirect_uri=get_field(data, 'redirect_uri', str, ""),
            state=get_field(data, 'state', str, ""),
            created_at=parse_iso_timestamp(get_field(data, 'created_at', str)),
            user_data=get_field(data, 'user_data', dict, {}),
            code_challenge=get_field(data, 'code_challenge', str, ""),
            code_challenge_method=get_field(data, 'code_challenge_method', str, ""),
        )

    def _dump_access(self, data: AccessData) -> Dict[str, Any]:
        validate_extension_value(data.user_data)
        return {
            'client': self._dump_optional_client(data.client),
            'authorize_data': (
                self._dump_authorize(data.authorize_data)
                if data.authorize_data is not None else None
            ),
            'access_data': (
                self._dump_access(data.access_data)
                if data.access_data is not None else None
            ),
            'access_token': data.access_token,
            'refresh_token': data.refresh_token,
            'expires_in': data.expires_in,
            'scope': data.scope,
            'redirect_uri': data.redirect_uri,
            'created_at': data.created_at.isoformat(),
            'user_data': data.user_data,
        }

    def _load_access(self, data: Dict[str, Any]) -> AccessData:
        authorize_data = get_field(data, 'authorize_data', (dict, type(None)), None)
        previous = get_field(data, 'access_data', (dict, type(None)), None)

        return AccessData(
            client=self._load_optional_client(data),
            authorize_data=(
                self._load_authorize(authorize_data) if authorize_data is not None else None
            ),
            access_data=self._load_access(previous) if previous is not None else None,
            access_token=get_field(data, 'access_token', str),
            refresh_token=get_field(data, 'refresh_token', str, ""),
            expires_in=get_field(data, 'expires_in', int),
            scope=get_field(data, 'scope', str, ""),
            redirect_uri=get_field(data, 'redirect_uri', str, ""),
            created_at=parse_iso_timestamp(get_field(data, 'created_at', str)),
            user_data=get_field(data, 'user_data', dict, {}),
        )
