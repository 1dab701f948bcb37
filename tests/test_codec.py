"""
Tests for the record codec and key naming.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, ClassVar, Dict, List

import pytest

from oauthstore.storage import (
    AccessData,
    AuthorizeData,
    Client,
    ConfigurationError,
    DecodeError,
    DefaultClient,
    EncodeError,
    KeySpace,
    Namespace,
    RecordCodec,
)


@dataclass
class ServiceClient(Client):
    """Client kind used by machine-to-machine integrations"""

    kind: ClassVar[str] = "service"

    id: str = ""
    secret: str = ""
    allowed_scopes: List[str] = field(default_factory=list)

    def get_id(self) -> str:
        return self.id

    def get_secret(self) -> str:
        return self.secret

    def get_redirect_uri(self) -> str:
        return ""

    def get_user_data(self) -> Dict[str, Any]:
        return {"allowed_scopes": self.allowed_scopes}

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'secret': self.secret, 'allowed_scopes': self.allowed_scopes}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ServiceClient':
        return cls(id=data['id'], secret=data['secret'], allowed_scopes=data['allowed_scopes'])


class TestRecordCodec:
    """Test encoding and decoding of storage records"""

    def test_access_with_nested_records(self):
        codec = RecordCodec()
        client = DefaultClient(id="c1", user_data={"nested": {"list": [1, 2.5, None, True]}})
        access = AccessData(
            client=client,
            authorize_data=AuthorizeData(client=client, code="code-1", expires_in=60),
            access_data=AccessData(client=client, access_token="old", expires_in=10),
            access_token="at1",
            refresh_token="rt1",
            expires_in=3600,
        )

        decoded = codec.decode(codec.encode(access), AccessData)

        assert decoded == access
        assert decoded.authorize_data.created_at.tzinfo is not None

    def test_envelope_format(self):
        payload = RecordCodec().encode(DefaultClient(id="c1"))

        envelope = json.loads(payload)
        assert envelope["v"] == 1
        assert envelope["type"] == "client"
        assert envelope["data"]["kind"] == "default"
        assert envelope["data"]["data"]["id"] == "c1"

    def test_registered_client_kinds(self):
        codec = RecordCodec([DefaultClient, ServiceClient])
        client = ServiceClient(id="svc", secret="x", allowed_scopes=["read"])

        decoded = codec.decode(codec.encode(client), Client)

        assert isinstance(decoded, ServiceClient)
        assert decoded == client

    def test_unregistered_client_cannot_be_encoded(self):
        with pytest.raises(EncodeError):
            RecordCodec().encode(ServiceClient(id="svc"))

    def test_unknown_kind_cannot_be_decoded(self):
        payload = RecordCodec([ServiceClient]).encode(ServiceClient(id="svc"))

        with pytest.raises(DecodeError):
            RecordCodec().decode(payload, Client)

    def test_registry_is_read_only(self):
        codec = RecordCodec()

        with pytest.raises(TypeError):
            codec.client_types["service"] = ServiceClient

    def test_conflicting_kinds_rejected(self):
        @dataclass
        class OtherDefault(DefaultClient):
            pass

        with pytest.raises(ConfigurationError):
            RecordCodec([DefaultClient, OtherDefault])

    def test_empty_registry_rejected(self):
        with pytest.raises(ConfigurationError):
            RecordCodec([])

    @pytest.mark.parametrize("value", [
        object(),
        {1: "non-string key"},
        {"when": {1, 2}},
        float("nan"),
    ])
    def test_unsupported_extension_values(self, value):
        client = DefaultClient(id="c1", user_data={"value": value})

        with pytest.raises(EncodeError):
            RecordCodec().encode(client)

    def test_wrong_record_type(self):
        codec = RecordCodec()
        payload = codec.encode(DefaultClient(id="c1"))

        with pytest.raises(DecodeError) as exc_info:
            codec.decode(payload, AccessData)

        assert exc_info.value.details["record_type"] == "AccessData"

    @pytest.mark.parametrize("payload", [
        b"",
        b"\xff\xfe",
        b"[]",
        b'{"v": 2, "type": "client", "data": {}}',
        b'{"v": 1, "type": "client", "data": {"kind": "default"}}',
        b'{"v": 1, "type": "access", "data": {"access_token": 5}}',
    ])
    def test_malformed_payloads(self, payload):
        record_type = AccessData if b'"access"' in payload else Client

        with pytest.raises(DecodeError):
            RecordCodec().decode(payload, record_type)

    @pytest.mark.parametrize("fields", [
        {"id": 5},
        {"id": "c1", "secret": ["x"]},
        {"id": "c1", "redirect_uri": None},
        {"id": "c1", "user_data": [1, 2]},
        {"id": "c1", "user_data": 0},
        {"id": "c1", "user_data": ""},
    ])
    def test_client_fields_with_wrong_types(self, fields):
        """Stored clients must match the expected shape, no defaults substituted"""
        payload = json.dumps({
            "v": 1,
            "type": "client",
            "data": {"kind": "default", "data": fields},
        }).encode()

        with pytest.raises(DecodeError):
            RecordCodec().decode(payload, Client)

    def test_boolean_is_not_an_integer(self):
        payload = json.dumps({
            "v": 1,
            "type": "authorize",
            "data": {"code": "code-1", "expires_in": True, "created_at": "2026-01-01T00:00:00+00:00"},
        }).encode()

        with pytest.raises(DecodeError):
            RecordCodec().decode(payload, AuthorizeData)

    def test_deeply_nested_payload(self):
        with pytest.raises(DecodeError):
            RecordCodec().decode(b"[" * 200000, DefaultClient)

    def test_self_referencing_user_data(self):
        user_data = {}
        user_data["self"] = user_data

        with pytest.raises(EncodeError):
            RecordCodec().encode(DefaultClient(id="c1", user_data=user_data))


class TestRecordTimestamps:
    """Test creation timestamps and expiry helpers"""

    def test_naive_created_at_is_utc(self):
        created = datetime(2026, 1, 1, 12, 0, 0)

        authorize = AuthorizeData(code="code-1", expires_in=60, created_at=created)
        access = AccessData(access_token="at1", expires_in=60, created_at=created)

        assert authorize.created_at.tzinfo is timezone.utc
        assert access.created_at == created.replace(tzinfo=timezone.utc)
        assert authorize.is_expired()
        assert access.is_expired()

    def test_fresh_records_are_not_expired(self):
        assert not AccessData(access_token="at1", expires_in=3600).is_expired()


class TestKeySpace:
    """Test key naming"""

    def test_make_key(self):
        keys = KeySpace("osin")

        assert keys.make_key(Namespace.CLIENT, "c1") == "osin:client:c1"
        assert keys.make_key(Namespace.REFRESH_TOKEN, "rt") == "osin:refresh_token:rt"
        assert keys.make_key("auth", "code") == "osin:auth:code"

    def test_empty_prefix(self):
        assert KeySpace().make_key(Namespace.ACCESS, "id") == "access:id"

    def test_distinct_pairs_never_collide(self):
        keys = KeySpace("p")
        made = {
            keys.make_key(namespace, id)
            for namespace in Namespace
            for id in ("a", "a:b", "token:a", "")
        }

        assert len(made) == len(Namespace) * 4

    def test_prefix_with_delimiter_rejected(self):
        with pytest.raises(ConfigurationError):
            KeySpace("a:b")

    def test_unknown_namespace_rejected(self):
        with pytest.raises(ValueError):
            KeySpace("p").make_key("sessions", "x")

    def test_pattern(self):
        assert KeySpace("p").pattern(Namespace.ACCESS_TOKEN) == "p:access_token:*"
