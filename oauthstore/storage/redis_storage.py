"""
Redis-backed storage implementation for oauthstore.

Key layout (``<prefix>:`` omitted)::

    client:<client id>          -> encoded client
    auth:<code>                 -> encoded authorize data, with TTL
    access:<access id>          -> encoded access data
    access_token:<token>        -> access id
    refresh_token:<token>       -> access id

An access record is reachable through two pointer keys so that either the
access token or the refresh token resolves to the same stored record, and
revoking through either one removes all three keys.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional, Type, Union

import redis.asyncio as redis
from redis.exceptions import RedisError, WatchError

from ..common.utils import generate_id
from .codec import R, Record, RecordCodec
from .errors import (
    BackendError,
    EncodeError,
    ExpiredError,
    NotFoundError,
    StorageClosedError,
    StorageError,
)
from .keys import KeySpace, Namespace
from .types import AccessData, AuthorizeData, Client, Storage


logger = logging.getLogger(__name__)


def _as_str(value: Union[bytes, str]) -> str:
    if isinstance(value, bytes):
        return value.decode('utf-8')
    return value


class RedisStorage(Storage):
    """
    Storage implementation on top of a Redis connection pool.

    Connections are taken from the pool for each command or pipeline and
    handed back on every exit path. Multi-key writes and the cascade
    delete run in a MULTI/EXEC transaction. The read that precedes a
    cascade delete is not guarded, so a concurrent save_access and
    remove_access touching the same tokens may interleave.
    """

    def __init__(self,
                 pool: redis.ConnectionPool,
                 key_prefix: str = "",
                 codec: Optional[RecordCodec] = None):
        """
        Initialize Redis storage.

        Args:
            pool: Connection pool shared by every operation
            key_prefix: Prefix isolating this store's keys from other users
                of the same Redis instance
            codec: Record codec; defaults to one knowing DefaultClient only
        """
        self._pool = pool
        self._keys = KeySpace(key_prefix)
        self._codec = codec or RecordCodec()
        self._redis = redis.Redis(connection_pool=pool)
        self._closed = False

    @property
    def key_prefix(self) -> str:
        return self._keys.prefix

    @property
    def codec(self) -> RecordCodec:
        return self._codec

    async def __aenter__(self) -> 'RedisStorage':
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Disconnect the connection pool. The storage is unusable afterwards."""
        if self._closed:
            return

        self._closed = True
        await self._pool.disconnect()
        logger.info("Closed Redis storage connection pool")

    def make_key(self, namespace: Namespace, id: str) -> str:
        """Build the Redis key for a record id in the given namespace."""
        return self._keys.make_key(namespace, id)

    # Client registry

    async def create_client(self, client: Client) -> None:
        """Insert a client, overwriting any existing one with the same id."""
        key = self.make_key(Namespace.CLIENT, client.get_id())
        payload = self._encode(client, "save client", key)

        async with self._backend("save client", key):
            await self._redis.set(key, payload)

        logger.debug(f"Saved client {client.get_id()}")

    async def get_client(self, client_id: str) -> Client:
        """
        Load a client by id.

        Raises:
            NotFoundError: If no client is stored under the id
            DecodeError: If the stored bytes aren't a client
        """
        key = self.make_key(Namespace.CLIENT, client_id)

        async with self._backend("get client", key):
            payload = await self._redis.get(key)

        if payload is None:
            raise NotFoundError(
                f"client {client_id} not found",
                details={'operation': "get client", 'key': key},
            )

        return self._decode(payload, Client, "get client", key)

    async def update_client(self, client: Client) -> None:
        """Overwrite a client."""
        await self.create_client(client)

    async def delete_client(self, client: Client) -> None:
        """Delete a client. Deleting an unknown client succeeds."""
        key = self.make_key(Namespace.CLIENT, client.get_id())

        async with self._backend("delete client", key):
            await self._redis.delete(key)

        logger.debug(f"Deleted client {client.get_id()}")

    # Authorization-code registry

    async def save_authorize(self, data: AuthorizeData) -> None:
        """Save authorize data; Redis drops it after ``expires_in`` seconds."""
        key = self.make_key(Namespace.AUTHORIZE, data.code)

        expires_in = data.expires_in
        if isinstance(expires_in, bool) or not isinstance(expires_in, int) or expires_in <= 0:
            raise EncodeError(
                "expires_in must be a positive number of seconds",
                details={'operation': "save authorize", 'key': key, 'expires_in': data.expires_in},
            )

        payload = self._encode(data, "save authorize", key)

        async with self._backend("save authorize", key):
            await self._redis.setex(key, data.expires_in, payload)

        logger.debug(f"Saved authorize code expiring in {data.expires_in}s")

    async def load_authorize(self, code: str) -> AuthorizeData:
        """
        Look up AuthorizeData by a code.

        Raises:
            ExpiredError: If the code was never saved or its TTL elapsed
        """
        key = self.make_key(Namespace.AUTHORIZE, code)

        async with self._backend("load authorize", key):
            payload = await self._redis.get(key)

        if payload is None:
            raise ExpiredError(details={'operation': "load authorize", 'key': key})

        return self._decode(payload, AuthorizeData, "load authorize", key)

    async def remove_authorize(self, code: str) -> None:
        """Revoke or delete the authorization code."""
        key = self.make_key(Namespace.AUTHORIZE, code)

        async with self._backend("remove authorize", key):
            await self._redis.delete(key)

    # Access/refresh registry

    async def save_access(self, data: AccessData) -> None:
        """
        Store access data under a fresh access id and point both tokens at it.

        The record and its pointers are written in one transaction.
        """
        if not data.access_token:
            raise EncodeError("access data has no access token",
                              details={'operation': "save access"})
        if data.client is None:
            raise EncodeError("access data has no client",
                              details={'operation': "save access"})

        access_id = generate_id()
        access_key = self.make_key(Namespace.ACCESS, access_id)
        payload = self._encode(data, "save access", access_key)

        async with self._backend("save access", access_key):
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.set(access_key, payload)
                pipe.set(self.make_key(Namespace.ACCESS_TOKEN, data.access_token), access_id)
                if data.refresh_token:
                    pipe.set(self.make_key(Namespace.REFRESH_TOKEN, data.refresh_token), access_id)
                await pipe.execute()

        logger.debug(f"Saved access {access_id} for client {data.client.get_id()}")

    async def load_access(self, token: str) -> AccessData:
        """Retrieve access data by access token."""
        return await self._load_and_hydrate(Namespace.ACCESS_TOKEN, token, "load access")

    async def remove_access(self, token: str) -> None:
        """Revoke access data by access token, along with its refresh token."""
        await self._remove_access_impl(Namespace.ACCESS_TOKEN, token, "remove access")

    async def load_refresh(self, token: str) -> AccessData:
        """Retrieve access data by refresh token."""
        return await self._load_and_hydrate(Namespace.REFRESH_TOKEN, token, "load refresh")

    async def remove_refresh(self, token: str) -> None:
        """Revoke access data by refresh token, along with its access token."""
        await self._remove_access_impl(Namespace.REFRESH_TOKEN, token, "remove refresh")

    async def purge_orphaned_tokens(self) -> int:
        """
        Delete token pointers whose access record no longer exists.

        Each pointer is WATCHed while its record is checked, so a pointer
        re-pointed by a concurrent save is left alone.

        Returns:
            Number of pointer keys removed
        """
        removed = 0

        for namespace in (Namespace.ACCESS_TOKEN, Namespace.REFRESH_TOKEN):
            pattern = self._keys.pattern(namespace)

            async with self._backend("purge orphaned tokens", pattern):
                async for key in self._redis.scan_iter(match=pattern, count=100):
                    removed += await self._purge_if_orphaned(key)

        if removed > 0:
            logger.info(f"Purged {removed} orphaned token pointers")

        return removed

    async def _purge_if_orphaned(self, key: Union[bytes, str]) -> int:
        async with self._redis.pipeline(transaction=True) as pipe:
            await pipe.watch(key)

            access_id = await pipe.get(key)
            if access_id is None:
                return 0

            access_key = self.make_key(Namespace.ACCESS, _as_str(access_id))
            if await pipe.exists(access_key):
                return 0

            pipe.multi()
            pipe.delete(key)
            try:
                deleted, = await pipe.execute()
            except WatchError:
                logger.debug(f"Pointer {_as_str(key)} changed during purge, skipped")
                return 0

        return deleted

    async def _resolve_access_id(self, namespace: Namespace, token: str, operation: str) -> str:
        key = self.make_key(namespace, token)

        async with self._backend(operation, key):
            access_id = await self._redis.get(key)

        if access_id is None:
            raise NotFoundError(
                f"no access data for {namespace.value}",
                details={'operation': operation, 'key': key},
            )

        return _as_str(access_id)

    async def _load_access_record(self, access_id: str, operation: str) -> AccessData:
        key = self.make_key(Namespace.ACCESS, access_id)

        async with self._backend(operation, key):
            payload = await self._redis.get(key)

        if payload is None:
            raise NotFoundError(
                f"access {access_id} not found",
                details={'operation': operation, 'key': key},
            )

        return self._decode(payload, AccessData, operation, key)

    async def _load_and_hydrate(self, namespace: Namespace, token: str, operation: str) -> AccessData:
        access_id = await self._resolve_access_id(namespace, token, operation)
        access = await self._load_access_record(access_id, operation)
        return await self._hydrate_clients(access, operation)

    async def _hydrate_clients(self, access: AccessData, operation: str) -> AccessData:
        """Replace embedded clients with the current registry entries."""
        if access.client is None:
            raise NotFoundError(
                "access data has no client",
                details={'operation': operation},
            )

        try:
            access.client = await self.get_client(access.client.get_id())

            if access.authorize_data is not None and access.authorize_data.client is not None:
                access.authorize_data.client = await self.get_client(
                    access.authorize_data.client.get_id()
                )
        except StorageError as e:
            logger.warning(f"Unable to load client for {operation}: {e}")
            e.details.setdefault('hydrating', operation)
            raise

        return access

    async def _remove_access_impl(self, namespace: Namespace, token: str, operation: str) -> None:
        access_id = await self._resolve_access_id(namespace, token, operation)
        access = await self._load_access_record(access_id, operation)

        # The given pointer is included in case the record disagrees with it.
        keys: List[str] = list(dict.fromkeys([
            self.make_key(Namespace.ACCESS, access_id),
            self.make_key(namespace, token),
            self.make_key(Namespace.ACCESS_TOKEN, access.access_token),
        ]))
        if access.refresh_token:
            refresh_key = self.make_key(Namespace.REFRESH_TOKEN, access.refresh_token)
            if refresh_key not in keys:
                keys.append(refresh_key)

        async with self._backend(operation, keys[0]):
            async with self._redis.pipeline(transaction=True) as pipe:
                for key in keys:
                    pipe.delete(key)
                await pipe.execute()

        logger.debug(f"Removed access {access_id} and {len(keys) - 1} token pointers")

    @asynccontextmanager
    async def _backend(self, operation: str, key: str) -> AsyncIterator[None]:
        """Translate Redis failures into BackendError with operation context."""
        if self._closed:
            raise StorageClosedError(details={'operation': operation, 'key': key})

        try:
            yield
        except RedisError as e:
            logger.warning(f"Redis error during {operation} ({key}): {e}")
            raise BackendError(
                f"failed to {operation}",
                details={'operation': operation, 'key': key},
                cause=e,
            ) from e

    def _encode(self, record: Record, operation: str, key: str) -> bytes:
        try:
            return self._codec.encode(record)
        except EncodeError as e:
            e.details.update(operation=operation, key=key)
            raise

    def _decode(self, payload: bytes, record_type: Type[R], operation: str, key: str) -> R:
        try:
            return self._codec.decode(payload, record_type)
        except StorageError as e:
            e.details.update(operation=operation, key=key)
            raise
