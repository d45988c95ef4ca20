"""Single-table storage interface and implementations.

One logical table with a composite primary key (``PK`` partition, ``SK`` sort)
and one secondary index over ``GSI1PK``/``GSI1SK``. Writes are conditional:
a failed predicate is reported to the caller and never retried here.
"""

from __future__ import annotations

import asyncio
import copy
import json
from abc import ABC, abstractmethod
from typing import Any

from loguru import logger
from redis.exceptions import RedisError, WatchError

from src.user_service.core.storage.expressions import (
    Condition,
    Item,
    ItemUpdate,
    Put,
    apply_update,
    evaluate_condition,
)

INDEX_PK = "GSI1PK"
INDEX_SK = "GSI1SK"

Key = dict[str, str]


class StorageError(Exception):
    """Base class for table storage failures."""


class ConditionalCheckFailedError(StorageError):
    """A conditional single-item write found its predicate false."""


class TransactionCanceledError(StorageError):
    """A transactional write was rejected; nothing was written.

    ``reasons`` has one entry per put, in request order: ``"None"`` for puts
    whose condition held, ``"ConditionalCheckFailed"`` for those that did not,
    or ``"TransactionConflict"`` when a concurrent writer interfered.
    """

    def __init__(self, reasons: list[str]):
        super().__init__(f"Transaction cancelled: {reasons}")
        self.reasons = reasons


class StorageUnavailableError(StorageError):
    """The backing store could not be reached."""


def _split_key(key: Key) -> tuple[str, str]:
    try:
        return key["PK"], key["SK"]
    except KeyError as e:
        raise ValueError(f"Key must contain PK and SK, got {sorted(key)}") from e


def _check_distinct(puts: list[Put]) -> None:
    keys = [put.key for put in puts]
    if len(set(keys)) != len(keys):
        raise ValueError("Transaction contains more than one put for the same key")


class TableStorage(ABC):
    """Abstract interface for the single-table store."""

    @abstractmethod
    async def get(self, key: Key) -> Item | None:
        """Fetch one item.

        Args:
            key: Mapping with ``PK`` and ``SK``

        Returns:
            The stored item or None if absent
        """

    @abstractmethod
    async def update(
        self, key: Key, update: ItemUpdate, condition: Condition | None = None
    ) -> Item:
        """Apply ``update`` to the item at ``key`` if ``condition`` holds.

        Returns:
            The complete item after the update

        Raises:
            ConditionalCheckFailedError: the condition did not hold
        """

    @abstractmethod
    async def transact_write(self, puts: list[Put]) -> None:
        """Write every put or none of them.

        Raises:
            TransactionCanceledError: at least one condition did not hold
        """

    @abstractmethod
    async def query_index(self, index_pk: str, limit: int | None = None) -> list[Item]:
        """Items whose ``GSI1PK`` equals ``index_pk``, ordered by ``GSI1SK``."""

    @abstractmethod
    async def query_partition(self, pk: str, sk_prefix: str = "") -> list[Item]:
        """Items in partition ``pk`` whose sort key starts with ``sk_prefix``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if storage backend is available."""


class InMemoryTableStorage(TableStorage):
    """Dict-backed table with the same conditional semantics as Redis."""

    def __init__(self):
        self._items: dict[tuple[str, str], Item] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: Key) -> Item | None:
        item = self._items.get(_split_key(key))
        return copy.deepcopy(item) if item is not None else None

    async def update(
        self, key: Key, update: ItemUpdate, condition: Condition | None = None
    ) -> Item:
        pk, sk = _split_key(key)
        async with self._lock:
            current = self._items.get((pk, sk))
            if not evaluate_condition(condition, current):
                raise ConditionalCheckFailedError(f"Condition failed for {pk}/{sk}")

            new_item = apply_update(current or {"PK": pk, "SK": sk}, update)
            self._items[(pk, sk)] = new_item
            return copy.deepcopy(new_item)

    async def transact_write(self, puts: list[Put]) -> None:
        _check_distinct(puts)
        async with self._lock:
            reasons = [
                "None"
                if evaluate_condition(put.condition, self._items.get(put.key))
                else "ConditionalCheckFailed"
                for put in puts
            ]
            if any(reason != "None" for reason in reasons):
                raise TransactionCanceledError(reasons)

            for put in puts:
                self._items[put.key] = copy.deepcopy(put.item)

    async def query_index(self, index_pk: str, limit: int | None = None) -> list[Item]:
        matches = sorted(
            (item for item in self._items.values() if item.get(INDEX_PK) == index_pk),
            key=lambda item: (item.get(INDEX_SK, ""), item["PK"], item["SK"]),
        )
        if limit is not None:
            matches = matches[:limit]
        return [copy.deepcopy(item) for item in matches]

    async def query_partition(self, pk: str, sk_prefix: str = "") -> list[Item]:
        matches = sorted(
            (
                item
                for (item_pk, item_sk), item in self._items.items()
                if item_pk == pk and item_sk.startswith(sk_prefix)
            ),
            key=lambda item: item["SK"],
        )
        return [copy.deepcopy(item) for item in matches]

    def is_available(self) -> bool:
        """In-memory storage is always available."""
        return True


class RedisTableStorage(TableStorage):
    """Redis-backed table.

    Each partition is a hash ``<table>:<PK>`` mapping sort keys to JSON items.
    The secondary index is a hash per index partition,
    ``<table>:<index>:<GSI1PK>``, mapping ``[PK, SK]`` to the item's ``GSI1SK``.
    Conditional writes WATCH every partition they touch, check their
    conditions, and commit in one MULTI/EXEC.
    """

    def __init__(self, redis_client, table_name: str, index_name: str = "GSI1"):
        self._redis = redis_client
        self._table = table_name
        self._index = index_name
        self._available = True

    def _partition_key(self, pk: str) -> str:
        return f"{self._table}:{pk}"

    def _index_key(self, index_pk: str) -> str:
        return f"{self._table}:{self._index}:{index_pk}"

    @staticmethod
    def _decode(raw: Any) -> Item | None:
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return json.loads(raw)

    @staticmethod
    def _encode(item: Item) -> str:
        return json.dumps(item, separators=(",", ":"), sort_keys=True)

    def _queue_index_changes(self, pipe, old: Item | None, new: Item) -> None:
        member = json.dumps([new["PK"], new["SK"]])
        if old is not None and old.get(INDEX_PK) and old.get(INDEX_PK) != new.get(INDEX_PK):
            pipe.hdel(self._index_key(old[INDEX_PK]), member)
        if new.get(INDEX_PK):
            pipe.hset(self._index_key(new[INDEX_PK]), member, new.get(INDEX_SK, ""))

    async def get(self, key: Key) -> Item | None:
        pk, sk = _split_key(key)
        try:
            raw = await self._redis.hget(self._partition_key(pk), sk)
            self._available = True
        except RedisError as e:
            self._available = False
            raise StorageUnavailableError(f"Redis get failed: {e}") from e
        return self._decode(raw)

    async def update(
        self, key: Key, update: ItemUpdate, condition: Condition | None = None
    ) -> Item:
        pk, sk = _split_key(key)
        partition = self._partition_key(pk)
        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                await pipe.watch(partition)
                current = self._decode(await pipe.hget(partition, sk))
                if not evaluate_condition(condition, current):
                    raise ConditionalCheckFailedError(f"Condition failed for {pk}/{sk}")

                new_item = apply_update(current or {"PK": pk, "SK": sk}, update)
                pipe.multi()
                pipe.hset(partition, sk, self._encode(new_item))
                self._queue_index_changes(pipe, current, new_item)
                await pipe.execute()
            self._available = True
            return new_item
        except WatchError as e:
            logger.bind(pk=pk, sk=sk).debug("Concurrent write detected during update")
            raise ConditionalCheckFailedError(
                f"Concurrent modification of {pk}/{sk}"
            ) from e
        except RedisError as e:
            self._available = False
            raise StorageUnavailableError(f"Redis update failed: {e}") from e

    async def transact_write(self, puts: list[Put]) -> None:
        _check_distinct(puts)
        partitions = sorted({self._partition_key(put.key[0]) for put in puts})
        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                await pipe.watch(*partitions)
                current_items = [
                    self._decode(await pipe.hget(self._partition_key(pk), sk))
                    for pk, sk in (put.key for put in puts)
                ]
                reasons = [
                    "None" if evaluate_condition(put.condition, current) else "ConditionalCheckFailed"
                    for put, current in zip(puts, current_items, strict=True)
                ]
                if any(reason != "None" for reason in reasons):
                    raise TransactionCanceledError(reasons)

                pipe.multi()
                for put, current in zip(puts, current_items, strict=True):
                    pk, sk = put.key
                    pipe.hset(self._partition_key(pk), sk, self._encode(put.item))
                    self._queue_index_changes(pipe, current, put.item)
                await pipe.execute()
            self._available = True
        except WatchError as e:
            logger.bind(partitions=partitions).debug(
                "Concurrent write detected during transaction"
            )
            raise TransactionCanceledError(["TransactionConflict"] * len(puts)) from e
        except RedisError as e:
            self._available = False
            raise StorageUnavailableError(f"Redis transaction failed: {e}") from e

    async def query_index(self, index_pk: str, limit: int | None = None) -> list[Item]:
        try:
            entries = await self._redis.hgetall(self._index_key(index_pk))
            ordered = sorted(
                (index_sk, tuple(json.loads(member))) for member, index_sk in entries.items()
            )
            if limit is not None:
                ordered = ordered[:limit]

            items = []
            for _, (pk, sk) in ordered:
                item = self._decode(await self._redis.hget(self._partition_key(pk), sk))
                if item is not None:
                    items.append(item)
            self._available = True
            return items
        except RedisError as e:
            self._available = False
            raise StorageUnavailableError(f"Redis index query failed: {e}") from e

    async def query_partition(self, pk: str, sk_prefix: str = "") -> list[Item]:
        try:
            entries = await self._redis.hgetall(self._partition_key(pk))
            self._available = True
        except RedisError as e:
            self._available = False
            raise StorageUnavailableError(f"Redis partition query failed: {e}") from e

        items = (self._decode(raw) for raw in entries.values())
        return sorted(
            (item for item in items if item["SK"].startswith(sk_prefix)),
            key=lambda item: item["SK"],
        )

    def is_available(self) -> bool:
        return self._available

    async def ping(self) -> bool:
        """Test Redis connection health."""
        try:
            await self._redis.ping()
            self._available = True
            return True
        except RedisError:
            self._available = False
            return False


# Global storage instance
_storage: TableStorage | None = None


async def _create_storage(redis_client=None) -> TableStorage:
    """Build the configured backend, falling back to memory outside production."""
    from src.user_service.runtime.context import get_config

    config = get_config()
    if config.storage.backend == "memory":
        logger.info("Table storage: in-memory")
        return InMemoryTableStorage()

    if redis_client is not None:
        storage = RedisTableStorage(
            redis_client, config.storage.table_name, config.storage.email_index_name
        )
        if await storage.ping():
            logger.info("Table storage: Redis connected (table {})", config.storage.table_name)
            return storage

    if config.app.environment == "production":
        raise StorageUnavailableError("Redis table storage unavailable in production")

    logger.warning("Redis unavailable, using in-memory table storage")
    return InMemoryTableStorage()


async def get_table_storage(redis_client=None) -> TableStorage:
    """Get the configured table storage instance."""
    global _storage

    if _storage is None:
        _storage = await _create_storage(redis_client)

    return _storage


def _reset_storage() -> None:
    """Reset storage instance (for testing)."""
    global _storage
    _storage = None
