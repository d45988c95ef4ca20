"""Single-table store abstractions."""

from .expressions import Condition, ItemUpdate, Put
from .table_storage import (
    ConditionalCheckFailedError,
    InMemoryTableStorage,
    RedisTableStorage,
    StorageError,
    TableStorage,
    TransactionCanceledError,
    get_table_storage,
)

__all__ = [
    "Condition",
    "ItemUpdate",
    "Put",
    "TableStorage",
    "InMemoryTableStorage",
    "RedisTableStorage",
    "StorageError",
    "ConditionalCheckFailedError",
    "TransactionCanceledError",
    "get_table_storage",
]
