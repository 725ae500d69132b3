"""In-memory store and operation log."""

from gcpmock.store.memory import MemoryStore
from gcpmock.store.oplog import OperationLog

__all__ = ["MemoryStore", "OperationLog"]
