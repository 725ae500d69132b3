"""Operation log for Cloud SQL Admin mutations.

Every successful instance, database, or user mutation appends exactly one
completed ``sql#operation``. The log is not thread-safe on its own; the
owning ``MemoryStore`` calls it while holding its write lock.
"""

from __future__ import annotations

from datetime import datetime

from gcpmock.models.sqladmin import Operation


class OperationLog:
    """Ordered record of completed operations, retained for the process lifetime.

    Attributes:
        base_url: Prefix for ``selfLink`` and ``targetLink``.
        project: Project id reported as ``targetProject``.
    """

    def __init__(self, base_url: str, project: str) -> None:
        self.base_url = base_url
        self.project = project
        self._ops: dict[str, Operation] = {}

    def __len__(self) -> int:
        return len(self._ops)

    def record(self, op_type: str, target_id: str, now: datetime, nanos: int) -> Operation:
        """Append a completed operation and return a copy of it.

        Args:
            op_type: Operation type, e.g. ``CREATE_DATABASE``.
            target_id: Name of the instance the operation acted on.
            now: Timestamp used for insert, start, and end time.
            nanos: Unique nanosecond value used to build the operation name.

        Returns:
            The stored operation (copy).
        """
        name = f"operation-{nanos}"
        prefix = f"{self.base_url}/sql/v1beta4/projects/{self.project}"
        op = Operation(
            target_link=f"{prefix}/instances/{target_id}",
            status="DONE",
            insert_time=now,
            start_time=now,
            end_time=now,
            operation_type=op_type,
            name=name,
            target_id=target_id,
            self_link=f"{prefix}/operations/{name}",
            target_project=self.project,
        )
        self._ops[name] = op
        return op.model_copy(deep=True)

    def get(self, name: str) -> Operation | None:
        op = self._ops.get(name)
        return op.model_copy(deep=True) if op is not None else None

    def list_operations(self, instance: str | None = None) -> list[Operation]:
        """Return operations newest first, optionally only those targeting *instance*.

        Names embed a strictly increasing counter, so insertion order is
        insert-time order even when two operations share a timestamp.
        """
        ops = [
            op.model_copy(deep=True)
            for op in reversed(self._ops.values())
            if not instance or op.target_id == instance
        ]
        return ops

    def clear(self) -> None:
        self._ops.clear()
