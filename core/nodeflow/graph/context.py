"""
Execution Context - The mutable state of one workflow run.

Created by the scheduler at run start and written only by it. Operations
read upstream results from it and may use its run-scoped cache; they never
write results or errors directly.
"""

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class RunStatus(StrEnum):
    RUNNING = "running"
    COMPLETED = "completed"  # every node succeeded
    PARTIAL = "partial"  # at least one node failed
    CANCELLED = "cancelled"
    FAILED = "failed"  # aborted by the scheduler (deadlock)


class CancellationToken:
    """
    Cooperative cancellation signal shared between the caller and a run.

    The scheduler checks it at each wave boundary. Long-running operations
    (HTTP, streaming) race against ``wait()`` so they can stop early.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()


class RunCache:
    """
    Key/value store scoped to a single run.

    Concurrent get/set of the same key from nodes in one wave is racy;
    the last writer wins.
    """

    def __init__(self) -> None:
        self._entries: dict[str, Any] = {}

    def get(self, key: str) -> tuple[bool, Any]:
        """Return (hit, value)."""
        if key in self._entries:
            return True, self._entries[key]
        return False, None

    def set(self, key: str, value: Any) -> None:
        self._entries[key] = value

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


@dataclass
class ExecutionContext:
    """
    Results and errors of one run.

    ``node_results`` and ``errors`` are write-once per node id; use
    ``record_result`` / ``record_error`` rather than mutating them.
    """

    node_results: dict[str, Any] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)
    start_time: float = field(default_factory=time.time)
    cancellation: CancellationToken = field(default_factory=CancellationToken)
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    cache: RunCache = field(default_factory=RunCache)
    waves: list[list[str]] = field(default_factory=list)
    status: RunStatus = RunStatus.RUNNING
    end_time: float | None = None

    def record_result(self, node_id: str, value: Any) -> None:
        self._check_unwritten(node_id)
        self.node_results[node_id] = value

    def record_error(self, node_id: str, message: str) -> None:
        self._check_unwritten(node_id)
        self.errors[node_id] = message

    def _check_unwritten(self, node_id: str) -> None:
        if node_id in self.node_results or node_id in self.errors:
            raise RuntimeError(f"Outcome for node '{node_id}' was already recorded")

    def has_result(self, node_id: str) -> bool:
        return node_id in self.node_results

    @property
    def duration_ms(self) -> int:
        end = self.end_time if self.end_time is not None else time.time()
        return int((end - self.start_time) * 1000)

    def finish(self, status: RunStatus | None = None) -> None:
        """Stamp the end time and settle the run status."""
        self.end_time = time.time()
        if status is not None:
            self.status = status
        else:
            self.status = RunStatus.PARTIAL if self.errors else RunStatus.COMPLETED

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "status": str(self.status),
            "duration_ms": self.duration_ms,
            "waves": [list(w) for w in self.waves],
            "results": dict(self.node_results),
            "errors": dict(self.errors),
        }
