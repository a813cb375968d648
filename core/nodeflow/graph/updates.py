"""Per-node update delivery.

The engine never mutates Node objects. It reports status transitions and
kind-specific fields (``result``, ``condition_met``, ``streaming_text``, ...)
through a sink supplied by the caller. A sink is either a plain callable
``on_update(node_id, fields)`` or an object implementing ``NodeUpdateSink``;
both may be sync or async.
"""

import inspect
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

UpdateCallback = Callable[[str, dict[str, Any]], Awaitable[None] | None]


@runtime_checkable
class NodeUpdateSink(Protocol):
    def update(self, node_id: str, fields: dict[str, Any]) -> Awaitable[None] | None: ...

    def update_many(self, updates: dict[str, dict[str, Any]]) -> Awaitable[None] | None: ...


class UpdateDispatcher:
    """Normalises a callable or ``NodeUpdateSink`` into one async interface."""

    def __init__(self, sink: NodeUpdateSink | UpdateCallback | None = None):
        self._sink = sink

    async def update(self, node_id: str, **fields: Any) -> None:
        if self._sink is None:
            return
        if isinstance(self._sink, NodeUpdateSink):
            result = self._sink.update(node_id, fields)
        else:
            result = self._sink(node_id, fields)
        if inspect.isawaitable(result):
            await result

    async def update_many(self, updates: dict[str, dict[str, Any]]) -> None:
        """Deliver several updates in one batch where the sink supports it."""
        if self._sink is None or not updates:
            return
        if isinstance(self._sink, NodeUpdateSink):
            result = self._sink.update_many(updates)
            if inspect.isawaitable(result):
                await result
            return
        for node_id, fields in updates.items():
            await self.update(node_id, **fields)


@dataclass
class UpdateRecord:
    node_id: str
    fields: dict[str, Any]
    timestamp: float = field(default_factory=time.time)


class NodeStateTracker:
    """
    In-memory sink that folds updates into per-node state.

    Useful for tests and headless runs:

        tracker = NodeStateTracker()
        await executor.execute(nodes, edges, on_update=tracker)
        tracker.state["stop-1"]["status"]  # "success"
    """

    def __init__(self) -> None:
        self.state: dict[str, dict[str, Any]] = {}
        self.history: list[UpdateRecord] = []
        self.batches: int = 0

    def update(self, node_id: str, fields: dict[str, Any]) -> None:
        self.state.setdefault(node_id, {}).update(fields)
        self.history.append(UpdateRecord(node_id=node_id, fields=dict(fields)))

    def update_many(self, updates: dict[str, dict[str, Any]]) -> None:
        self.batches += 1
        for node_id, fields in updates.items():
            self.update(node_id, fields)

    def status_of(self, node_id: str) -> str | None:
        return self.state.get(node_id, {}).get("status")

    def statuses(self, node_id: str) -> list[str]:
        """Every status this node passed through, in order."""
        return [
            str(r.fields["status"])
            for r in self.history
            if r.node_id == node_id and "status" in r.fields
        ]

    def fields_of(self, node_id: str) -> dict[str, Any]:
        return dict(self.state.get(node_id, {}))
