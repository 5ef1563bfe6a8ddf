# Lumina Engine - Cache
"""
Per-node output cache owned by the engine.
"""

from __future__ import annotations

from typing import Any

ERROR_KEY = 'error'


class NodeCache:
    """Last output of every evaluated node.

    An entry maps output socket ids to values, or is ``{'error': message}``
    after a failed evaluation. Entries live until the node is recomputed or
    removed.
    """

    def __init__(self):
        self._entries: dict[str, dict[str, Any]] = {}

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, node_id: str) -> dict[str, Any] | None:
        return self._entries.get(node_id)

    def has(self, node_id: str) -> bool:
        return node_id in self._entries

    def is_error(self, node_id: str) -> bool:
        entry = self._entries.get(node_id)
        return entry is not None and set(entry) == {ERROR_KEY}

    def store(self, node_id: str, entry: dict[str, Any]) -> None:
        self._entries[node_id] = entry

    def store_error(self, node_id: str, message: str) -> None:
        self._entries[node_id] = {ERROR_KEY: message}

    def evict(self, node_id: str) -> dict[str, Any] | None:
        return self._entries.pop(node_id, None)

    def clear(self) -> None:
        self._entries.clear()

    def snapshot(self) -> dict[str, dict[str, Any]]:
        """Shallow copy for readers outside the engine (stale-tolerant)."""
        return {node_id: dict(entry) for node_id, entry in self._entries.items()}
