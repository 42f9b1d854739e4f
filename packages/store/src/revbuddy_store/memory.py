"""In-memory store — state lives as long as the process.

Useful when the engine is embedded in a long-running host that persists
elsewhere, and in tests. Records are kept in their serialized form so a
load always returns a fresh, independent PersistedState.
"""

from __future__ import annotations

from revbuddy_store.base import BaseStore
from revbuddy_store.models import PersistedState


class MemoryStore(BaseStore):
    def __init__(self):
        self._records: dict[str, dict] = {}

    def load_state(self, doc_id: str) -> PersistedState | None:
        record = self._records.get(doc_id)
        return PersistedState.from_dict(record) if record is not None else None

    def save_state(self, doc_id: str, state: PersistedState) -> None:
        self._records[doc_id] = state.to_dict()

    def delete_state(self, doc_id: str) -> None:
        self._records.pop(doc_id, None)

    def list_documents(self) -> list[str]:
        return sorted(self._records)
