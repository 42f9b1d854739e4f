"""Abstract store interface.

Any storage backend (in-memory, SQLite, Gist) implements this interface. The
CLI depends on BaseStore — not on a concrete backend — so backends are
swappable without touching CLI code. Documents are identified by their path.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from revbuddy_store.models import PersistedState


class BaseStore(ABC):
    """Pluggable persistence layer for per-document review state."""

    @abstractmethod
    def load_state(self, doc_id: str) -> PersistedState | None:
        """Return the stored state for a document, or None if there is none."""

    @abstractmethod
    def save_state(self, doc_id: str, state: PersistedState) -> None:
        """Persist the state for a document, replacing any previous one."""

    @abstractmethod
    def delete_state(self, doc_id: str) -> None:
        """Forget a document. Deleting an unknown document is not an error."""

    @abstractmethod
    def list_documents(self) -> list[str]:
        """Return the ids of all documents with stored state, sorted."""

    def close(self) -> None:
        """Release any resources held by the store (connections, file handles).

        Optional — subclasses that need cleanup should override this.
        Default is a no-op so callers can always call close() safely.
        """
