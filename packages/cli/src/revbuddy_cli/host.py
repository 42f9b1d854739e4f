"""The host side of the engine: documents on disk, state in a store.

revbuddy_core knows nothing about files or persistence and revbuddy_store
knows nothing about sessions. This module bridges the two: it reads the
document, restores the RevisionState from the configured store, runs one
decision through the engine and saves the result straight away.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from rich.console import Console

from revbuddy_core.models import NormalizeError, SessionWithMeta
from revbuddy_core.revision import (
    Decision,
    ReplayResult,
    RevisionState,
    accept,
    accept_option,
    can_accept,
    ignore,
    replay,
)
from revbuddy_core.session import normalize_session
from revbuddy_core.utils.preview import offset_to_line_col
from revbuddy_store.base import BaseStore
from revbuddy_store.models import PersistedState

console = Console()
logger = logging.getLogger(__name__)


def document_id(path: str) -> str:
    """Stable identity for a document path, independent of how it was spelled."""
    return Path(os.path.normpath(path)).as_posix()


def state_to_persisted(raw_json: str, state: RevisionState, selected_index: int | None = None) -> PersistedState:
    """Map an engine RevisionState onto the stored record.

    The host owns this mapping — revbuddy_core has no store knowledge and
    revbuddy_store has no engine knowledge.
    """
    return PersistedState(
        raw_json=raw_json,
        accepted_indices=sorted(state.accepted_indices()),
        ignored_indices=sorted(state.ignored),
        accepted_option_by_index=dict(state.accepted_options),
        selected_index=selected_index,
    )


def persisted_to_state(record: PersistedState) -> RevisionState:
    return RevisionState.from_indices(
        accepted=record.accepted_indices,
        ignored=record.ignored_indices,
        accepted_options=record.accepted_option_by_index,
    )


class FileHost:
    """Documents are UTF-8 files; state goes to the configured store."""

    def __init__(self, store: BaseStore):
        self.store = store

    def read_document_text(self, doc_id: str) -> str:
        return Path(doc_id).read_text(encoding="utf-8")

    def write_document_text(self, doc_id: str, text: str) -> None:
        Path(doc_id).write_text(text, encoding="utf-8")

    def select_range(self, doc_id: str, start: int, end: int) -> None:
        """Best effort: a terminal can only point at the location."""
        try:
            text = self.read_document_text(doc_id)
        except (OSError, UnicodeDecodeError):
            return
        line, col = offset_to_line_col(text, start)
        end_line, end_col = offset_to_line_col(text, end)
        console.print(f"[bold]{doc_id}:{line}:{col}[/bold] [dim](to {end_line}:{end_col})[/dim]")

    def load_state(self, doc_id: str) -> PersistedState | None:
        return self.store.load_state(doc_id)

    def save_state(self, doc_id: str, state: PersistedState) -> None:
        self.store.save_state(doc_id, state)


@dataclass
class DocumentReview:
    """One opened document: its original text, its session and its decisions.

    Decisions for a document are applied one at a time through this object;
    each successful one is persisted before the call returns.
    """

    doc_id: str
    original_text: str
    raw_json: str
    doc: SessionWithMeta
    state: RevisionState
    host: FileHost
    selected_index: int | None = None

    def current(self) -> ReplayResult:
        return replay(self.original_text, self.doc, self.state)

    def effective_text(self, up_to: int | None = None) -> str:
        return replay(self.original_text, self.doc, self.state, up_to).text

    def can_accept(self, index: int) -> bool:
        return can_accept(self.state, index, self.doc.meta_for(index))

    def accept(self, index: int, option: int | None = None) -> Decision:
        if option is None:
            decision = accept(self.original_text, self.doc, self.state, index)
        else:
            decision = accept_option(self.original_text, self.doc, self.state, index, option)
        return self._commit(decision, index)

    def ignore(self, index: int) -> Decision:
        return self._commit(ignore(self.state, index, self.doc), index)

    def select(self, index: int) -> None:
        self.selected_index = index
        self.save()

    def save(self) -> None:
        self.host.save_state(self.doc_id, state_to_persisted(self.raw_json, self.state, self.selected_index))

    def _commit(self, decision: Decision, index: int) -> Decision:
        if decision.ok:
            self.state = decision.state
            self.selected_index = min(index + 1, len(self.doc.findings) - 1)
            self.save()
        else:
            logger.debug("Decision on finding %d refused: %s", index, decision.reason)
        return decision


class Workspace:
    """Keyed map from document identity to its open review.

    Reviews are created lazily on first open and restored from the store;
    there is no global state beyond this map.
    """

    def __init__(self, host: FileHost):
        self.host = host
        self._open: dict[str, DocumentReview] = {}

    def load_session(self, path: str, raw_json: str) -> DocumentReview | NormalizeError:
        """Start a fresh review of ``path`` from raw session JSON."""
        doc_id = document_id(path)
        result = normalize_session(raw_json)
        if isinstance(result, NormalizeError):
            return result
        review = DocumentReview(
            doc_id=doc_id,
            original_text=self.host.read_document_text(doc_id),
            raw_json=raw_json,
            doc=result,
            state=RevisionState(),
            host=self.host,
            selected_index=0 if result.findings else None,
        )
        review.save()
        self._open[doc_id] = review
        return review

    def open(self, path: str) -> DocumentReview | None:
        """Return the review for ``path``, restoring it from the store; None if there is none."""
        doc_id = document_id(path)
        if doc_id in self._open:
            return self._open[doc_id]

        record = self.host.load_state(doc_id)
        if record is None:
            return None
        result = normalize_session(record.raw_json)
        if isinstance(result, NormalizeError):
            logger.warning("Stored session for %s no longer parses: %s", doc_id, result.error)
            return None

        review = DocumentReview(
            doc_id=doc_id,
            original_text=self.host.read_document_text(doc_id),
            raw_json=record.raw_json,
            doc=result,
            state=persisted_to_state(record),
            host=self.host,
            selected_index=record.selected_index,
        )
        self._open[doc_id] = review
        return review

    def close(self, path: str, forget: bool = False) -> None:
        doc_id = document_id(path)
        self._open.pop(doc_id, None)
        if forget:
            self.host.store.delete_state(doc_id)
