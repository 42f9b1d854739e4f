"""SQLiteStore — local file-based store, the default for the CLI.

Every CLI invocation is a separate process, so review progress has to live
somewhere on disk between `revbuddy accept` calls. SQLite ships with Python
and gives atomic per-document upserts.

Schema:
  documents — one row per document path holding the serialized state.
"""

from __future__ import annotations

import json
import logging
import sqlite3

from revbuddy_store.base import BaseStore
from revbuddy_store.models import PersistedState

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS documents (
    doc_id      TEXT PRIMARY KEY,
    state_json  TEXT NOT NULL,
    updated_at  TEXT DEFAULT CURRENT_TIMESTAMP
);
"""


class SQLiteStore(BaseStore):
    """Stores review state in a local SQLite database file.

    The database file path defaults to `.revbuddy.db` in the current working
    directory. Configure via .revbuddy.yml: `store_path: /path/to/revbuddy.db`.
    """

    def __init__(self, db_path: str = ".revbuddy.db"):
        self._conn = sqlite3.connect(db_path)
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(_SCHEMA)
        self._conn.commit()

    def load_state(self, doc_id: str) -> PersistedState | None:
        row = self._conn.execute("SELECT state_json FROM documents WHERE doc_id=?", (doc_id,)).fetchone()
        if row is None:
            return None
        try:
            data = json.loads(row["state_json"])
        except json.JSONDecodeError:
            logger.warning("Ignoring unreadable stored state for %s", doc_id)
            return None
        return PersistedState.from_dict(data)

    def save_state(self, doc_id: str, state: PersistedState) -> None:
        self._conn.execute(
            """
            INSERT INTO documents (doc_id, state_json, updated_at)
            VALUES (?, ?, CURRENT_TIMESTAMP)
            ON CONFLICT(doc_id) DO UPDATE SET
              state_json=excluded.state_json,
              updated_at=excluded.updated_at
            """,
            (doc_id, json.dumps(state.to_dict())),
        )
        self._conn.commit()

    def delete_state(self, doc_id: str) -> None:
        self._conn.execute("DELETE FROM documents WHERE doc_id=?", (doc_id,))
        self._conn.commit()

    def list_documents(self) -> list[str]:
        rows = self._conn.execute("SELECT doc_id FROM documents ORDER BY doc_id").fetchall()
        return [r["doc_id"] for r in rows]

    def close(self) -> None:
        self._conn.close()
