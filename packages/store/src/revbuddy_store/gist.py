"""GistStore — review state kept in a private GitHub Gist.

Useful when the same documents are reviewed from several machines: a Gist
needs no infrastructure and is reachable from anywhere a GitHub token is.

Data format: a single JSON file named `revbuddy_state.json` inside the Gist,
holding one JSON object keyed by document path whose values are the
serialized PersistedState records.
"""

from __future__ import annotations

import json
import logging

from revbuddy_store.base import BaseStore
from revbuddy_store.models import PersistedState

logger = logging.getLogger(__name__)

GIST_FILENAME = "revbuddy_state.json"


class GistStore(BaseStore):
    """Stores every document's state in one Gist file.

    Each save() reads the whole file, replaces one entry and writes it back.
    Network failures are logged and never abort the user's action: the
    decision itself has already been made locally.
    """

    def __init__(self, gist_id: str, token: str):
        try:
            from github import Github
        except ImportError:
            raise ImportError("PyGithub is required for GistStore. Install it with: pip install PyGithub")
        self._gist_id = gist_id
        self._gh = Github(token)

    def _get_gist(self):
        return self._gh.get_gist(self._gist_id)

    def load_state(self, doc_id: str) -> PersistedState | None:
        try:
            records = self._read_records(self._get_gist())
        except Exception as e:
            logger.warning("GistStore.load_state() failed (%s): %s", type(e).__name__, e)
            return None
        return PersistedState.from_dict(records.get(doc_id))

    def save_state(self, doc_id: str, state: PersistedState) -> None:
        try:
            gist = self._get_gist()
            records = self._read_records(gist)
            records[doc_id] = state.to_dict()
            self._write_records(gist, records)
        except Exception as e:
            logger.warning("GistStore.save_state() failed (%s): %s", type(e).__name__, e)

    def delete_state(self, doc_id: str) -> None:
        try:
            gist = self._get_gist()
            records = self._read_records(gist)
            if records.pop(doc_id, None) is not None:
                self._write_records(gist, records)
        except Exception as e:
            logger.warning("GistStore.delete_state() failed (%s): %s", type(e).__name__, e)

    def list_documents(self) -> list[str]:
        try:
            return sorted(self._read_records(self._get_gist()))
        except Exception as e:
            logger.warning("GistStore.list_documents() failed: %s", e)
            return []

    def _read_records(self, gist) -> dict:
        """Read the current JSON object from the Gist file, or return {}."""
        file_obj = gist.files.get(GIST_FILENAME)
        if file_obj is None:
            return {}
        try:
            data = json.loads(file_obj.content)
        except (json.JSONDecodeError, AttributeError, TypeError):
            return {}
        return data if isinstance(data, dict) else {}

    @staticmethod
    def _write_records(gist, records: dict) -> None:
        from github import InputFileContent

        gist.edit(files={GIST_FILENAME: InputFileContent(json.dumps(records, indent=2, sort_keys=True))})
