"""Persisted per-document review state.

Decoupled from revbuddy_core so the store layer can be used independently
and the engine has no knowledge of persistence concerns. The host maps
between PersistedState and the engine's RevisionState.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class PersistedState:
    """Everything needed to re-derive a document's review after a restart.

    ``accepted_indices`` lists option-accepted findings too, with the chosen
    option recorded in ``accepted_option_by_index``.
    """

    raw_json: str
    accepted_indices: list[int] = field(default_factory=list)
    ignored_indices: list[int] = field(default_factory=list)
    accepted_option_by_index: dict[int, int] = field(default_factory=dict)
    selected_index: int | None = None

    def to_dict(self) -> dict:
        d: dict = {
            "rawJson": self.raw_json,
            "acceptedIndices": sorted(self.accepted_indices),
            "ignoredIndices": sorted(self.ignored_indices),
        }
        if self.accepted_option_by_index:
            # JSON object keys are strings.
            d["acceptedOptionByIndex"] = {str(k): v for k, v in sorted(self.accepted_option_by_index.items())}
        if self.selected_index is not None:
            d["selectedFindingIndex"] = self.selected_index
        return d

    @classmethod
    def from_dict(cls, d) -> PersistedState | None:
        """Rebuild a state from its stored form; None for records that are not one."""
        if not isinstance(d, dict):
            return None
        raw_json = d.get("rawJson")
        accepted = d.get("acceptedIndices")
        ignored = d.get("ignoredIndices")
        if not isinstance(raw_json, str) or not isinstance(accepted, list) or not isinstance(ignored, list):
            return None

        options: dict[int, int] = {}
        raw_options = d.get("acceptedOptionByIndex")
        if isinstance(raw_options, dict):
            for key, value in raw_options.items():
                try:
                    index = int(key)
                except (TypeError, ValueError):
                    continue
                if isinstance(value, int) and not isinstance(value, bool):
                    options[index] = value

        selected = d.get("selectedFindingIndex")
        return cls(
            raw_json=raw_json,
            accepted_indices=[i for i in accepted if isinstance(i, int) and not isinstance(i, bool)],
            ignored_indices=[i for i in ignored if isinstance(i, int) and not isinstance(i, bool)],
            accepted_option_by_index=options,
            selected_index=selected if isinstance(selected, int) and not isinstance(selected, bool) else None,
        )
