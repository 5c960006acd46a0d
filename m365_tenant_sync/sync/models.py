"""
Sync data models — desired/observed user records and per-row outcomes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from .fields import IDENTITY, LogicalField, map_headers
from .normalize import normalize_text


class Action(str, Enum):
    """What happened to a row."""
    CREATED = "Created"
    UPDATED = "Updated"
    NO_CHANGE = "NoChange"
    SKIPPED = "Skipped"
    ERROR = "Error"


@dataclass
class DesiredRecord:
    """
    One input row resolved to logical fields.
    `values` only holds fields whose column exists in the sheet; a blank
    cell is kept as "" so callers can tell blank from absent.
    """
    values: dict[str, str] = field(default_factory=dict)
    row: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_row(
        cls,
        row: dict[str, Any],
        header_map: Optional[dict[str, LogicalField]] = None,
    ) -> "DesiredRecord":
        if header_map is None:
            header_map = map_headers(row.keys())
        values = {
            f.name: normalize_text(row.get(header))
            for header, f in header_map.items()
        }
        return cls(values=values, row={k: normalize_text(v) for k, v in row.items()})

    @property
    def identity(self) -> str:
        return self.values.get(IDENTITY.name, "")

    def get(self, name: str) -> str:
        return self.values.get(name, "")

    def missing(self, fields: tuple[LogicalField, ...]) -> list[str]:
        """Names of the given fields that are absent or blank."""
        return [f.name for f in fields if not self.get(f.name)]


@dataclass
class ObservedRecord:
    """A user as currently held by the directory."""
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def id(self) -> str:
        return self.data.get("id") or ""

    def get(self, name: str) -> Any:
        return self.data.get(name)


@dataclass
class OutcomeRecord:
    """Result of processing one input row."""
    identity: str
    action: Action
    object_id: str = ""
    comment: str = ""
    row: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "identity": self.identity,
            "action": self.action.value,
            "object_id": self.object_id,
            "comment": self.comment,
        }


@dataclass
class ReconcileResult:
    """Reconciler verdict: action, Graph payload (create body or diff) and comment."""
    action: Action
    payload: dict[str, Any] = field(default_factory=dict)
    comment: str = ""


@dataclass
class BatchReport:
    """Append-only, ordered list of outcomes for one run."""
    headers: list[str] = field(default_factory=list)
    outcomes: list[OutcomeRecord] = field(default_factory=list)

    def add(self, outcome: OutcomeRecord) -> OutcomeRecord:
        self.outcomes.append(outcome)
        return outcome

    def counts(self) -> dict[str, int]:
        totals = {a.value: 0 for a in Action}
        for o in self.outcomes:
            totals[o.action.value] += 1
        return totals

    def __len__(self) -> int:
        return len(self.outcomes)
