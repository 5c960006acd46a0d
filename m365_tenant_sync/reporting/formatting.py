"""
Shared output helpers — versioned file names, text-safe cells, outcome rows.
"""

from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Iterable, Optional

from ..sync.fields import PASSWORD, resolve
from ..sync.models import BatchReport, OutcomeRecord

OBJECT_ID_COLUMN = "ObjectId"
COMMENT_COLUMN = "Comment"
TEXT_MARKER = "'"
MASK = "********"
MAX_VERSIONS = 99


def versioned_output_path(
    output_dir: Path,
    prefix: str,
    extension: str,
    today: Optional[date] = None,
    companions: Iterable[str] = (),
) -> Path:
    """
    {prefix}_{YYYY-MM-DD}_{NN}.{ext} with the first two-digit suffix not on disk.

    `companions` are extensions of files written next to it under the same
    stem (e.g. the JSON summary); the slot is only taken when they are free too.
    """
    today = today or date.today()
    extensions = [e.lstrip(".") for e in (extension, *companions)]
    for n in range(1, MAX_VERSIONS + 1):
        stem = output_dir / f"{prefix}_{today.isoformat()}_{n:02d}"
        if not any(stem.with_name(f"{stem.name}.{e}").exists() for e in extensions):
            return stem.with_name(f"{stem.name}.{extensions[0]}")
    raise FileExistsError(
        f"All {MAX_VERSIONS} output slots for {prefix} on {today.isoformat()} are taken in {output_dir}"
    )


def protect_cell(value: Optional[str]) -> str:
    """
    Prefix values a spreadsheet would reinterpret (leading zero, leading plus,
    any leading character that is not a letter or digit) with a literal marker.
    """
    if value is None:
        return ""
    text = str(value)
    if not text:
        return text
    first = text[0]
    if first == "0" or first == "+" or not first.isalnum():
        return TEXT_MARKER + text
    return text


def outcome_headers(report: BatchReport) -> list[str]:
    headers = list(report.headers)
    for column in (OBJECT_ID_COLUMN, COMMENT_COLUMN):
        if column not in headers:
            headers.append(column)
    return headers


def outcome_comment(outcome: OutcomeRecord) -> str:
    label = outcome.action.value
    if not outcome.comment:
        return label
    if outcome.comment.startswith(label):
        return outcome.comment
    return f"{label}: {outcome.comment}"


def outcome_rows(report: BatchReport) -> list[list[str]]:
    """
    One row per outcome: the input columns, then ObjectId and Comment.
    Every value is text-protected; credential cells are masked afterwards
    so the mask is written as is.
    """
    headers = outcome_headers(report)
    masked = {i for i, h in enumerate(headers) if h in report.headers and resolve(h) is PASSWORD}
    rows = []
    for outcome in report.outcomes:
        values = dict(outcome.row)
        values[OBJECT_ID_COLUMN] = outcome.object_id
        values[COMMENT_COLUMN] = outcome_comment(outcome)
        cells = [protect_cell(values.get(h, "")) for h in headers]
        for i in masked:
            if cells[i]:
                cells[i] = MASK
        rows.append(cells)
    return rows
