"""
JSON exporter — run summary: metadata, per-action counts, outcomes and the
write guardian's audit record.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from .. import __version__
from ..sync.models import BatchReport


def export_run_summary_json(
    path: Path,
    run_id: str,
    command: str,
    report: Optional[BatchReport] = None,
    audit: Optional[dict] = None,
    extra: Optional[dict[str, Any]] = None,
) -> Path:
    """
    Write the run summary next to the result sheet.

    Returns:
        Path to the created JSON file.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    payload: dict[str, Any] = {
        "metadata": {
            "tool": "M365 Tenant Sync",
            "version": __version__,
            "run_id": run_id,
            "command": command,
            "generated_utc": datetime.now(timezone.utc).isoformat(),
        },
    }
    if report is not None:
        payload["counts"] = report.counts()
        payload["rows"] = len(report)
        payload["outcomes"] = [o.to_dict() for o in report.outcomes]
    if extra:
        payload.update(extra)
    if audit:
        payload["audit"] = audit

    with open(path, "w", encoding="utf-8") as fh:
        json.dump(payload, fh, indent=2, default=str, ensure_ascii=False)

    return path
