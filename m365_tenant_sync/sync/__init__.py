"""User sync package — header resolution, normalization, reconciliation, batch runner."""

from .fields import LogicalField, map_headers, resolve
from .models import Action, BatchReport, DesiredRecord, ObservedRecord, OutcomeRecord, ReconcileResult
from .reconciler import reconcile
from .runner import UserSyncRunner

__all__ = [
    "LogicalField",
    "map_headers",
    "resolve",
    "Action",
    "BatchReport",
    "DesiredRecord",
    "ObservedRecord",
    "OutcomeRecord",
    "ReconcileResult",
    "reconcile",
    "UserSyncRunner",
]
