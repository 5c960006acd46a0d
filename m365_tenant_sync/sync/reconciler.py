"""
Record reconciler — computes the minimal change that moves a directory user
toward the row that describes it.

Pure computation: the caller performs the create/update the verdict asks for.
"""

from __future__ import annotations

from typing import Any, Optional

from ..config import SyncConfig
from .fields import (
    DISPLAY_NAME,
    FLAG,
    GIVEN_NAME,
    IDENTITY,
    MAIL_NICKNAME,
    MANDATORY_FIELDS,
    OPTIONAL_FIELDS,
    PASSWORD,
    SURNAME,
    USER_TYPE,
    LogicalField,
)
from .models import Action, DesiredRecord, ObservedRecord, ReconcileResult
from .normalize import comparison_key, normalize_value, parse_flag, to_graph_value

# Fields an update may change. Identity, credential and account type are excluded.
UPDATABLE_FIELDS: tuple[LogicalField, ...] = (
    DISPLAY_NAME, GIVEN_NAME, SURNAME, MAIL_NICKNAME,
) + OPTIONAL_FIELDS


def reconcile(
    desired: DesiredRecord,
    observed: Optional[ObservedRecord],
    config: Optional[SyncConfig] = None,
) -> ReconcileResult:
    """Decide Created / Updated / NoChange / Skipped for one row."""
    config = config or SyncConfig()

    if observed is None:
        missing = desired.missing(MANDATORY_FIELDS)
        if missing:
            return ReconcileResult(
                Action.SKIPPED,
                comment=f"Missing mandatory field(s): {', '.join(missing)}",
            )
        return ReconcileResult(
            Action.CREATED,
            payload=build_create_payload(desired, config),
            comment="Created",
        )

    diff = compute_diff(desired, observed, config)
    if not diff:
        return ReconcileResult(Action.NO_CHANGE, comment="No changes")
    return ReconcileResult(
        Action.UPDATED,
        payload=diff,
        comment=f"Updated: {', '.join(diff)}",
    )


def build_create_payload(desired: DesiredRecord, config: SyncConfig) -> dict[str, Any]:
    """Graph POST /users body. Optional attributes only when non-blank."""
    payload: dict[str, Any] = {
        IDENTITY.name: desired.identity,
        DISPLAY_NAME.name: desired.get(DISPLAY_NAME.name),
        GIVEN_NAME.name: desired.get(GIVEN_NAME.name),
        SURNAME.name: desired.get(SURNAME.name),
        MAIL_NICKNAME.name: desired.get(MAIL_NICKNAME.name),
        "passwordProfile": {
            "password": desired.get(PASSWORD.name),
            "forceChangePasswordNextSignIn": config.force_change_password,
        },
        USER_TYPE.name: desired.get(USER_TYPE.name) or config.default_user_type,
        "accountEnabled": config.default_account_enabled,
    }
    for field in OPTIONAL_FIELDS:
        raw = desired.get(field.name)
        if not raw:
            continue
        value = normalize_value(field, raw)
        payload[field.name] = to_graph_value(field, value, config.default_account_enabled)
    return payload


def compute_diff(
    desired: DesiredRecord,
    observed: ObservedRecord,
    config: SyncConfig,
) -> dict[str, Any]:
    """Graph PATCH body holding only the fields whose value changes."""
    diff: dict[str, Any] = {}
    for field in UPDATABLE_FIELDS:
        raw = desired.get(field.name)
        if not raw:
            continue
        current = observed.get(field.name)

        if field.kind == FLAG:
            default = current if isinstance(current, bool) else config.default_account_enabled
            wanted = parse_flag(raw, default)
            if wanted != current:
                diff[field.name] = wanted
            continue

        if comparison_key(field, raw) != comparison_key(field, current):
            diff[field.name] = to_graph_value(field, normalize_value(field, raw))
    return diff
