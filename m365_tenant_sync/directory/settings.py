"""
Directory setting toggle — sets one value of a tenant-level directory
setting (e.g. Group.Unified / EnableGroupCreation).

The setting object is created from its template when the tenant has none yet.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from ..sync.models import Action
from .service import DirectoryService

logger = logging.getLogger("m365_tenant_sync.directory.settings")


class DirectorySettingError(Exception):
    """Unknown template or setting name."""
    pass


@dataclass
class SettingChange:
    action: Action
    setting_id: str = ""
    previous: Optional[str] = None
    value: str = ""
    comment: str = ""

    def to_dict(self) -> dict:
        return {
            "action": self.action.value,
            "setting_id": self.setting_id,
            "previous": self.previous,
            "value": self.value,
            "comment": self.comment,
        }


def _find_by_name(items: list[dict], display_name: str) -> Optional[dict]:
    key = display_name.casefold()
    for item in items:
        if (item.get("displayName") or "").casefold() == key:
            return item
    return None


def _replace_value(values: list[dict], name: str, value: str) -> tuple[list[dict], Optional[str]]:
    """Copy of `values` with `name` set. Returns (values, previous value)."""
    key = name.casefold()
    previous = None
    updated = []
    for entry in values:
        if (entry.get("name") or "").casefold() == key:
            previous = entry.get("value")
            updated.append({"name": entry["name"], "value": value})
        else:
            updated.append({"name": entry.get("name"), "value": entry.get("value")})
    return updated, previous


async def apply_directory_setting(
    directory: DirectoryService,
    template_name: str,
    setting_name: str,
    value: str,
) -> SettingChange:
    """Set `setting_name` to `value` on the tenant setting built from `template_name`."""
    existing = _find_by_name(await directory.list_group_settings(), template_name)

    if existing is not None:
        names = {(v.get("name") or "").casefold() for v in existing.get("values", [])}
        if setting_name.casefold() not in names:
            raise DirectorySettingError(
                f"Setting '{setting_name}' does not exist in '{template_name}'"
            )
        values, previous = _replace_value(existing.get("values", []), setting_name, value)
        if (previous or "").casefold() == value.casefold():
            return SettingChange(Action.NO_CHANGE, existing.get("id", ""), previous, value,
                                 f"{setting_name} already {previous}")
        response = await directory.update_group_setting(existing["id"], values)
        comment = f"{setting_name}: {previous} -> {value}"
        if response.get("_dry_run"):
            comment += " (dry-run)"
        logger.info(f"Updated {template_name}: {comment}")
        return SettingChange(Action.UPDATED, existing["id"], previous, value, comment)

    template = _find_by_name(await directory.list_group_setting_templates(), template_name)
    if template is None:
        raise DirectorySettingError(f"No directory setting template named '{template_name}'")

    defaults = [
        {"name": v.get("name"), "value": v.get("defaultValue")}
        for v in template.get("values", [])
    ]
    values, previous = _replace_value(defaults, setting_name, value)
    if not any((v.get("name") or "").casefold() == setting_name.casefold() for v in defaults):
        raise DirectorySettingError(
            f"Setting '{setting_name}' does not exist in template '{template_name}'"
        )

    response = await directory.create_group_setting({
        "templateId": template["id"],
        "values": values,
    })
    comment = f"Created {template_name} with {setting_name}={value}"
    if response.get("_dry_run"):
        comment += " (dry-run)"
    logger.info(comment)
    return SettingChange(Action.CREATED, response.get("id", ""), previous, value, comment)
