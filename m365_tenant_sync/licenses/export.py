"""
License export — every user with the part numbers of their assigned licenses.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..tabular import Table
from .catalog import LicenseCatalog

if TYPE_CHECKING:
    from ..directory.service import DirectoryService

logger = logging.getLogger("m365_tenant_sync.licenses")

EXPORT_HEADERS = [
    "userPrincipalName",
    "displayName",
    "accountEnabled",
    "usageLocation",
    "licenses",
    "ObjectId",
]


async def collect_license_table(directory: "DirectoryService") -> Table:
    """Build the export table. Users without licenses are listed with an empty cell."""
    catalog = LicenseCatalog.from_skus(await directory.list_subscribed_skus())
    users = await directory.list_users()
    logger.info(f"Exporting licenses for {len(users)} users")

    table = Table(headers=list(EXPORT_HEADERS))
    for user in sorted(users, key=lambda u: (u.get("userPrincipalName") or "").casefold()):
        parts = sorted(
            catalog.part_number(lic["skuId"])
            for lic in user.get("assignedLicenses") or []
            if lic.get("skuId")
        )
        enabled = user.get("accountEnabled")
        table.rows.append({
            "userPrincipalName": user.get("userPrincipalName") or "",
            "displayName": user.get("displayName") or "",
            "accountEnabled": "" if enabled is None else str(bool(enabled)).upper(),
            "usageLocation": user.get("usageLocation") or "",
            "licenses": ", ".join(parts),
            "ObjectId": user.get("id") or "",
        })
    return table
