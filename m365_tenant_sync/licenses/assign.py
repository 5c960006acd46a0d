"""
License assignment — adds the SKUs listed per row to each user.

Already-assigned SKUs are left alone, so re-running a sheet is a no-op.
A failed user lookup counts as "user not found".
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Optional

import httpx

from ..config import SyncConfig
from ..graph.client import GraphAPIError
from ..sync.fields import IDENTITY, LogicalField, header_key, map_headers
from ..sync.models import Action, BatchReport, OutcomeRecord
from ..sync.normalize import normalize_region, normalize_text
from ..tabular import Table
from .catalog import LicenseCatalog, split_codes

if TYPE_CHECKING:
    from ..directory.service import DirectoryService

logger = logging.getLogger("m365_tenant_sync.licenses")

LICENSE_SYNONYMS = ("licenses", "license", "licence", "licences", "sku", "skus",
                    "skuPartNumber", "license sku", "license skus")
USAGE_LOCATION = "usageLocation"

REMOTE_ERRORS = (GraphAPIError, httpx.HTTPError)


def find_license_column(headers: list[str]) -> Optional[str]:
    wanted = {header_key(s) for s in LICENSE_SYNONYMS}
    for header in headers:
        if header_key(header) in wanted:
            return header
    return None


class LicenseAssignmentRunner:
    """Assigns licenses listed in a sheet, one row at a time."""

    def __init__(
        self,
        directory: "DirectoryService",
        config: Optional[SyncConfig] = None,
        sleep=asyncio.sleep,
    ):
        self.directory = directory
        self.config = config or SyncConfig()
        self._sleep = sleep
        self.catalog = LicenseCatalog()

    async def load_catalog(self) -> LicenseCatalog:
        skus = await self.directory.list_subscribed_skus()
        self.catalog = LicenseCatalog.from_skus(skus)
        logger.info(f"Tenant lists {len(self.catalog)} license SKUs")
        return self.catalog

    async def run(self, table: Table) -> BatchReport:
        if not len(self.catalog):
            await self.load_catalog()

        header_map = map_headers(table.headers)
        license_column = find_license_column(table.headers)
        if license_column is None:
            logger.warning("No license column found; every row will be skipped.")

        report = BatchReport(headers=list(table.headers))
        total = len(table.rows)
        for index, row in enumerate(table.rows, start=1):
            outcome = await self.process_row(row, header_map, license_column)
            report.add(outcome)
            logger.info(f"[{index}/{total}] {outcome.action.value} "
                        f"{outcome.identity or '(no UPN)'}: {outcome.comment}")

            every = self.config.pause_every
            if every > 0 and index % every == 0 and index < total:
                await self._sleep(self.config.pause_seconds)
        return report

    async def process_row(
        self,
        row: dict[str, str],
        header_map: dict[str, LogicalField],
        license_column: Optional[str],
    ) -> OutcomeRecord:
        """Never raises."""
        values = {f.name: normalize_text(row.get(h)) for h, f in header_map.items()}
        upn = values.get(IDENTITY.name, "")
        try:
            if not upn:
                return OutcomeRecord(upn, Action.SKIPPED,
                                     comment=f"Missing mandatory field(s): {IDENTITY.name}", row=row)
            codes = split_codes(row.get(license_column, "")) if license_column else []
            if not codes:
                return OutcomeRecord(upn, Action.SKIPPED, comment="No licenses listed", row=row)

            sku_ids, unknown = self.catalog.resolve(codes)
            if unknown:
                return OutcomeRecord(upn, Action.ERROR,
                                     comment=f"Unknown license code(s): {', '.join(unknown)}", row=row)

            user = await self._lookup(upn)
            if user is None:
                return OutcomeRecord(upn, Action.SKIPPED, comment="User not found", row=row)
            user_id = user.get("id", "")

            assigned = {lic.get("skuId") for lic in user.get("assignedLicenses") or []}
            to_add = [sku for sku in sku_ids if sku not in assigned]
            if not to_add:
                return OutcomeRecord(upn, Action.NO_CHANGE, user_id,
                                     "All listed licenses already assigned", row=row)

            location = normalize_region(values.get(USAGE_LOCATION, ""))
            if location and not user.get(USAGE_LOCATION):
                await self.directory.update_user(user_id, {USAGE_LOCATION: location})

            response = await self.directory.assign_licenses(user_id, to_add)
            names = ", ".join(self.catalog.part_number(s) for s in to_add)
            comment = f"Assigned: {names}"
            if response.get("_dry_run"):
                comment += " (dry-run)"
            return OutcomeRecord(upn, Action.UPDATED, user_id, comment, row=row)
        except REMOTE_ERRORS as e:
            return OutcomeRecord(upn, Action.ERROR, comment=f"Assignment failed: {e}", row=row)
        except Exception as e:
            logger.exception(f"License row for {upn or '(no UPN)'} failed")
            return OutcomeRecord(upn, Action.ERROR, comment=f"{type(e).__name__}: {e}", row=row)

    async def _lookup(self, upn: str) -> Optional[dict]:
        try:
            return await self.directory.fetch_user(
                upn, select=["id", "userPrincipalName", USAGE_LOCATION, "assignedLicenses"]
            )
        except REMOTE_ERRORS as e:
            logger.warning(f"Lookup of {upn} failed, treating as not found: {e}")
            return None
