"""
User sync runner — processes sheet rows one at a time against the directory.

Every input row yields exactly one OutcomeRecord. Per-row failures become
Error outcomes; the batch always runs to the end.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Optional

import httpx

from ..config import SyncConfig
from ..graph.client import GraphAPIError
from ..tabular import Table
from .fields import IDENTITY, MANDATORY_FIELDS, map_headers
from .models import (
    Action,
    BatchReport,
    DesiredRecord,
    ObservedRecord,
    OutcomeRecord,
)
from .reconciler import reconcile

if TYPE_CHECKING:
    from ..directory.service import DirectoryService

logger = logging.getLogger("m365_tenant_sync.sync")

REMOTE_ERRORS = (GraphAPIError, httpx.HTTPError)


class UserSyncRunner:
    """Creates missing users and updates changed attributes from a sheet."""

    def __init__(
        self,
        directory: "DirectoryService",
        config: Optional[SyncConfig] = None,
        sleep=asyncio.sleep,
    ):
        self.directory = directory
        self.config = config or SyncConfig()
        self._sleep = sleep

    async def run(self, table: Table) -> BatchReport:
        header_map = map_headers(table.headers)
        if IDENTITY.name not in {f.name for f in header_map.values()}:
            logger.warning("No userPrincipalName column found; every row will be skipped.")

        report = BatchReport(headers=list(table.headers))
        total = len(table.rows)
        for index, row in enumerate(table.rows, start=1):
            outcome = await self.process_row(DesiredRecord.from_row(row, header_map))
            report.add(outcome)
            logger.info(f"[{index}/{total}] {outcome.action.value} "
                        f"{outcome.identity or '(no UPN)'}: {outcome.comment}")

            if self._should_pause(index, total):
                logger.info(f"Pausing {self.config.pause_seconds}s after {index} rows")
                await self._sleep(self.config.pause_seconds)
        return report

    def _should_pause(self, index: int, total: int) -> bool:
        every = self.config.pause_every
        return every > 0 and index % every == 0 and index < total

    async def process_row(self, record: DesiredRecord) -> OutcomeRecord:
        """Reconcile and apply one row. Never raises."""
        upn = record.identity
        try:
            missing = record.missing(MANDATORY_FIELDS)
            if missing:
                return OutcomeRecord(
                    upn, Action.SKIPPED,
                    comment=f"Missing mandatory field(s): {', '.join(missing)}",
                    row=record.row,
                )

            observed = await self._lookup(upn)
            verdict = reconcile(record, observed, self.config)
            object_id = observed.id if observed else ""

            if verdict.action == Action.CREATED:
                return await self._apply_create(record, verdict.payload)
            if verdict.action == Action.UPDATED:
                return await self._apply_update(record, object_id, verdict.payload, verdict.comment)
            return OutcomeRecord(upn, verdict.action, object_id, verdict.comment, row=record.row)
        except Exception as e:
            logger.exception(f"Row for {upn or '(no UPN)'} failed")
            return OutcomeRecord(upn, Action.ERROR, comment=f"{type(e).__name__}: {e}", row=record.row)

    async def _lookup(self, upn: str) -> Optional[ObservedRecord]:
        """Lookup failures count as "not found" and fall through to create."""
        try:
            data = await self.directory.fetch_user(upn)
        except REMOTE_ERRORS as e:
            logger.warning(f"Lookup of {upn} failed, treating as not found: {e}")
            return None
        return ObservedRecord(data) if data else None

    async def _apply_create(self, record: DesiredRecord, payload: dict) -> OutcomeRecord:
        upn = record.identity
        try:
            response = await self.directory.create_user(payload)
        except REMOTE_ERRORS as e:
            return OutcomeRecord(upn, Action.ERROR, comment=f"Create failed: {e}", row=record.row)
        comment = "Created (dry-run)" if response.get("_dry_run") else "Created"
        return OutcomeRecord(upn, Action.CREATED, response.get("id", ""), comment, row=record.row)

    async def _apply_update(
        self,
        record: DesiredRecord,
        object_id: str,
        diff: dict,
        comment: str,
    ) -> OutcomeRecord:
        upn = record.identity
        try:
            response = await self.directory.update_user(object_id, diff)
        except REMOTE_ERRORS as e:
            return OutcomeRecord(upn, Action.ERROR, object_id, f"Update failed: {e}", row=record.row)
        if response.get("_dry_run"):
            comment += " (dry-run)"
        return OutcomeRecord(upn, Action.UPDATED, object_id, comment, row=record.row)
