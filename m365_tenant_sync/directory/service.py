"""
Directory service — the remote operations the sync, license and settings
commands need, expressed over GraphClient.
"""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import quote

from ..graph.client import GraphClient, GraphAPIError
from ..sync.fields import SELECT_ATTRIBUTES

logger = logging.getLogger("m365_tenant_sync.directory")

LICENSE_SELECT = ["id", "userPrincipalName", "displayName", "accountEnabled",
                  "usageLocation", "assignedLicenses"]


class DirectoryService:
    """
    Thin wrapper around GraphClient for users, licenses and group settings.
    Holds no state of its own besides the client it was given.
    """

    def __init__(self, graph: GraphClient):
        self.graph = graph

    # ── Users ───────────────────────────────────────────────────────────────

    async def fetch_user(self, upn: str, select: Optional[list[str]] = None) -> Optional[dict]:
        """Fetch a user by UPN. Returns None on 404; other errors propagate."""
        endpoint = f"users/{quote(upn, safe='@')}"
        params = {"$select": ",".join(select or SELECT_ATTRIBUTES)}
        try:
            return await self.graph.get(endpoint, params=params)
        except GraphAPIError as e:
            if e.status_code == 404:
                return None
            raise

    async def create_user(self, body: dict) -> dict:
        logger.debug(f"Creating user {body.get('userPrincipalName')}")
        return await self.graph.post("users", body)

    async def update_user(self, user_id: str, diff: dict) -> dict:
        logger.debug(f"Updating user {user_id}: {sorted(diff)}")
        return await self.graph.patch(f"users/{user_id}", diff)

    async def list_users(self, select: Optional[list[str]] = None) -> list[dict]:
        return await self.graph.get_all_pages(
            "users", params={"$select": ",".join(select or LICENSE_SELECT)}
        )

    # ── Licenses ────────────────────────────────────────────────────────────

    async def list_subscribed_skus(self) -> list[dict]:
        """The tenant's license SKUs (skuId, skuPartNumber, unit counts)."""
        return await self.graph.get_all_pages("subscribedSkus", skip_top=True)

    async def assign_licenses(
        self,
        user_id: str,
        add_sku_ids: list[str],
    ) -> dict:
        body = {
            "addLicenses": [{"skuId": sku, "disabledPlans": []} for sku in add_sku_ids],
            "removeLicenses": [],
        }
        return await self.graph.post(f"users/{user_id}/assignLicense", body)

    # ── Directory settings ──────────────────────────────────────────────────

    async def list_group_settings(self) -> list[dict]:
        return await self.graph.get_all_pages("groupSettings", skip_top=True)

    async def list_group_setting_templates(self) -> list[dict]:
        return await self.graph.get_all_pages("groupSettingTemplates", skip_top=True)

    async def create_group_setting(self, body: dict) -> dict:
        return await self.graph.post("groupSettings", body)

    async def update_group_setting(self, setting_id: str, values: list[dict]) -> dict:
        return await self.graph.patch(f"groupSettings/{setting_id}", {"values": values})
