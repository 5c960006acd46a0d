import copy
import uuid

import pytest

from m365_tenant_sync.graph.client import GraphAPIError


class FakeDirectory:
    """In-memory stand-in for DirectoryService."""

    def __init__(self, dry_run=False):
        self.users = {}            # casefolded UPN -> user dict
        self.skus = []
        self.settings = []
        self.templates = []
        self.calls = []
        self.fail_lookup = set()
        self.fail_create = set()
        self.fail_update = set()
        self._dry_run = dry_run

    def add_user(self, **attrs):
        user = {"id": attrs.pop("id", str(uuid.uuid4())), "accountEnabled": True,
                "userType": "Member", "assignedLicenses": []}
        user.update(attrs)
        self.users[user["userPrincipalName"].casefold()] = user
        return user

    async def fetch_user(self, upn, select=None):
        self.calls.append(("fetch", upn))
        if upn.casefold() in self.fail_lookup:
            raise GraphAPIError(500, "lookup exploded", f"users/{upn}")
        user = self.users.get(upn.casefold())
        return copy.deepcopy(user) if user else None

    async def create_user(self, body):
        self.calls.append(("create", body))
        upn = body["userPrincipalName"]
        if upn.casefold() in self.fail_create:
            raise GraphAPIError(400, "Another object with the same value exists", "users")
        if self._dry_run:
            return {"_dry_run": True}
        stored = {k: v for k, v in body.items() if k != "passwordProfile"}
        stored.setdefault("assignedLicenses", [])
        return copy.deepcopy(self.add_user(**stored))

    async def update_user(self, user_id, diff):
        self.calls.append(("update", user_id, diff))
        if user_id in self.fail_update:
            raise GraphAPIError(400, "Invalid value", f"users/{user_id}")
        if self._dry_run:
            return {"_dry_run": True}
        for user in self.users.values():
            if user["id"] == user_id:
                user.update(diff)
        return {}

    async def list_users(self, select=None):
        return [copy.deepcopy(u) for u in self.users.values()]

    async def list_subscribed_skus(self):
        return list(self.skus)

    async def assign_licenses(self, user_id, add_sku_ids):
        self.calls.append(("assign", user_id, list(add_sku_ids)))
        if self._dry_run:
            return {"_dry_run": True}
        for user in self.users.values():
            if user["id"] == user_id:
                user["assignedLicenses"] = user.get("assignedLicenses", []) + [
                    {"skuId": s, "disabledPlans": []} for s in add_sku_ids
                ]
                return copy.deepcopy(user)
        raise GraphAPIError(404, "Resource not found", f"users/{user_id}/assignLicense")

    async def list_group_settings(self):
        return copy.deepcopy(self.settings)

    async def list_group_setting_templates(self):
        return copy.deepcopy(self.templates)

    async def create_group_setting(self, body):
        self.calls.append(("create_setting", body))
        if self._dry_run:
            return {"_dry_run": True}
        template = next(t for t in self.templates if t["id"] == body["templateId"])
        setting = {"id": str(uuid.uuid4()), "displayName": template["displayName"],
                   "templateId": template["id"], "values": body["values"]}
        self.settings.append(setting)
        return copy.deepcopy(setting)

    async def update_group_setting(self, setting_id, values):
        self.calls.append(("update_setting", setting_id, values))
        if self._dry_run:
            return {"_dry_run": True}
        for setting in self.settings:
            if setting["id"] == setting_id:
                setting["values"] = values
        return {}

    def writes(self):
        return [c for c in self.calls if c[0] not in ("fetch",)]


async def no_sleep(seconds):
    return None


@pytest.fixture
def directory():
    return FakeDirectory()


@pytest.fixture
def profile_home(tmp_path, monkeypatch):
    home = tmp_path / "home"
    monkeypatch.setenv("M365_SYNC_HOME", str(home))
    return home
