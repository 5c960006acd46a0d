"""
Tenant profiles — named connection settings for admins who manage several tenants.

Stored as JSON in $M365_SYNC_HOME/profiles.json, or ~/.m365_tenant_sync/profiles.json
when the variable is unset:

    {
      "default_profile": "contoso-prod",
      "profiles": {
        "contoso-prod": {"tenant_id": "...", "client_id": "...", "auth_mode": "certificate", ...}
      }
    }
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Optional

logger = logging.getLogger("m365_tenant_sync.profiles")

AUTH_MODES = ("certificate", "secret", "delegated")


def config_dir() -> Path:
    override = os.environ.get("M365_SYNC_HOME")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".m365_tenant_sync"


def profiles_file() -> Path:
    return config_dir() / "profiles.json"


@dataclass
class TenantProfile:
    name: str
    tenant_id: str
    client_id: str
    auth_mode: str = "certificate"
    cert_path: str = "./base64.txt"    # certificate mode only
    tenant_display_name: str = ""
    notes: str = ""

    @classmethod
    def from_dict(cls, name: str, data: dict) -> "TenantProfile":
        known = {f.name for f in fields(cls)} - {"name"}
        return cls(name=name, **{k: v for k, v in data.items() if k in known})

    def to_dict(self) -> dict:
        data = asdict(self)
        del data["name"]
        return data

    def resolve_cert_path(self) -> str:
        """Absolute certificate path; relative paths resolve against the working directory."""
        p = Path(self.cert_path).expanduser()
        return str(p if p.is_absolute() else Path.cwd() / p)


@dataclass
class ProfileStore:
    profiles: dict[str, TenantProfile] = field(default_factory=dict)
    default_profile: str = ""

    @classmethod
    def load(cls) -> "ProfileStore":
        """The stored profiles, or an empty store when the file is missing or unreadable."""
        path = profiles_file()
        if not path.exists():
            return cls()
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            profiles = {
                name: TenantProfile.from_dict(name, entry)
                for name, entry in data.get("profiles", {}).items()
            }
        except (json.JSONDecodeError, TypeError, AttributeError) as e:
            logger.warning(f"Ignoring unreadable profile file {path}: {e}")
            return cls()
        return cls(profiles=profiles, default_profile=data.get("default_profile", ""))

    def save(self) -> None:
        path = profiles_file()
        path.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "default_profile": self.default_profile,
            "profiles": {name: p.to_dict() for name, p in self.profiles.items()},
        }
        path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")

    def add(self, profile: TenantProfile, set_default: bool = False) -> None:
        if profile.auth_mode not in AUTH_MODES:
            raise ValueError(f"Unknown auth mode '{profile.auth_mode}'")
        self.profiles[profile.name] = profile
        if set_default or not self.default_profile:
            self.default_profile = profile.name
        self.save()

    def remove(self, name: str) -> bool:
        if self.profiles.pop(name, None) is None:
            return False
        if self.default_profile == name:
            self.default_profile = next(iter(self.profiles), "")
        self.save()
        return True

    def get(self, name: str) -> Optional[TenantProfile]:
        """Case-insensitive lookup."""
        wanted = name.casefold()
        return next((p for n, p in self.profiles.items() if n.casefold() == wanted), None)

    def get_default(self) -> Optional[TenantProfile]:
        if self.default_profile in self.profiles:
            return self.profiles[self.default_profile]
        return next(iter(self.profiles.values()), None)

    def set_default(self, name: str) -> bool:
        if name not in self.profiles:
            return False
        self.default_profile = name
        self.save()
        return True

    def list_profiles(self) -> list[TenantProfile]:
        return sorted(self.profiles.values(), key=lambda p: p.name)


def resolve_profile(profile_name: Optional[str] = None) -> Optional[TenantProfile]:
    """The named profile, or the default one when no name is given."""
    store = ProfileStore.load()
    if profile_name:
        return store.get(profile_name)
    return store.get_default()
