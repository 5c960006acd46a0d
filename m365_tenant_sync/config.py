"""
Configuration module for M365 Tenant Sync.
Defines authentication modes, Graph API constants, sync behaviour and output settings.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


# ─── Tenant Authentication ───────────────────────────────────────────────────

@dataclass
class CertificateAuth:
    """Certificate-based app-only authentication configuration."""
    tenant_id: str
    client_id: str
    certificate_path: str          # Path to base64-encoded PFX
    certificate_password: str = "" # Env var or prompt if empty

@dataclass
class SecretAuth:
    """Client-secret app-only authentication configuration."""
    tenant_id: str
    client_id: str
    client_secret: str = ""        # Falls back to M365_SYNC_CLIENT_SECRET

@dataclass
class DelegatedAuth:
    """Delegated (device code) authentication configuration."""
    tenant_id: str
    client_id: str
    scopes: list[str] = field(default_factory=lambda: [
        "User.ReadWrite.All",
        "Directory.ReadWrite.All",
    ])

@dataclass
class AuthConfig:
    """Authentication configuration — certificate, secret or delegated."""
    mode: str = "certificate"  # "certificate", "secret" or "delegated"
    certificate: Optional[CertificateAuth] = None
    secret: Optional[SecretAuth] = None
    delegated: Optional[DelegatedAuth] = None

    def identity(self) -> tuple[str, str]:
        """Return (tenant_id, client_id) of whichever mode is configured."""
        for section in (self.certificate, self.secret, self.delegated):
            if section is not None:
                return section.tenant_id, section.client_id
        return "", ""


# ─── Graph API Settings ─────────────────────────────────────────────────────

GRAPH_BASE_URL = "https://graph.microsoft.com"
GRAPH_API_VERSION = "v1.0"
LOGIN_AUTHORITY = "https://login.microsoftonline.com"

# Throttling: Graph returns 429/503/504 with Retry-After
MAX_RETRIES = 5
INITIAL_BACKOFF_SECONDS = 2.0
MAX_BACKOFF_SECONDS = 120.0
BACKOFF_MULTIPLIER = 2.0

# Pagination
DEFAULT_PAGE_SIZE = 999
MAX_PAGES_PER_ENDPOINT = 10000

REQUEST_TIMEOUT_SECONDS = 60.0
CONNECT_TIMEOUT_SECONDS = 30.0


# ─── Sync Settings ──────────────────────────────────────────────────────────

@dataclass
class SyncConfig:
    """Controls for row processing."""
    pause_every: int = 50               # Pause after this many rows (0 = never)
    pause_seconds: float = 5.0          # Length of the rate-limit pause
    force_change_password: bool = True  # passwordProfile.forceChangePasswordNextSignIn
    default_user_type: str = "Member"   # userType when the sheet leaves it blank
    default_account_enabled: bool = True
    dry_run: bool = False               # Plan writes without sending them


# ─── Output Configuration ───────────────────────────────────────────────────

OUTPUT_FORMATS = ("xlsx", "csv")

@dataclass
class OutputConfig:
    """Output directory and format settings."""
    base_dir: str = ""
    format: str = "xlsx"
    write_summary: bool = True          # JSON run summary next to the sheet

    def __post_init__(self):
        if not self.base_dir:
            self.base_dir = os.path.join(os.getcwd(), "m365_sync_output")
        if self.format not in OUTPUT_FORMATS:
            raise ValueError(
                f"Unsupported output format '{self.format}'. "
                f"Choose one of: {', '.join(OUTPUT_FORMATS)}"
            )

    @property
    def output_dir(self) -> Path:
        return Path(self.base_dir)


# ─── Master Configuration ───────────────────────────────────────────────────

@dataclass
class EngineConfig:
    """Top-level configuration for a run."""
    auth: AuthConfig = field(default_factory=AuthConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    verbose: bool = False

    @classmethod
    def from_file(cls, path: str | Path) -> "EngineConfig":
        """Load configuration from a JSON file."""
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        config = cls()
        if "auth" in data:
            auth_data = data["auth"]
            config.auth.mode = auth_data.get("mode", "certificate")
            if "certificate" in auth_data:
                c = auth_data["certificate"]
                config.auth.certificate = CertificateAuth(
                    tenant_id=c["tenant_id"],
                    client_id=c["client_id"],
                    certificate_path=c.get("certificate_path", "./base64.txt"),
                    certificate_password=c.get("certificate_password", ""),
                )
            if "secret" in auth_data:
                s = auth_data["secret"]
                config.auth.secret = SecretAuth(
                    tenant_id=s["tenant_id"],
                    client_id=s["client_id"],
                    client_secret=s.get("client_secret", ""),
                )
            if "delegated" in auth_data:
                d = auth_data["delegated"]
                config.auth.delegated = DelegatedAuth(
                    tenant_id=d["tenant_id"],
                    client_id=d["client_id"],
                )
                if "scopes" in d:
                    config.auth.delegated.scopes = list(d["scopes"])
        if "sync" in data:
            for k, v in data["sync"].items():
                if hasattr(config.sync, k):
                    setattr(config.sync, k, v)
        if "output" in data:
            output_data = data["output"]
            config.output = OutputConfig(
                base_dir=output_data.get("base_dir", ""),
                format=output_data.get("format", "xlsx"),
                write_summary=output_data.get("write_summary", True),
            )
        config.verbose = data.get("verbose", False)
        return config


# ─── Required Graph API Permissions (application) ───────────────────────────

REQUIRED_PERMISSIONS = {
    "User.ReadWrite.All": "Create users, update profile attributes, assign licenses",
    "Organization.Read.All": "Read subscribed SKUs for license resolution",
    "Directory.ReadWrite.All": "Read and write tenant directory settings",
}
