"""
Write Guardian — Restricts writes to the endpoints this tool is meant to touch.
Blocks deletes and credential resets, records every write, and plans writes in dry-run.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Optional

logger = logging.getLogger("m365_tenant_sync.safety")

# ─── Write allow-list ───────────────────────────────────────────────────────

READ_METHODS = {"GET", "HEAD", "OPTIONS"}

_GUID = r"[0-9a-fA-F-]{36}"

ALLOWED_WRITES = {
    "POST": [
        re.compile(r"/users$"),
        re.compile(rf"/users/{_GUID}/assignLicense$"),
        re.compile(r"/groupSettings$"),
    ],
    "PATCH": [
        re.compile(rf"/users/{_GUID}$"),
        re.compile(rf"/groupSettings/{_GUID}$"),
    ],
}

# Endpoints that are refused whatever the method
BLOCKED_URL_PATTERNS = [
    re.compile(r"/resetPassword$", re.IGNORECASE),
    re.compile(r"/changePassword$", re.IGNORECASE),
    re.compile(r"/revokeSignInSessions$", re.IGNORECASE),
    re.compile(r"/authentication/", re.IGNORECASE),
    re.compile(r"/addPassword$", re.IGNORECASE),
    re.compile(r"/removePassword$", re.IGNORECASE),
]

# Body keys that must never appear in an update
PROTECTED_UPDATE_KEYS = {"passwordProfile", "userPrincipalName", "userType"}


class SafetyViolation(Exception):
    """Raised when a request falls outside the write allow-list."""
    pass


class SafetyGuardian:
    """
    Validates every outbound request before it is sent.
    Keeps an audit trail of writes (sent or planned) and of violations.
    """

    def __init__(self, dry_run: bool = False):
        self.dry_run = dry_run
        self.violations: list[dict] = []
        self.writes: list[dict] = []
        self.checks_performed: int = 0
        self.started_at: str = _utc_now()

    def validate_request(self, method: str, url: str, body: Optional[dict] = None) -> bool:
        """
        Validate a request.
        Returns True when the request may be sent, False when it is a write
        that dry-run mode only plans. Raises SafetyViolation otherwise.
        """
        self.checks_performed += 1
        method_upper = method.upper()
        path = url.split("?", 1)[0]

        for pattern in BLOCKED_URL_PATTERNS:
            if pattern.search(path):
                self._record_violation(method_upper, url, "Blocked credential endpoint")
                raise SafetyViolation(
                    f"SAFETY VIOLATION: Blocked endpoint: {method_upper} {url}"
                )

        if method_upper in READ_METHODS:
            return True

        patterns = ALLOWED_WRITES.get(method_upper, [])
        if not any(p.search(path) for p in patterns):
            self._record_violation(method_upper, url, "Write outside allow-list")
            raise SafetyViolation(
                f"SAFETY VIOLATION: Write not allowed: {method_upper} {url}"
            )

        if method_upper == "PATCH" and body:
            protected = sorted(PROTECTED_UPDATE_KEYS.intersection(body))
            if protected:
                self._record_violation(
                    method_upper, url, f"Protected fields in update: {', '.join(protected)}"
                )
                raise SafetyViolation(
                    f"SAFETY VIOLATION: Update touches protected fields "
                    f"{protected}: {method_upper} {url}"
                )

        self.writes.append({
            "timestamp": _utc_now(),
            "method": method_upper,
            "url": url,
            "fields": sorted(body) if body else [],
            "planned_only": self.dry_run,
        })
        if self.dry_run:
            logger.info(f"[dry-run] Planned {method_upper} {url}")
            return False
        return True

    def _record_violation(self, method: str, url: str, reason: str):
        violation = {
            "timestamp": _utc_now(),
            "method": method,
            "url": url,
            "reason": reason,
        }
        self.violations.append(violation)
        logger.critical(f"SAFETY VIOLATION: {reason} — {method} {url}")

    def get_audit_record(self) -> dict:
        """Return the audit record for the run summary."""
        return {
            "write_guardian": {
                "mode": "DRY-RUN" if self.dry_run else "WRITE",
                "started_at": self.started_at,
                "checks_performed": self.checks_performed,
                "writes": len(self.writes),
                "violations_detected": len(self.violations),
                "violations": self.violations,
                "status": "CLEAN" if not self.violations else "VIOLATIONS_DETECTED",
            }
        }


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()
