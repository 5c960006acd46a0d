"""
M365 Tenant Sync
================
Spreadsheet-driven Microsoft 365 / Entra ID administration:
idempotent bulk user sync, license assignment and export, directory setting toggles.

Writes are limited to an allow-list of Graph endpoints. Credentials are
only ever set when a user is created, never on update.
"""

__version__ = "1.0.0"
