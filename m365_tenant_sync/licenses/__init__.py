"""License package — SKU catalog, per-row assignment and tenant-wide export."""

from .catalog import LicenseCatalog, split_codes
from .assign import LicenseAssignmentRunner
from .export import collect_license_table

__all__ = [
    "LicenseCatalog",
    "split_codes",
    "LicenseAssignmentRunner",
    "collect_license_table",
]
