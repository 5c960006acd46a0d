"""
License catalog — resolves SKU part numbers (e.g. ENTERPRISEPACK) to the
tenant's SKU ids and back, from Graph subscribedSkus.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, Optional

_CODE_SEPARATORS = re.compile(r"[,;\n]+")


@dataclass
class LicenseCatalog:
    by_part_number: dict[str, str] = field(default_factory=dict)   # casefolded part number -> skuId
    by_sku_id: dict[str, str] = field(default_factory=dict)        # skuId -> part number

    @classmethod
    def from_skus(cls, skus: Iterable[dict]) -> "LicenseCatalog":
        catalog = cls()
        for sku in skus:
            sku_id = sku.get("skuId")
            part = sku.get("skuPartNumber")
            if not sku_id or not part:
                continue
            catalog.by_part_number[part.casefold()] = sku_id
            catalog.by_sku_id[sku_id] = part
        return catalog

    def sku_id(self, part_number: str) -> Optional[str]:
        return self.by_part_number.get(part_number.strip().casefold())

    def part_number(self, sku_id: str) -> str:
        """Part number for a SKU id; the raw id when the tenant no longer lists it."""
        return self.by_sku_id.get(sku_id, sku_id)

    def resolve(self, codes: Iterable[str]) -> tuple[list[str], list[str]]:
        """Returns (sku ids, unknown codes), both in input order."""
        found, unknown = [], []
        for code in codes:
            sku_id = self.sku_id(code)
            if sku_id is None:
                unknown.append(code)
            elif sku_id not in found:
                found.append(sku_id)
        return found, unknown

    def __len__(self) -> int:
        return len(self.by_sku_id)


def split_codes(cell: str) -> list[str]:
    """Split a license cell on commas, semicolons or newlines."""
    return [c.strip() for c in _CODE_SEPARATORS.split(cell or "") if c.strip()]
