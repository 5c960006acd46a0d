"""
Logical user fields and spreadsheet header resolution.

The synonym table is static; `resolve()` is a pure function so header
matching can be tested without touching a file.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Optional

# Field kinds drive normalization and Graph payload rendering
TEXT = "text"
REGION = "region"
DATE = "date"
FLAG = "flag"
PHONES = "phones"


@dataclass(frozen=True)
class LogicalField:
    """A user attribute the sheet may carry."""
    name: str                        # Graph attribute name
    synonyms: tuple[str, ...]        # Accepted header spellings
    kind: str = TEXT
    mandatory: bool = False          # Required to create a user
    immutable: bool = False          # Never part of an update diff


IDENTITY = LogicalField(
    "userPrincipalName",
    ("userPrincipalName", "UPN", "user principal name", "principal name", "login"),
    mandatory=True,
    immutable=True,
)
DISPLAY_NAME = LogicalField(
    "displayName", ("displayName", "display name", "full name", "name"), mandatory=True
)
GIVEN_NAME = LogicalField(
    "givenName", ("givenName", "given name", "first name", "firstname"), mandatory=True
)
SURNAME = LogicalField(
    "surname", ("surname", "last name", "lastname", "family name"), mandatory=True
)
MAIL_NICKNAME = LogicalField(
    "mailNickname", ("mailNickname", "mail nickname", "alias", "nickname"), mandatory=True
)
PASSWORD = LogicalField(
    "password",
    ("password", "initial password", "temp password", "temporary password"),
    mandatory=True,
    immutable=True,
)
USER_TYPE = LogicalField(
    "userType", ("userType", "user type", "account type"), immutable=True
)

OPTIONAL_FIELDS: tuple[LogicalField, ...] = (
    LogicalField("jobTitle", ("jobTitle", "job title", "title")),
    LogicalField("department", ("department", "dept")),
    LogicalField("companyName", ("companyName", "company name", "company")),
    LogicalField("officeLocation", ("officeLocation", "office location", "office")),
    LogicalField("employeeId", ("employeeId", "employee id", "employee number")),
    LogicalField("employeeType", ("employeeType", "employee type")),
    LogicalField(
        "employeeHireDate",
        ("employeeHireDate", "employee hire date", "hire date", "start date"),
        kind=DATE,
    ),
    LogicalField("mobilePhone", ("mobilePhone", "mobile phone", "mobile", "cell phone")),
    LogicalField(
        "businessPhones",
        ("businessPhones", "business phone", "business phones", "office phone", "phone"),
        kind=PHONES,
    ),
    LogicalField("streetAddress", ("streetAddress", "street address", "street", "address")),
    LogicalField("city", ("city", "town")),
    LogicalField("state", ("state", "state or province", "province", "region")),
    LogicalField("postalCode", ("postalCode", "postal code", "zip", "zip code", "postcode")),
    LogicalField("country", ("country", "country or region")),
    LogicalField(
        "usageLocation",
        ("usageLocation", "usage location", "country code"),
        kind=REGION,
    ),
    LogicalField("preferredLanguage", ("preferredLanguage", "preferred language", "language")),
    LogicalField(
        "accountEnabled",
        ("accountEnabled", "account enabled", "enabled", "sign in allowed"),
        kind=FLAG,
    ),
)

MANDATORY_FIELDS: tuple[LogicalField, ...] = (
    IDENTITY, DISPLAY_NAME, GIVEN_NAME, SURNAME, MAIL_NICKNAME, PASSWORD,
)

ALL_FIELDS: tuple[LogicalField, ...] = MANDATORY_FIELDS + (USER_TYPE,) + OPTIONAL_FIELDS

FIELDS_BY_NAME = {f.name: f for f in ALL_FIELDS}

# Attributes requested when reading a user back from the directory
SELECT_ATTRIBUTES = ["id"] + [f.name for f in ALL_FIELDS if f is not PASSWORD]

_SEPARATORS = re.compile(r"[\s_\-]+")


def header_key(text: str) -> str:
    return _SEPARATORS.sub("", text).casefold()


_SYNONYM_TABLE: dict[str, LogicalField] = {}
for _field in ALL_FIELDS:
    for _synonym in _field.synonyms:
        _SYNONYM_TABLE.setdefault(header_key(_synonym), _field)


def resolve(header: Optional[str]) -> Optional[LogicalField]:
    """Map a spreadsheet header to its logical field, or None if unknown."""
    if not header:
        return None
    return _SYNONYM_TABLE.get(header_key(str(header)))


def map_headers(headers: Iterable[str]) -> dict[str, LogicalField]:
    """
    Resolve every header of a sheet.
    Returns {header: field}; when two headers name the same field the
    leftmost one wins and the others are ignored.
    """
    mapping: dict[str, LogicalField] = {}
    claimed: set[str] = set()
    for header in headers:
        field = resolve(header)
        if field is None or field.name in claimed:
            continue
        mapping[header] = field
        claimed.add(field.name)
    return mapping
