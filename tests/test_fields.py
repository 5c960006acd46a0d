import pytest

from m365_tenant_sync.sync.fields import (
    IDENTITY,
    PASSWORD,
    SELECT_ATTRIBUTES,
    map_headers,
    resolve,
)


@pytest.mark.parametrize("header", [
    "userPrincipalName",
    "UPN",
    "upn",
    "User Principal Name",
    "  user_principal_name ",
    "USER-PRINCIPAL-NAME",
])
def test_identity_synonyms_resolve(header):
    assert resolve(header) is IDENTITY


def test_resolve_known_optional_fields():
    assert resolve("Job Title").name == "jobTitle"
    assert resolve("hire date").name == "employeeHireDate"
    assert resolve("Usage Location").name == "usageLocation"
    assert resolve("First Name").name == "givenName"
    assert resolve("Initial Password") is PASSWORD


@pytest.mark.parametrize("header", [None, "", "favourite colour", "ObjectId", "Comment"])
def test_unknown_headers_resolve_to_none(header):
    assert resolve(header) is None


def test_map_headers_leftmost_duplicate_wins():
    mapping = map_headers(["UPN", "Title", "userPrincipalName", "Notes"])
    assert mapping == {"UPN": IDENTITY, "Title": resolve("jobTitle")}


def test_password_is_never_selected_from_directory():
    assert "password" not in SELECT_ATTRIBUTES
    assert SELECT_ATTRIBUTES[0] == "id"
    assert "userPrincipalName" in SELECT_ATTRIBUTES
