import pytest

from m365_tenant_sync.config import SyncConfig
from m365_tenant_sync.sync.models import Action, DesiredRecord, ObservedRecord
from m365_tenant_sync.sync.reconciler import reconcile

BASE_ROW = {
    "UPN": "ada@contoso.com",
    "Display Name": "Ada Lovelace",
    "First Name": "Ada",
    "Last Name": "Lovelace",
    "Mail Nickname": "ada",
    "Password": "S3cure!pass",
}

REQUIRED_CREATE_KEYS = {
    "userPrincipalName", "displayName", "givenName", "surname", "mailNickname",
    "passwordProfile", "userType", "accountEnabled",
}


def desired(**extra):
    return DesiredRecord.from_row({**BASE_ROW, **extra})


def observed(**attrs):
    data = {
        "id": "11111111-2222-3333-4444-555555555555",
        "userPrincipalName": "ada@contoso.com",
        "displayName": "Ada Lovelace",
        "givenName": "Ada",
        "surname": "Lovelace",
        "mailNickname": "ada",
        "userType": "Member",
        "accountEnabled": True,
    }
    data.update(attrs)
    return ObservedRecord(data)


def test_create_payload_holds_exactly_the_non_blank_fields():
    record = desired(**{"Job Title": "Engineer", "Department": "", "City": "Zurich"})

    result = reconcile(record, None)

    assert result.action == Action.CREATED
    assert set(result.payload) == REQUIRED_CREATE_KEYS | {"jobTitle", "city"}
    assert result.payload["jobTitle"] == "Engineer"
    assert result.payload["passwordProfile"] == {
        "password": "S3cure!pass",
        "forceChangePasswordNextSignIn": True,
    }


def test_create_defaults_account_type_and_enabled_flag():
    result = reconcile(desired(), None, SyncConfig(default_user_type="Member"))
    assert result.payload["userType"] == "Member"
    assert result.payload["accountEnabled"] is True


def test_create_respects_sheet_account_type_and_flag():
    result = reconcile(desired(**{"User Type": "Guest", "Enabled": "no"}), None)
    assert result.payload["userType"] == "Guest"
    assert result.payload["accountEnabled"] is False


def test_create_renders_special_fields():
    record = desired(**{"Usage Location": "united states", "Hire Date": "45000", "Phone": "+41 1"})
    payload = reconcile(record, None).payload
    assert payload["usageLocation"] == "UN"
    assert payload["employeeHireDate"] == "2023-03-15T00:00:00Z"
    assert payload["businessPhones"] == ["+41 1"]


def test_missing_mandatory_fields_skip_creation():
    record = DesiredRecord.from_row({"UPN": "bob@contoso.com", "Display Name": "Bob", "Password": ""})
    result = reconcile(record, None)
    assert result.action == Action.SKIPPED
    assert result.payload == {}
    assert "givenName" in result.comment
    assert "surname" in result.comment
    assert "mailNickname" in result.comment
    assert "password" in result.comment


def test_equal_records_produce_no_change():
    record = desired(**{"Job Title": "Engineer", "Usage Location": "ch", "Hire Date": "15-03-2023"})
    current = observed(jobTitle="Engineer", usageLocation="CH",
                       employeeHireDate="2023-03-15T00:00:00Z")

    result = reconcile(record, current)

    assert result.action == Action.NO_CHANGE
    assert result.payload == {}


def test_single_changed_field_is_the_whole_diff():
    record = desired(**{"Job Title": "Senior Engineer", "Department": "R&D"})
    current = observed(jobTitle="Engineer", department="R&D")

    result = reconcile(record, current)

    assert result.action == Action.UPDATED
    assert result.payload == {"jobTitle": "Senior Engineer"}
    assert result.comment == "Updated: jobTitle"


def test_comparison_ignores_case_and_whitespace():
    record = desired(**{"Job Title": "  engineer "})
    assert reconcile(record, observed(jobTitle="Engineer")).action == Action.NO_CHANGE


def test_blank_desired_value_never_clears_the_directory():
    record = desired(**{"Job Title": ""})
    assert reconcile(record, observed(jobTitle="Engineer")).action == Action.NO_CHANGE


@pytest.mark.parametrize("extra, current", [
    ({"Password": "different"}, {}),
    ({"UPN": "ADA.NEW@contoso.com"}, {}),
    ({"Account Type": "Guest"}, {"userType": "Member"}),
])
def test_immutable_fields_never_enter_the_diff(extra, current):
    result = reconcile(desired(**extra), observed(**current))
    assert result.action == Action.NO_CHANGE
    for key in ("password", "passwordProfile", "userPrincipalName", "userType"):
        assert key not in result.payload


def test_immutable_fields_stay_out_when_other_fields_change():
    record = desired(**{"Password": "new-one", "City": "Basel"})
    result = reconcile(record, observed(city="Zurich"))
    assert result.payload == {"city": "Basel"}


def test_flag_update_uses_keyword_mapping():
    assert reconcile(desired(Enabled="no"), observed()).payload == {"accountEnabled": False}
    assert reconcile(desired(Enabled="YES"), observed()).action == Action.NO_CHANGE
    assert reconcile(desired(Enabled="whatever"), observed(accountEnabled=False)).action == Action.NO_CHANGE


def test_mandatory_profile_fields_are_updatable():
    result = reconcile(desired(**{"Display Name": "Ada King"}), observed())
    assert result.payload == {"displayName": "Ada King"}


def test_phone_list_compares_with_first_number():
    record = desired(Phone="+41 44 000")
    assert reconcile(record, observed(businessPhones=["+41 44 000"])).action == Action.NO_CHANGE
    assert reconcile(record, observed(businessPhones=[])).payload == {"businessPhones": ["+41 44 000"]}
