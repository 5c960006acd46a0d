import pytest

from m365_tenant_sync.safety.guardian import SafetyGuardian, SafetyViolation

BASE = "https://graph.microsoft.com/v1.0"
USER_ID = "11111111-2222-3333-4444-555555555555"


@pytest.mark.parametrize("method, url", [
    ("POST", f"{BASE}/users"),
    ("PATCH", f"{BASE}/users/{USER_ID}"),
    ("POST", f"{BASE}/users/{USER_ID}/assignLicense"),
    ("POST", f"{BASE}/groupSettings"),
    ("PATCH", f"{BASE}/groupSettings/{USER_ID}"),
])
def test_allow_listed_writes_pass(method, url):
    guardian = SafetyGuardian()
    assert guardian.validate_request(method, url, {"city": "Basel"}) is True
    assert len(guardian.writes) == 1


def test_reads_pass_and_are_not_recorded_as_writes():
    guardian = SafetyGuardian()
    assert guardian.validate_request("GET", f"{BASE}/users?$top=999") is True
    assert guardian.writes == []


@pytest.mark.parametrize("method, url", [
    ("DELETE", f"{BASE}/users/{USER_ID}"),
    ("PUT", f"{BASE}/users/{USER_ID}"),
    ("POST", f"{BASE}/groups"),
    ("PATCH", f"{BASE}/users/ada@contoso.com/manager"),
    ("POST", f"{BASE}/users/{USER_ID}/authentication/methods/x/resetPassword"),
])
def test_other_writes_are_blocked(method, url):
    guardian = SafetyGuardian()
    with pytest.raises(SafetyViolation):
        guardian.validate_request(method, url)
    assert guardian.get_audit_record()["write_guardian"]["status"] == "VIOLATIONS_DETECTED"


@pytest.mark.parametrize("field", ["passwordProfile", "userPrincipalName", "userType"])
def test_updates_may_not_touch_protected_fields(field):
    guardian = SafetyGuardian()
    with pytest.raises(SafetyViolation):
        guardian.validate_request("PATCH", f"{BASE}/users/{USER_ID}", {field: "x"})
    assert guardian.writes == []


def test_creation_may_carry_a_password():
    guardian = SafetyGuardian()
    body = {"userPrincipalName": "a@b.c", "passwordProfile": {"password": "x"}}
    assert guardian.validate_request("POST", f"{BASE}/users", body) is True


def test_dry_run_plans_instead_of_sending():
    guardian = SafetyGuardian(dry_run=True)
    assert guardian.validate_request("POST", f"{BASE}/users", {"a": 1}) is False
    assert guardian.validate_request("GET", f"{BASE}/users") is True
    audit = guardian.get_audit_record()["write_guardian"]
    assert audit["mode"] == "DRY-RUN"
    assert audit["writes"] == 1
    assert audit["status"] == "CLEAN"
