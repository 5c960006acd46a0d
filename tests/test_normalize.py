import pytest

from m365_tenant_sync.sync.fields import FIELDS_BY_NAME
from m365_tenant_sync.sync.normalize import (
    normalize_date,
    normalize_region,
    normalize_value,
    parse_flag,
    to_graph_value,
)


@pytest.mark.parametrize("raw, expected", [
    ("united states", "UN"),
    ("us", "US"),
    (" ch ", "CH"),
    ("", ""),
])
def test_region_takes_first_two_characters(raw, expected):
    assert normalize_region(raw) == expected


@pytest.mark.parametrize("raw", [
    "45000",
    "45000.0",
    "15-03-2023",
    "15/03/2023",
    "15.03.2023",
    "03/15/2023",
    "2023/03/15",
    "2023-03-15",
    "2023-03-15T00:00:00Z",
    "2023-03-15 00:00:00",
    "15 Mar 2023",
])
def test_date_variants_normalize_to_same_iso_day(raw):
    assert normalize_date(raw) == "2023-03-15"


def test_day_first_wins_over_month_first_when_ambiguous():
    assert normalize_date("04/03/2023") == "2023-03-04"


def test_unparseable_date_falls_back_to_raw():
    assert normalize_date(" next monday ") == "next monday"
    assert normalize_date("") == ""


@pytest.mark.parametrize("raw, expected", [
    ("true", True), ("TRUE", True), ("Yes", True), ("1", True),
    ("false", False), ("No", False), ("0", False), ("FALSE", False),
])
def test_flag_keywords(raw, expected):
    assert parse_flag(raw, default=not expected) is expected


def test_unrecognized_flag_uses_default():
    assert parse_flag("maybe", default=True) is True
    assert parse_flag("", default=False) is False


def test_graph_rendering():
    assert to_graph_value(FIELDS_BY_NAME["employeeHireDate"], "2023-03-15") == "2023-03-15T00:00:00Z"
    assert to_graph_value(FIELDS_BY_NAME["businessPhones"], "+41 44 000 00 00") == ["+41 44 000 00 00"]
    assert to_graph_value(FIELDS_BY_NAME["accountEnabled"], "no") is False
    assert to_graph_value(FIELDS_BY_NAME["jobTitle"], "Engineer") == "Engineer"


def test_phone_lists_normalize_to_first_entry():
    phones = FIELDS_BY_NAME["businessPhones"]
    assert normalize_value(phones, ["+1 555 0100", "+1 555 0101"]) == "+1 555 0100"
    assert normalize_value(phones, []) == ""


@pytest.mark.parametrize("raw", ["1_000", "1e3", "-45000", "45_000"])
def test_numeric_literals_are_not_serials(raw):
    assert normalize_date(raw) == raw


def test_fractional_serial_keeps_the_day():
    assert normalize_date("45000.75") == "2023-03-15"
