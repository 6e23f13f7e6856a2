import pytest

from civiclink.utils.time_utils import utc_now
from civiclink.utils.validation_utils import normalize_phone, validate_phone_number


@pytest.mark.parametrize("raw", [
    "9990001111",
    "09990001111",
    "919990001111",
    "+919990001111",
    " +91 99900-01111 ",
    "(999) 000-1111",
])
def test_indian_mobile_numbers_share_one_form(raw):
    assert normalize_phone(raw) == "+919990001111"


def test_unrecognized_numbers_are_only_stripped():
    assert normalize_phone("12345") == "12345"
    assert normalize_phone("+1 555-0100") == "+15550100"
    assert normalize_phone(None) is None
    assert normalize_phone("") == ""


def test_canonical_form_is_valid():
    assert validate_phone_number(normalize_phone("9990001111"))
    assert not validate_phone_number(normalize_phone("12345"))


def test_utc_now_is_naive_with_millisecond_precision():
    now = utc_now()

    assert now.tzinfo is None
    assert now.microsecond % 1000 == 0
