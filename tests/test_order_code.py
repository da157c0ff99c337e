from datetime import datetime, timezone

import pytest

from shared.errors import InvalidInput
from services.order_service.order_code import format_order_code, parse_order_code, verify_order_code


def test_format_matches_documented_example():
    assert format_order_code(31, datetime(2025, 10, 5, 14, 0, tzinfo=timezone.utc)) == "#05102500031"


def test_naive_datetimes_are_treated_as_utc():
    assert format_order_code(7, datetime(2025, 1, 9, 23, 59)) == "#09012500007"


def test_five_digit_id_fills_the_slot():
    created = datetime(2025, 1, 1, tzinfo=timezone.utc)
    code = format_order_code(12345, created)
    assert code == "#01012512345"
    assert parse_order_code(code) == 12345
    verify_order_code(code, 12345, created)


def test_ids_above_five_digits_wrap():
    created = datetime(2025, 1, 1, tzinfo=timezone.utc)
    assert format_order_code(123456, created) == "#01012523456"
    assert format_order_code(100000, created) == "#01012500000"


@pytest.mark.parametrize("order_id", [1, 9, 31, 4242, 99999])
def test_round_trip(order_id):
    code = format_order_code(order_id, datetime(2024, 2, 29, tzinfo=timezone.utc))
    assert parse_order_code(code) == order_id


@pytest.mark.parametrize(
    "code",
    ["", "0510250031", "#051025031", "#05102500031x", "#AB10250031", "#05102500000", "#051025000310", None],
)
def test_parse_rejects_malformed_codes(code):
    with pytest.raises(InvalidInput):
        parse_order_code(code)


def test_verify_rejects_a_code_from_another_day():
    created = datetime(2025, 10, 5, tzinfo=timezone.utc)
    with pytest.raises(InvalidInput):
        verify_order_code("#06102500031", 31, created)
