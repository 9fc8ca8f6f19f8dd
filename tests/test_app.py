import pytest

from app import validate_booking


@pytest.mark.parametrize("name,phone,age,expected", [
    ("Ana", "5550101", 18, True),
    ("Ana", " 5550101 ", "42", True),
    ("", "5550101", 30, False),
    ("   ", "5550101", 30, False),
    ("Ana", "555-0101", 30, False),
    ("Ana", "", 30, False),
    ("Ana", "5550101", "abc", False),
    ("Ana", "5550101", 17, False),
])
def test_validate_booking(name, phone, age, expected):
    ok, msg = validate_booking(name, phone, age)
    assert ok is expected
    assert (msg == "") is expected


def test_validate_booking_underage_message():
    assert validate_booking("Ana", "5550101", 17) == (False, "You must be 18 or above to book a room.")
