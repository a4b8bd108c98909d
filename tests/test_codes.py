import pytest
from ulid import ULID

from reservations.codes import CODE_LENGTH, ULID_LENGTH, random_booking_code
from reservations.exceptions import BookingCodeError


def test_code_is_fixed_length_and_upper_case():
    code = random_booking_code()

    assert len(code) == CODE_LENGTH
    assert code == code.upper()
    ULID.from_str(code[:ULID_LENGTH])


def test_prefix_and_suffix_wrap_the_code():
    code = random_booking_code(prefix="hq-", suffix="-eu")

    assert code.startswith("HQ-")
    assert code.endswith("-EU")
    assert len(code) == CODE_LENGTH


def test_codes_are_unique():
    assert len({random_booking_code() for _ in range(200)}) == 200


@pytest.mark.parametrize(
    "prefix,suffix",
    [("P" * 38, ""), ("", "S" * 38), ("P" * 19, "S" * 19), ("P" * 64, "")],
)
def test_affixes_must_leave_room_for_the_identifier(prefix, suffix):
    with pytest.raises(BookingCodeError) as excinfo:
        random_booking_code(prefix=prefix, suffix=suffix)

    assert excinfo.value.reason == "invalid_code"


def test_longest_allowed_affixes():
    code = random_booking_code(prefix="P" * 20, suffix="S" * 17)

    assert len(code) == CODE_LENGTH
    ULID.from_str(code[20:20 + ULID_LENGTH])
