from datetime import date
from decimal import Decimal

import pytest

from errors import ValidationError
from helpers import (calculate_fine, add_months, membership_end_date, generate_membership_number,
                     is_valid_serial_number, display_name_from_email, to_date)


def test_no_fine_on_expected_date():
    assert calculate_fine(date(2024, 1, 10), date(2024, 1, 10)) == Decimal('0.00')


def test_fine_is_one_per_late_day():
    assert calculate_fine(date(2024, 1, 15), date(2024, 1, 10)) == Decimal('5.00')


def test_early_return_has_no_fine():
    assert calculate_fine(date(2024, 1, 5), date(2024, 1, 10)) == Decimal('0.00')


def test_fine_rate_is_configurable():
    assert calculate_fine(date(2024, 1, 13), date(2024, 1, 10), Decimal('0.50')) == Decimal('1.50')


@pytest.mark.parametrize("duration, expected", [
    (6, date(2024, 7, 1)),
    (12, date(2025, 1, 1)),
    (24, date(2026, 1, 1)),
])
def test_membership_end_date(duration, expected):
    assert membership_end_date(date(2024, 1, 1), duration) == expected


def test_membership_end_date_rejects_other_durations():
    with pytest.raises(ValidationError):
        membership_end_date(date(2024, 1, 1), 3)


def test_add_months_clamps_to_month_end():
    assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
    assert add_months(date(2023, 8, 31), 6) == date(2024, 2, 29)
    assert add_months(date(2024, 11, 15), 2) == date(2025, 1, 15)


def test_serial_number_pattern():
    assert is_valid_serial_number('BK-01-2024')
    assert not is_valid_serial_number('BK_01/2024')
    assert not is_valid_serial_number('')
    assert not is_valid_serial_number('BK 01')


def test_membership_number_format():
    class FixedRandom:
        def randrange(self, stop):
            return 7

    number = generate_membership_number(now=1718000123.5, rng=FixedRandom())
    assert number == 'MEM-123500-007'


def test_generated_membership_numbers_look_right():
    number = generate_membership_number()
    prefix, stamp, suffix = number.split('-')
    assert prefix == 'MEM'
    assert len(stamp) == 6 and stamp.isdigit()
    assert len(suffix) == 3 and suffix.isdigit()


def test_display_name_from_email():
    assert display_name_from_email('jane.doe@example.com') == 'jane.doe'


def test_to_date():
    assert to_date('2024-03-01') == date(2024, 3, 1)
    assert to_date('') is None
    with pytest.raises(ValidationError) as excinfo:
        to_date('01/03/2024', 'issue_date')
    assert 'issue_date' in excinfo.value.fields
