import calendar
import random
import re
import time
from datetime import date, datetime
from decimal import Decimal

from definitions import Transaction, Book, STATUS_RETURNED
from errors import ValidationError

SERIAL_NUMBER_PATTERN = re.compile(r'^[A-Za-z0-9-]+$')
MEMBERSHIP_DURATIONS = (6, 12, 24)
CENTS = Decimal('0.01')


def to_date(value, field='date'):
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError:
        raise ValidationError('Invalid date', {field: 'Expected a YYYY-MM-DD date'})


def calculate_fine(actual_return_date, expected_return_date, per_day=Decimal('1.00')):
    """Late fee for a return: a flat amount per day past the expected date, never negative."""
    days_late = max(0, (actual_return_date - expected_return_date).days)
    return (Decimal(days_late) * Decimal(per_day)).quantize(CENTS)


def add_months(start, months):
    """Calendar month addition, clamped to the last day of the target month."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def membership_end_date(start_date, duration_months):
    if int(duration_months) not in MEMBERSHIP_DURATIONS:
        raise ValidationError('Invalid duration', {'duration': 'Duration must be 6, 12 or 24 months'})
    return add_months(start_date, int(duration_months))


def generate_membership_number(now=None, rng=None):
    # MEM-<last 6 digits of the millisecond clock>-<3 random digits>
    millis = int((now if now is not None else time.time()) * 1000)
    rng = rng or random
    return 'MEM-{}-{:03d}'.format(str(millis)[-6:], rng.randrange(1000))


def is_valid_serial_number(value):
    return bool(value) and SERIAL_NUMBER_PATTERN.match(value) is not None


def display_name_from_email(email):
    return (email or '').split('@')[0]


def get_user_unpaid_fines(db, user_id):
    # Returned loans whose fine is still outstanding
    rows = (
        db.query(Transaction, Book.title)
        .join(Book, Transaction.book_id == Book.id)
        .filter((Transaction.user_id == user_id) &
                (Transaction.status == STATUS_RETURNED) &
                (Transaction.fine_amount > 0) &
                (Transaction.fine_paid == False))
        .order_by(Transaction.id)
        .all()
    )

    return [
        {
            'transaction_id': transaction.id,
            'title': title,
            'amount': float(transaction.fine_amount),
            'paid': transaction.fine_paid,
        }
        for transaction, title in rows
    ]
