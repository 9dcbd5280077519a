"""Per-workflow form objects and the pure functions that validate them.

Each ``validate_*`` function returns a mapping of field name to message; an
empty mapping means the form can be submitted.
"""
import re
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from definitions import ITEM_TYPES, ITEM_BOOK, ROLES, ROLE_USER
from errors import ValidationError
from helpers import to_date, is_valid_serial_number, MEMBERSHIP_DURATIONS

EMAIL_PATTERN = re.compile(r'^[^@\s]+@[^@\s]+$')

ACTION_EXTEND = 'extend'
ACTION_CANCEL = 'cancel'


def _text(payload, key, default=''):
    value = payload.get(key)
    if value is None:
        return default
    return str(value).strip()


def _flag(payload, key, default=False):
    value = payload.get(key, default)
    if isinstance(value, str):
        return value.lower() in ('true', '1', 'yes', 'on')
    return bool(value)


def _int(payload, key):
    value = payload.get(key)
    if value is None or value == '':
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError('Invalid number', {key: 'Expected a whole number'})


def _duration(payload):
    value = _int(payload, 'duration')
    return 6 if value is None else value


def raise_for_errors(errors, message='Please fill in all required fields'):
    if errors:
        raise ValidationError(message, errors)


@dataclass
class BookForm:
    title: str = ''
    author: str = ''
    serial_number: str = ''
    type: str = ITEM_BOOK
    available: Optional[bool] = None

    @classmethod
    def from_payload(cls, payload):
        return cls(
            title=_text(payload, 'title'),
            author=_text(payload, 'author'),
            serial_number=_text(payload, 'serial_number'),
            type=_text(payload, 'type', ITEM_BOOK) or ITEM_BOOK,
            available=_flag(payload, 'available') if 'available' in payload else None,
        )


def validate_book(form):
    errors = {}
    if not form.title:
        errors['title'] = 'Title is required'
    if not form.author:
        errors['author'] = 'Author is required'
    if not form.serial_number:
        errors['serial_number'] = 'Serial number is required'
    elif not is_valid_serial_number(form.serial_number):
        errors['serial_number'] = 'Serial number may only contain letters, digits and hyphens'
    if form.type not in ITEM_TYPES:
        errors['type'] = 'Type must be book or movie'
    return errors


@dataclass
class IssueForm:
    book_id: Optional[int] = None
    issue_date: Optional[object] = None
    return_date: Optional[object] = None
    remarks: str = ''

    @classmethod
    def from_payload(cls, payload):
        return cls(
            book_id=_int(payload, 'book_id'),
            issue_date=to_date(payload.get('issue_date'), 'issue_date'),
            return_date=to_date(payload.get('return_date'), 'return_date'),
            remarks=_text(payload, 'remarks'),
        )


def validate_issue(form, today, loan_period_days=15):
    errors = {}
    if form.book_id is None:
        errors['book_id'] = 'Please select a book to issue'
    if form.issue_date is None:
        errors['issue_date'] = 'Issue date is required'
    elif form.issue_date < today:
        errors['issue_date'] = 'Issue date cannot be earlier than today'
    if form.return_date is None:
        errors['return_date'] = 'Return date is required'
    elif form.issue_date is not None:
        if form.return_date < form.issue_date:
            errors['return_date'] = 'Return date cannot be earlier than issue date'
        elif form.return_date > form.issue_date + timedelta(days=loan_period_days):
            errors['return_date'] = 'Return date cannot be more than {} days from issue date'.format(
                loan_period_days)
    return errors


@dataclass
class ReturnForm:
    transaction_id: Optional[int] = None
    actual_return_date: Optional[object] = None

    @classmethod
    def from_payload(cls, payload, today):
        return cls(
            transaction_id=_int(payload, 'transaction_id'),
            actual_return_date=to_date(payload.get('actual_return_date'), 'actual_return_date') or today,
        )


def validate_return(form):
    # Any return date is accepted, including past and future ones; it only has to be present.
    errors = {}
    if form.transaction_id is None:
        errors['transaction_id'] = 'Please select a book to return'
    if form.actual_return_date is None:
        errors['actual_return_date'] = 'Return date is required'
    return errors


@dataclass
class FineForm:
    fine_paid: bool = False
    remarks: str = ''

    @classmethod
    def from_payload(cls, payload):
        return cls(fine_paid=_flag(payload, 'fine_paid'), remarks=_text(payload, 'remarks'))


def validate_fine(form, fine_amount):
    if fine_amount > 0 and not form.fine_paid:
        return {'fine_paid': 'Please confirm payment of the fine to complete the transaction'}
    return {}


@dataclass
class MembershipForm:
    membership_number: str = ''
    start_date: Optional[object] = None
    duration: Optional[int] = 6

    @classmethod
    def from_payload(cls, payload, today, number_factory):
        return cls(
            membership_number=_text(payload, 'membership_number') or number_factory(),
            start_date=to_date(payload.get('start_date'), 'start_date') or today,
            duration=_duration(payload),
        )


def validate_membership(form, today):
    errors = {}
    if not form.membership_number:
        errors['membership_number'] = 'Membership number is required'
    if form.start_date is None:
        errors['start_date'] = 'Start date is required'
    elif form.start_date < today:
        errors['start_date'] = 'Start date cannot be earlier than today'
    if form.duration not in MEMBERSHIP_DURATIONS:
        errors['duration'] = 'Duration must be 6, 12 or 24 months'
    return errors


@dataclass
class MembershipUpdateForm:
    action: str = ACTION_EXTEND
    duration: Optional[int] = 6

    @classmethod
    def from_payload(cls, payload):
        return cls(
            action=_text(payload, 'action', ACTION_EXTEND) or ACTION_EXTEND,
            duration=_duration(payload),
        )


def validate_membership_update(form):
    errors = {}
    if form.action not in (ACTION_EXTEND, ACTION_CANCEL):
        errors['action'] = 'Action must be extend or cancel'
    elif form.action == ACTION_EXTEND and form.duration not in MEMBERSHIP_DURATIONS:
        errors['duration'] = 'Duration must be 6, 12 or 24 months'
    return errors


@dataclass
class UserForm:
    name: str = ''
    email: str = ''
    role: str = ROLE_USER

    @classmethod
    def from_payload(cls, payload):
        return cls(
            name=_text(payload, 'name'),
            email=_text(payload, 'email'),
            role=_text(payload, 'role', ROLE_USER) or ROLE_USER,
        )


def validate_user(form):
    errors = {}
    if not form.name:
        errors['name'] = 'Name is required'
    if not form.email:
        errors['email'] = 'Email is required'
    elif not EMAIL_PATTERN.match(form.email):
        errors['email'] = 'Email address is not valid'
    if form.role not in ROLES:
        errors['role'] = 'Role must be user or admin'
    return errors
