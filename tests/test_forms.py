from datetime import date, timedelta
from decimal import Decimal

from forms import (BookForm, IssueForm, ReturnForm, FineForm, MembershipForm, MembershipUpdateForm,
                   UserForm, validate_book, validate_issue, validate_return, validate_fine,
                   validate_membership, validate_membership_update, validate_user)

TODAY = date(2024, 1, 10)


def test_book_form_requires_fields():
    errors = validate_book(BookForm.from_payload({}))
    assert set(errors) == {'title', 'author', 'serial_number'}


def test_book_form_rejects_bad_serial_and_type():
    form = BookForm.from_payload({'title': 'Dune', 'author': 'Herbert',
                                  'serial_number': 'BK_01/2024', 'type': 'magazine'})
    errors = validate_book(form)
    assert set(errors) == {'serial_number', 'type'}


def test_book_form_valid():
    form = BookForm.from_payload({'title': ' Dune ', 'author': 'Herbert',
                                  'serial_number': 'BK-01-2024', 'type': 'movie', 'available': 'false'})
    assert validate_book(form) == {}
    assert form.title == 'Dune'
    assert form.available is False


def test_issue_form_valid_at_full_loan_period():
    form = IssueForm(book_id=1, issue_date=TODAY, return_date=TODAY + timedelta(days=15))
    assert validate_issue(form, TODAY) == {}


def test_issue_form_rejects_past_issue_date():
    form = IssueForm(book_id=1, issue_date=TODAY - timedelta(days=1), return_date=TODAY)
    assert 'issue_date' in validate_issue(form, TODAY)


def test_issue_form_rejects_long_loan():
    form = IssueForm(book_id=1, issue_date=TODAY, return_date=TODAY + timedelta(days=16))
    assert 'return_date' in validate_issue(form, TODAY)


def test_issue_form_rejects_return_before_issue():
    form = IssueForm(book_id=1, issue_date=TODAY + timedelta(days=2), return_date=TODAY + timedelta(days=1))
    assert 'return_date' in validate_issue(form, TODAY)


def test_issue_form_requires_book():
    form = IssueForm.from_payload({'issue_date': '2024-01-10', 'return_date': '2024-01-20'})
    assert set(validate_issue(form, TODAY)) == {'book_id'}


def test_return_form_defaults_to_today():
    form = ReturnForm.from_payload({'transaction_id': '4'}, TODAY)
    assert form.transaction_id == 4
    assert form.actual_return_date == TODAY
    assert validate_return(form) == {}


def test_return_form_requires_transaction():
    assert 'transaction_id' in validate_return(ReturnForm.from_payload({}, TODAY))


def test_fine_gate():
    assert 'fine_paid' in validate_fine(FineForm(fine_paid=False), Decimal('5.00'))
    assert validate_fine(FineForm(fine_paid=True), Decimal('5.00')) == {}
    assert validate_fine(FineForm(fine_paid=False), Decimal('0.00')) == {}
    assert validate_fine(FineForm(fine_paid=True), Decimal('0.00')) == {}


def test_membership_form_generates_number():
    form = MembershipForm.from_payload({'duration': '12'}, TODAY, lambda: 'MEM-000001-001')
    assert form.membership_number == 'MEM-000001-001'
    assert form.start_date == TODAY
    assert validate_membership(form, TODAY) == {}


def test_membership_form_rejects_bad_duration_and_past_start():
    form = MembershipForm(membership_number='MEM-1', start_date=TODAY - timedelta(days=1), duration=9)
    assert set(validate_membership(form, TODAY)) == {'start_date', 'duration'}


def test_membership_update_form():
    assert validate_membership_update(MembershipUpdateForm.from_payload({'action': 'cancel'})) == {}
    assert 'action' in validate_membership_update(MembershipUpdateForm(action='pause'))
    assert 'duration' in validate_membership_update(MembershipUpdateForm(action='extend', duration=1))


def test_user_form():
    assert validate_user(UserForm.from_payload({'name': 'Ann', 'email': 'ann@example.com'})) == {}
    errors = validate_user(UserForm.from_payload({'name': '', 'email': 'nope', 'role': 'root'}))
    assert set(errors) == {'name', 'email', 'role'}


def test_book_form_leaves_availability_unset_when_absent():
    assert BookForm.from_payload({'title': 'Dune'}).available is None
    assert BookForm.from_payload({'available': True}).available is True


def test_zero_duration_is_rejected():
    form = MembershipForm.from_payload({'duration': 0}, TODAY, lambda: 'MEM-1')
    assert form.duration == 0
    assert 'duration' in validate_membership(form, TODAY)

    update = MembershipUpdateForm.from_payload({'action': 'extend', 'duration': '0'})
    assert 'duration' in validate_membership_update(update)


def test_duration_defaults_to_six_months():
    assert MembershipForm.from_payload({}, TODAY, lambda: 'MEM-1').duration == 6
    assert MembershipUpdateForm.from_payload({'action': 'extend'}).duration == 6


def test_return_form_requires_date():
    assert 'actual_return_date' in validate_return(ReturnForm(transaction_id=1))
