"""Circulation workflows: issuing, returning, fines, memberships and maintenance.

Every function here receives an open SQLAlchemy session. Functions that change
more than one row commit once, so an issue or a return either lands completely
or not at all.
"""
import logging
import uuid
from collections import namedtuple
from decimal import Decimal

from sqlalchemy import or_, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from definitions import (User, Book, Membership, Transaction, ROLE_USER, ROLE_ADMIN,
                         STATUS_ISSUED, STATUS_RETURNED, MEMBERSHIP_ACTIVE, MEMBERSHIP_CANCELLED)
from errors import AuthenticationRequired, PermissionDenied, NotFoundError, ConflictError
from forms import (validate_book, validate_issue, validate_return, validate_fine, validate_membership,
                   validate_membership_update, validate_user, raise_for_errors, ACTION_EXTEND)
from helpers import calculate_fine, membership_end_date, add_months, display_name_from_email

logger = logging.getLogger(__name__)

Identity = namedtuple('Identity', ['id', 'email'])

BOOK_SEARCH_FIELDS = ('title', 'author', 'serial_number')


def commit(db, conflict_message='Record already exists'):
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.info('Integrity error: %s', e.orig)
        raise ConflictError(conflict_message)
    except SQLAlchemyError:
        db.rollback()
        raise


def require_identity(identity):
    if identity is None or not identity.id:
        raise AuthenticationRequired('Authentication required')
    return identity


# ---------- users ----------

def ensure_user(db, identity):
    """Return the users row for the acting identity, creating it on first use."""
    require_identity(identity)
    user = db.get(User, identity.id)
    if user is not None:
        return user

    if not identity.email:
        raise AuthenticationRequired('Identity has no email address')
    user = User(id=identity.id,
                email=identity.email,
                name=display_name_from_email(identity.email),
                role=ROLE_USER)
    db.add(user)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise ConflictError('Another user profile already uses {}'.format(identity.email))
    logger.info('Created user profile for %s', identity.email)
    return user


def current_user(db, identity):
    require_identity(identity)
    user = db.get(User, identity.id)
    if user is None:
        return {'id': identity.id, 'email': identity.email, 'name': display_name_from_email(identity.email),
                'role': ROLE_USER, 'registered': False}
    data = user.to_dict()
    data['registered'] = True
    return data


def require_admin(db, identity):
    require_identity(identity)
    user = db.get(User, identity.id)
    if user is None or user.role != ROLE_ADMIN:
        raise PermissionDenied('Admin access required')
    return user


def list_users(db, identity):
    require_admin(db, identity)
    users = db.query(User).order_by(User.created_at.desc()).all()
    return [user.to_dict() for user in users]


def create_user(db, identity, form, user_id=None):
    require_admin(db, identity)
    raise_for_errors(validate_user(form))

    user = User(id=user_id or str(uuid.uuid4()), name=form.name, email=form.email, role=form.role)
    db.add(user)
    commit(db, 'A user with this email already exists')
    logger.info('User %s added with role %s', user.email, user.role)
    return user.to_dict()


def update_user(db, identity, user_id, form):
    require_admin(db, identity)
    raise_for_errors(validate_user(form))

    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError('User not found')
    user.name = form.name
    user.email = form.email
    user.role = form.role
    commit(db, 'A user with this email already exists')
    logger.info('User %s updated', user.id)
    return user.to_dict()


# ---------- inventory ----------

def _search_filter(column, term):
    return func.lower(column).contains(term.lower(), autoescape=True)


def list_books(db, search=None, field='title'):
    query = db.query(Book)
    if search and search.strip():
        column = getattr(Book, field if field in BOOK_SEARCH_FIELDS else 'title')
        query = query.filter(_search_filter(column, search.strip()))
    books = query.order_by(Book.created_at.desc(), Book.id.desc()).all()
    return [book.to_dict() for book in books]


def list_available_items(db, search=None):
    query = db.query(Book).filter(Book.available == True)
    if search and search.strip():
        term = search.strip()
        query = query.filter(or_(*[_search_filter(getattr(Book, name), term) for name in BOOK_SEARCH_FIELDS]))
    return [book.to_dict() for book in query.order_by(Book.title, Book.id).all()]


def get_book(db, book_id):
    book = db.get(Book, book_id)
    if book is None:
        raise NotFoundError('Book not found')
    return book


def create_book(db, identity, form):
    require_identity(identity)
    raise_for_errors(validate_book(form))

    book = Book(title=form.title, author=form.author, serial_number=form.serial_number,
                type=form.type, available=True)
    db.add(book)
    commit(db, 'Serial number already exists')
    logger.info('Added %s %s (%s)', book.type, book.serial_number, book.title)
    return book.to_dict()


def _open_transaction(db, book_id):
    return (db.query(Transaction)
            .filter((Transaction.book_id == book_id) & (Transaction.status == STATUS_ISSUED))
            .first())


def update_book(db, identity, book_id, form):
    require_identity(identity)
    raise_for_errors(validate_book(form))

    book = get_book(db, book_id)
    if form.available and _open_transaction(db, book.id) is not None:
        raise ConflictError('Book is currently issued and cannot be marked available')

    book.title = form.title
    book.author = form.author
    book.serial_number = form.serial_number
    book.type = form.type
    if form.available is not None:
        book.available = form.available
    commit(db, 'Serial number already exists')
    logger.info('Updated %s %s', book.type, book.serial_number)
    return book.to_dict()


# ---------- transactions ----------

def _transaction_details(db, transaction_id):
    row = (
        db.query(Transaction, Book, User)
        .join(Book, Transaction.book_id == Book.id)
        .join(User, Transaction.user_id == User.id)
        .filter(Transaction.id == transaction_id)
        .first()
    )
    if row is None:
        raise NotFoundError('Transaction not found')
    return row


def transaction_to_dict(transaction, book, user=None):
    data = transaction.to_dict()
    data['book'] = {
        'id': book.id,
        'title': book.title,
        'author': book.author,
        'serial_number': book.serial_number,
        'type': book.type,
    }
    if user is not None:
        data['user'] = {'name': user.name, 'email': user.email}
    return data


def get_transaction(db, identity, transaction_id):
    require_identity(identity)
    return transaction_to_dict(*_transaction_details(db, transaction_id))


def issue_item(db, identity, form, today, loan_period_days=15):
    raise_for_errors(validate_issue(form, today, loan_period_days))
    user = ensure_user(db, identity)

    book = get_book(db, form.book_id)
    if not book.available:
        raise ConflictError('Book is not available for issue')

    transaction = Transaction(book_id=book.id,
                              user_id=user.id,
                              issue_date=form.issue_date,
                              expected_return_date=form.return_date,
                              remarks=form.remarks or None,
                              status=STATUS_ISSUED)
    db.add(transaction)

    # Guarded update: another issue may have taken the item since it was read.
    updated = (db.query(Book)
               .filter((Book.id == book.id) & (Book.available == True))
               .update({Book.available: False}, synchronize_session='fetch'))
    if updated != 1:
        db.rollback()
        raise ConflictError('Book is not available for issue')

    commit(db)
    logger.info('Issued book %s to %s, due %s', book.serial_number, user.email, form.return_date)
    return transaction_to_dict(transaction, book)


def list_borrowed(db, identity):
    require_identity(identity)
    rows = (
        db.query(Transaction, Book)
        .join(Book, Transaction.book_id == Book.id)
        .filter((Transaction.status == STATUS_ISSUED) & (Transaction.user_id == identity.id))
        .order_by(Transaction.expected_return_date, Transaction.id)
        .all()
    )
    return [transaction_to_dict(transaction, book) for transaction, book in rows]


def return_item(db, identity, form, fine_per_day=Decimal('1.00')):
    require_identity(identity)
    raise_for_errors(validate_return(form))

    transaction, book, _ = _transaction_details(db, form.transaction_id)
    if transaction.user_id != identity.id:
        raise NotFoundError('Transaction not found')
    if transaction.status != STATUS_ISSUED:
        raise ConflictError('Book has already been returned')

    fine = calculate_fine(form.actual_return_date, transaction.expected_return_date, fine_per_day)
    transaction.actual_return_date = form.actual_return_date
    transaction.fine_amount = fine
    transaction.status = STATUS_RETURNED
    book.available = True
    commit(db)

    logger.info('Returned book %s (transaction %s), fine %s', book.serial_number, transaction.id, fine)
    data = transaction_to_dict(transaction, book)
    data['fine_due'] = fine > 0
    return data


def settle_fine(db, identity, transaction_id, form):
    require_identity(identity)
    transaction, book, user = _transaction_details(db, transaction_id)
    if transaction.status != STATUS_RETURNED:
        raise ConflictError('Book has not been returned yet')

    errors = validate_fine(form, transaction.fine_amount or 0)
    raise_for_errors(errors, errors.get('fine_paid', ''))

    transaction.fine_paid = form.fine_paid
    transaction.remarks = form.remarks or None
    commit(db)
    logger.info('Fine settlement recorded for transaction %s (paid=%s)', transaction.id, form.fine_paid)
    return transaction_to_dict(transaction, book, user)


# ---------- memberships ----------

def list_memberships(db, identity):
    require_identity(identity)
    rows = (
        db.query(Membership, User)
        .join(User, Membership.user_id == User.id)
        .order_by(Membership.created_at.desc(), Membership.id.desc())
        .all()
    )
    return [_membership_to_dict(membership, user) for membership, user in rows]


def _membership_to_dict(membership, user):
    data = membership.to_dict()
    data['user'] = {'name': user.name, 'email': user.email}
    return data


def add_membership(db, identity, form, today):
    raise_for_errors(validate_membership(form, today))
    user = ensure_user(db, identity)

    membership = Membership(user_id=user.id,
                            membership_number=form.membership_number,
                            start_date=form.start_date,
                            end_date=membership_end_date(form.start_date, form.duration),
                            status=MEMBERSHIP_ACTIVE)
    db.add(membership)
    commit(db, 'Membership number already exists')
    logger.info('Membership %s added until %s', membership.membership_number, membership.end_date)
    return _membership_to_dict(membership, user)


def _find_membership(db, membership_number):
    number = (membership_number or '').strip()
    row = (
        db.query(Membership, User)
        .join(User, Membership.user_id == User.id)
        .filter(Membership.membership_number == number)
        .first()
    )
    if row is None:
        raise NotFoundError('Membership not found')
    return row


def find_membership(db, identity, membership_number):
    require_identity(identity)
    return _membership_to_dict(*_find_membership(db, membership_number))


def extend_membership(db, identity, membership_number, duration, today):
    require_identity(identity)
    membership, user = _find_membership(db, membership_number)
    basis = max(membership.end_date, today)
    membership.end_date = add_months(basis, duration)
    membership.status = MEMBERSHIP_ACTIVE
    commit(db)
    logger.info('Membership %s extended until %s', membership.membership_number, membership.end_date)
    return _membership_to_dict(membership, user)


def cancel_membership(db, identity, membership_number):
    require_identity(identity)
    membership, user = _find_membership(db, membership_number)
    membership.status = MEMBERSHIP_CANCELLED
    commit(db)
    logger.info('Membership %s cancelled', membership.membership_number)
    return _membership_to_dict(membership, user)


def update_membership(db, identity, membership_number, form, today):
    require_identity(identity)
    raise_for_errors(validate_membership_update(form))
    if form.action == ACTION_EXTEND:
        return extend_membership(db, identity, membership_number, form.duration, today)
    return cancel_membership(db, identity, membership_number)
