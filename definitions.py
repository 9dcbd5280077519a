from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, ForeignKey, Boolean, Date, DateTime, DECIMAL, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()

ROLE_USER = 'user'
ROLE_ADMIN = 'admin'
ROLES = (ROLE_USER, ROLE_ADMIN)

ITEM_BOOK = 'book'
ITEM_MOVIE = 'movie'
ITEM_TYPES = (ITEM_BOOK, ITEM_MOVIE)

MEMBERSHIP_ACTIVE = 'active'
MEMBERSHIP_CANCELLED = 'cancelled'

STATUS_ISSUED = 'issued'
STATUS_RETURNED = 'returned'
TRANSACTION_STATUSES = (STATUS_ISSUED, STATUS_RETURNED)


def _now():
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value is not None else None


class User(Base):
    __tablename__ = 'users'

    id = Column(String(36), primary_key=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    role = Column(String(16), nullable=False, default=ROLE_USER)
    created_at = Column(DateTime, nullable=False, default=_now)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'role': self.role,
            'created_at': _iso(self.created_at),
        }


class Book(Base):
    """A loanable item; `type` tells books and movies apart."""
    __tablename__ = 'books'

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    author = Column(String(255), nullable=False)
    serial_number = Column(String(64), nullable=False, unique=True)
    type = Column(String(16), nullable=False, default=ITEM_BOOK)
    available = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=_now)

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'author': self.author,
            'serial_number': self.serial_number,
            'type': self.type,
            'available': self.available,
            'created_at': _iso(self.created_at),
        }


class Membership(Base):
    __tablename__ = 'memberships'

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey('users.id'), nullable=False)
    membership_number = Column(String(32), nullable=False, unique=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    status = Column(String(16), nullable=False, default=MEMBERSHIP_ACTIVE)
    created_at = Column(DateTime, nullable=False, default=_now)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'membership_number': self.membership_number,
            'start_date': _iso(self.start_date),
            'end_date': _iso(self.end_date),
            'status': self.status,
            'created_at': _iso(self.created_at),
        }


class Transaction(Base):
    __tablename__ = 'transactions'

    id = Column(Integer, primary_key=True, autoincrement=True)
    book_id = Column(Integer, ForeignKey('books.id'), nullable=False)
    user_id = Column(String(36), ForeignKey('users.id'), nullable=False)
    issue_date = Column(Date, nullable=False)
    expected_return_date = Column(Date, nullable=False)
    actual_return_date = Column(Date, nullable=True)
    status = Column(String(16), nullable=False, default=STATUS_ISSUED)
    fine_amount = Column(DECIMAL(10, 2), nullable=False, default=0)
    fine_paid = Column(Boolean, nullable=False, default=False)
    remarks = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=_now)

    def to_dict(self):
        return {
            'id': self.id,
            'book_id': self.book_id,
            'user_id': self.user_id,
            'issue_date': _iso(self.issue_date),
            'expected_return_date': _iso(self.expected_return_date),
            'actual_return_date': _iso(self.actual_return_date),
            'status': self.status,
            'fine_amount': float(self.fine_amount or 0),
            'fine_paid': self.fine_paid,
            'remarks': self.remarks,
            'created_at': _iso(self.created_at),
        }
