from sqlalchemy import func

from definitions import Book, Membership, Transaction, User, MEMBERSHIP_ACTIVE
from workflow import transaction_to_dict


def transaction_report(db, start_date=None, end_date=None, status=None, item_type=None):
    query = (
        db.query(Transaction, Book, User)
        .join(Book, Transaction.book_id == Book.id)
        .join(User, Transaction.user_id == User.id)
    )

    if start_date:
        query = query.filter(Transaction.issue_date >= start_date)
    if end_date:
        query = query.filter(Transaction.issue_date <= end_date)
    if status:
        query = query.filter(Transaction.status == status)
    if item_type:
        query = query.filter(Book.type == item_type)

    rows = query.order_by(Transaction.created_at.desc(), Transaction.id.desc()).all()
    transactions = [transaction_to_dict(transaction, book, user) for transaction, book, user in rows]
    total_fines = sum(transaction['fine_amount'] for transaction in transactions)

    return {
        'transactions': transactions,
        'count': len(transactions),
        'total_fines': round(total_fines, 2),
    }


def dashboard_stats(db):
    return {
        'total_books': db.query(func.count(Book.id)).scalar(),
        'books_issued': db.query(func.count(Book.id)).filter(Book.available == False).scalar(),
        'active_members': db.query(func.count(Membership.id))
                            .filter(Membership.status == MEMBERSHIP_ACTIVE).scalar(),
    }
