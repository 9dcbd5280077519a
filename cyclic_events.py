import logging

from sqlalchemy import select

from definitions import Book, Transaction, STATUS_ISSUED

logger = logging.getLogger(__name__)


def reconcile_availability(db):
    """Bring every item's availability flag in line with its open transactions.

    An item referenced by an issued transaction must be unavailable, every other
    item must be available. Returns the number of corrected items.
    """
    logger.info("availability reconciliation start")
    open_book_ids = set(db.execute(
        select(Transaction.book_id).where(Transaction.status == STATUS_ISSUED)
    ).scalars())

    corrected = 0
    for book in db.query(Book).order_by(Book.id):
        expected = book.id not in open_book_ids
        if book.available != expected:
            logger.warning("book %s (%s) marked available=%s, correcting to %s",
                           book.id, book.serial_number, book.available, expected)
            book.available = expected
            corrected += 1

    db.commit()
    logger.info("availability reconciliation done, %d item(s) corrected", corrected)
    return corrected


def run_reconciliation(session_factory):
    db = session_factory()
    try:
        return reconcile_availability(db)
    except Exception:
        db.rollback()
        logger.exception("availability reconciliation failed")
        raise
    finally:
        db.close()
