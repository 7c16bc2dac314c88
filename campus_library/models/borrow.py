"""Borrow record model and the loan lifecycle.

A record moves PENDING -> BORROWED -> RETURNED. Copies are only taken
from ``books.available_copies`` when an admin approves a request, and are
put back exactly once when the loan is returned. Every transition runs in
a single write transaction.
"""
import logging
import math
import sqlite3
import uuid
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple, Union

from campus_library.models.book import Book
from campus_library.models.database import (
    DATE_FORMAT,
    get_db,
    now_timestamp,
    transaction,
)
from campus_library.models.system_config import SystemConfig
from campus_library.models.system_log import SystemLog

logger = logging.getLogger(__name__)

STATUSES = ('PENDING', 'BORROWED', 'RETURNED')

DateLike = Union[date, datetime, str]


def _as_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(value[:10], DATE_FORMAT).date()


class Borrow:
    """One user's request/loan/return cycle for one book."""

    def __init__(self, id: str, user_id: str, book_id: str, borrow_date: str,
                 due_date: Optional[str], return_date: Optional[str], status: str,
                 borrowed_by: Optional[str] = None, returned_by: Optional[str] = None,
                 fine_amount: float = 0.0, notes: Optional[str] = None,
                 renewal_count: int = 0, last_reminder_sent: Optional[str] = None,
                 updated_by: Optional[str] = None, created_at: Optional[str] = None,
                 updated_at: Optional[str] = None, **kwargs) -> None:
        self.id = id
        self.user_id = user_id
        self.book_id = book_id
        self.borrow_date = borrow_date
        self.due_date = due_date
        self.return_date = return_date
        self.status = status
        self.borrowed_by = borrowed_by
        self.returned_by = returned_by
        self.fine_amount = round(float(fine_amount), 2) if fine_amount else 0.0
        self.notes = notes
        self.renewal_count = int(renewal_count or 0)
        self.last_reminder_sent = last_reminder_sent
        self.updated_by = updated_by
        self.created_at = created_at
        self.updated_at = updated_at
        # Joined columns from listing queries
        self.extra = {key: value for key, value in kwargs.items()}

    @property
    def is_pending(self) -> bool:
        return self.status == 'PENDING'

    @property
    def is_borrowed(self) -> bool:
        return self.status == 'BORROWED'

    @property
    def is_returned(self) -> bool:
        return self.status == 'RETURNED'

    def is_overdue(self, today: Optional[date] = None) -> bool:
        if not self.is_borrowed or not self.due_date:
            return False
        return _as_date(self.due_date) < (today or date.today())

    def days_overdue(self, today: Optional[date] = None) -> int:
        if not self.due_date:
            return 0
        return max(0, ((today or date.today()) - _as_date(self.due_date)).days)

    @staticmethod
    def calculate_fine(due_date: DateLike, on_date: DateLike, daily_rate: float) -> float:
        """Fine for a loan: whole days past the due date times the daily rate.

        Args:
            due_date: Date the book was due.
            on_date: Date the fine is evaluated at (return date or today).
            daily_rate: Fine charged per overdue day.

        Returns:
            Fine rounded to 2 decimals, never negative.
        """
        days_overdue = (_as_date(on_date) - _as_date(due_date)).days
        if days_overdue <= 0 or daily_rate <= 0:
            return 0.0
        return round(math.floor(days_overdue) * float(daily_rate), 2)

    # ==================== QUERIES ====================

    @staticmethod
    def get_by_id(borrow_id: str) -> Optional['Borrow']:
        db = get_db()
        row = db.execute('SELECT * FROM borrow_records WHERE id = ?', (borrow_id,)).fetchone()
        if row:
            return Borrow(**dict(row))
        return None

    @staticmethod
    def get_active_for(user_id: str, book_id: str) -> Optional['Borrow']:
        """The user's PENDING or BORROWED record for a book, if any."""
        db = get_db()
        row = db.execute('''
            SELECT * FROM borrow_records
            WHERE user_id = ? AND book_id = ? AND status IN ('PENDING', 'BORROWED')
        ''', (user_id, book_id)).fetchone()
        return Borrow(**dict(row)) if row else None

    @staticmethod
    def has_returned(user_id: str, book_id: str) -> bool:
        db = get_db()
        row = db.execute('''
            SELECT 1 FROM borrow_records
            WHERE user_id = ? AND book_id = ? AND status = 'RETURNED' LIMIT 1
        ''', (user_id, book_id)).fetchone()
        return row is not None

    @staticmethod
    def search(user_id: Optional[str] = None, book_id: Optional[str] = None,
               status: Optional[str] = None, date_from: Optional[str] = None,
               date_to: Optional[str] = None, overdue: bool = False,
               sort_by: str = 'date', page: int = 1, limit: int = 50,
               today: Optional[date] = None) -> Tuple[List[Dict[str, Any]], int]:
        """List borrow records joined with their book and user.

        Args:
            user_id: Only this user's records.
            book_id: Only records for this book.
            status: PENDING, BORROWED or RETURNED.
            date_from: Earliest borrow date (YYYY-MM-DD, inclusive).
            date_to: Latest borrow date (YYYY-MM-DD, inclusive).
            overdue: Only BORROWED records past their due date.
            sort_by: 'date', 'dueDate', 'status' or 'user'.
            page: 1-based page number.
            limit: Page size.
            today: Reference date for the overdue filter.

        Returns:
            Tuple of (record dicts, total matching records).
        """
        where = ' WHERE 1=1'
        params: List[Any] = []

        if user_id:
            where += ' AND br.user_id = ?'
            params.append(user_id)
        if book_id:
            where += ' AND br.book_id = ?'
            params.append(book_id)
        if status:
            where += ' AND br.status = ?'
            params.append(status)
        if date_from:
            where += ' AND substr(br.borrow_date, 1, 10) >= ?'
            params.append(date_from[:10])
        if date_to:
            where += ' AND substr(br.borrow_date, 1, 10) <= ?'
            params.append(date_to[:10])
        if overdue:
            where += " AND br.status = 'BORROWED' AND br.due_date < ?"
            params.append((today or date.today()).strftime(DATE_FORMAT))

        order_by = {
            'dueDate': 'br.due_date ASC',
            'status': 'br.status ASC, br.borrow_date DESC',
            'user': 'u.full_name ASC',
        }.get(sort_by, 'br.borrow_date DESC')

        base = '''
            FROM borrow_records br
            JOIN books b ON br.book_id = b.id
            JOIN users u ON br.user_id = u.id
        '''
        db = get_db()
        total = db.execute(f'SELECT COUNT(*) AS count {base}{where}', params).fetchone()['count']
        rows = db.execute(f'''
            SELECT br.*, b.title AS book_title, b.author AS book_author,
                   b.genre AS book_genre, b.cover_url AS book_cover_url,
                   b.cover_color AS book_cover_color,
                   u.full_name AS user_name, u.email AS user_email,
                   u.university_id AS user_university_id
            {base}{where}
            ORDER BY {order_by}
            LIMIT ? OFFSET ?
        ''', params + [limit, (page - 1) * limit]).fetchall()
        return [Borrow(**dict(row)).to_dict(include_related=True, today=today) for row in rows], total

    @staticmethod
    def search_requests(status: Optional[str] = None, query: str = '') -> List[Dict[str, Any]]:
        """Admin view of borrow requests, searchable by book or user."""
        where = ' WHERE 1=1'
        params: List[Any] = []
        if status and status != 'all':
            where += ' AND br.status = ?'
            params.append(status)
        if query:
            pattern = f'%{query.lower()}%'
            where += ''' AND (LOWER(b.title) LIKE ? OR LOWER(b.author) LIKE ?
                         OR LOWER(u.full_name) LIKE ? OR LOWER(u.email) LIKE ?
                         OR CAST(u.university_id AS TEXT) LIKE ?)'''
            params.extend([pattern] * 5)

        db = get_db()
        rows = db.execute(f'''
            SELECT br.*, b.title AS book_title, b.author AS book_author,
                   b.genre AS book_genre, b.cover_url AS book_cover_url,
                   b.cover_color AS book_cover_color,
                   u.full_name AS user_name, u.email AS user_email,
                   u.university_id AS user_university_id
            FROM borrow_records br
            JOIN books b ON br.book_id = b.id
            JOIN users u ON br.user_id = u.id
            {where}
            ORDER BY br.created_at DESC
        ''', params).fetchall()
        return [Borrow(**dict(row)).to_dict(include_related=True) for row in rows]

    @staticmethod
    def get_overdue_borrows(today: Optional[date] = None) -> List['Borrow']:
        today_str = (today or date.today()).strftime(DATE_FORMAT)
        db = get_db()
        rows = db.execute('''
            SELECT * FROM borrow_records
            WHERE status = 'BORROWED' AND due_date IS NOT NULL AND due_date < ?
        ''', (today_str,)).fetchall()
        return [Borrow(**dict(row)) for row in rows]

    @staticmethod
    def count_by_status() -> Dict[str, int]:
        db = get_db()
        rows = db.execute(
            'SELECT status, COUNT(*) AS count FROM borrow_records GROUP BY status'
        ).fetchall()
        counts = {status: 0 for status in STATUSES}
        counts.update({row['status']: row['count'] for row in rows})
        return counts

    # ==================== LIFECYCLE ====================

    @staticmethod
    def request(user_id: str, book_id: str) -> Tuple[Optional['Borrow'], str]:
        """Create a PENDING borrow request.

        No copy is reserved yet; ``available_copies`` only changes when an
        admin approves the request.

        Returns:
            Tuple of (Borrow or None, message).
        """
        from campus_library.models.user import User

        user = User.get_by_id(user_id)
        if not user:
            return None, "User not found"
        if not user.is_approved:
            return None, "Your account must be approved before you can borrow books"

        book = Book.get_by_id(book_id)
        if not book or not book.is_active:
            return None, "Book not found"
        if book.available_copies <= 0:
            return None, "Book is not available for borrowing"

        if Borrow.get_active_for(user_id, book_id):
            return None, "You have already borrowed or requested this book"

        borrow_id = str(uuid.uuid4())
        timestamp = now_timestamp()
        try:
            with transaction() as db:
                db.execute('''
                    INSERT INTO borrow_records (id, user_id, book_id, borrow_date, due_date,
                                                status, created_at, updated_at)
                    VALUES (?, ?, ?, ?, NULL, 'PENDING', ?, ?)
                ''', (borrow_id, user_id, book_id, timestamp, timestamp, timestamp))
                SystemLog.add('Borrow Requested',
                              f'{user.full_name} requested "{book.title}"',
                              'info', user_id, commit=False)
        except sqlite3.IntegrityError:
            # Lost a race against a concurrent request for the same book
            return None, "You have already borrowed or requested this book"

        return Borrow.get_by_id(borrow_id), "Borrow request submitted. Awaiting admin approval."

    def approve(self, admin_email: str, today: Optional[date] = None) -> Tuple[bool, str]:
        """Approve a PENDING request and hand out one copy.

        The copy is taken with a conditional decrement, so approval fails
        cleanly if the last copy went to someone else.
        """
        if not self.is_pending:
            return False, "Only pending requests can be approved"

        from campus_library.models.user import User
        borrower = User.get_by_id(self.user_id)
        duration = SystemConfig.get_borrow_duration_days()
        timestamp = now_timestamp()
        due_date = ((today or date.today()) + timedelta(days=duration)).strftime(DATE_FORMAT)

        with transaction() as db:
            cursor = db.execute('''
                UPDATE books
                SET available_copies = available_copies - 1, updated_at = ?
                WHERE id = ? AND available_copies > 0
            ''', (timestamp, self.book_id))
            if cursor.rowcount != 1:
                return False, "Book is no longer available"

            cursor = db.execute('''
                UPDATE borrow_records
                SET status = 'BORROWED', borrow_date = ?, due_date = ?,
                    borrowed_by = ?, updated_by = ?, updated_at = ?
                WHERE id = ? AND status = 'PENDING'
            ''', (timestamp, due_date, borrower.email if borrower else None,
                  admin_email, timestamp, self.id))
            if cursor.rowcount != 1:
                db.rollback()
                return False, "Only pending requests can be approved"

            SystemLog.add('Borrow Approved',
                          f'Request {self.id} approved by {admin_email}, due {due_date}',
                          'info', self.user_id, commit=False)

        self.status = 'BORROWED'
        self.borrow_date = timestamp
        self.due_date = due_date
        self.borrowed_by = borrower.email if borrower else None
        self.updated_by = admin_email
        return True, f"Borrow request approved. Due date: {due_date}"

    def reject(self, admin_email: str) -> Tuple[bool, str]:
        """Reject a PENDING request by deleting it. Copies are untouched."""
        if not self.is_pending:
            return False, "Only pending requests can be rejected"

        with transaction() as db:
            cursor = db.execute(
                "DELETE FROM borrow_records WHERE id = ? AND status = 'PENDING'", (self.id,)
            )
            if cursor.rowcount != 1:
                return False, "Only pending requests can be rejected"
            SystemLog.add('Borrow Rejected',
                          f'Request {self.id} rejected by {admin_email}',
                          'info', self.user_id, commit=False)
        return True, "Borrow request rejected"

    def return_book(self, returned_by: str, today: Optional[date] = None) -> Tuple[bool, str]:
        """Return a BORROWED book, charge any late fine and free the copy.

        Args:
            returned_by: Email of the user or admin processing the return.
            today: Date used for the fine calculation.

        Returns:
            Tuple of (success, message).
        """
        if not self.is_borrowed:
            return False, "Only borrowed books can be returned"

        return_day = today or date.today()
        fine = 0.0
        if self.due_date:
            fine = Borrow.calculate_fine(self.due_date, return_day,
                                         SystemConfig.get_daily_fine_amount())
        timestamp = now_timestamp()

        with transaction() as db:
            cursor = db.execute('''
                UPDATE borrow_records
                SET status = 'RETURNED', return_date = ?, returned_by = ?,
                    fine_amount = ?, updated_by = ?, updated_at = ?
                WHERE id = ? AND status = 'BORROWED'
            ''', (timestamp, returned_by, fine, returned_by, timestamp, self.id))
            if cursor.rowcount != 1:
                return False, "Only borrowed books can be returned"

            db.execute('''
                UPDATE books
                SET available_copies = MIN(available_copies + 1, total_copies), updated_at = ?
                WHERE id = ?
            ''', (timestamp, self.book_id))

            SystemLog.add('Book Returned',
                          f'Record {self.id} returned by {returned_by}'
                          + (f' with fine ${fine:.2f}' if fine else ''),
                          'info', self.user_id, commit=False)

        self.status = 'RETURNED'
        self.return_date = timestamp
        self.returned_by = returned_by
        self.fine_amount = fine

        message = "Book returned successfully"
        if fine > 0:
            message += f". Late fine: ${fine:.2f}"
        return True, message

    def renew(self, user_id: str, today: Optional[date] = None) -> Tuple[bool, str]:
        """Extend the due date of a BORROWED loan by one loan period."""
        if self.user_id != user_id:
            return False, "You can only renew your own loans"
        if not self.is_borrowed:
            return False, "Only borrowed books can be renewed"

        limit = SystemConfig.get_max_renewals()
        if self.renewal_count >= limit:
            return False, f"Maximum renewal limit ({limit} times) reached"

        if self.is_overdue(today):
            return False, "Overdue books cannot be renewed"

        extension = SystemConfig.get_borrow_duration_days()
        new_due = (_as_date(self.due_date) + timedelta(days=extension)).strftime(DATE_FORMAT)
        timestamp = now_timestamp()

        with transaction() as db:
            cursor = db.execute('''
                UPDATE borrow_records
                SET due_date = ?, renewal_count = renewal_count + 1, updated_at = ?
                WHERE id = ? AND status = 'BORROWED' AND renewal_count < ?
            ''', (new_due, timestamp, self.id, limit))
            if cursor.rowcount != 1:
                return False, f"Maximum renewal limit ({limit} times) reached"
            SystemLog.add('Book Renewed', f'Record {self.id} renewed until {new_due}',
                          'info', self.user_id, commit=False)

        self.due_date = new_due
        self.renewal_count += 1
        return True, f"Book renewed successfully. New due date: {new_due}"

    # ==================== FINES ====================

    @staticmethod
    def update_overdue_fines(custom_amount: Optional[float] = None, force: bool = True,
                             today: Optional[date] = None) -> int:
        """Recalculate fines on overdue loans.

        Args:
            custom_amount: Daily rate to use instead of the configured one.
            force: Update every overdue loan. When False only loans whose
                fine is still zero are touched.
            today: Reference date.

        Returns:
            Number of records updated.
        """
        rate = SystemConfig.get_daily_fine_amount() if custom_amount is None else float(custom_amount)
        reference = today or date.today()
        timestamp = now_timestamp()

        updated = 0
        with transaction() as db:
            for borrow in Borrow.get_overdue_borrows(reference):
                if not force and borrow.fine_amount:
                    continue
                fine = Borrow.calculate_fine(borrow.due_date, reference, rate)
                db.execute(
                    'UPDATE borrow_records SET fine_amount = ?, updated_at = ? WHERE id = ?',
                    (fine, timestamp, borrow.id)
                )
                updated += 1

        logger.info('Updated fines on %d overdue record(s) at %.2f/day', updated, rate)
        if updated:
            SystemLog.add('Overdue Fines Updated',
                          f'{updated} record(s) updated at ${rate:.2f}/day', 'info')
        return updated

    def to_dict(self, include_related: bool = False,
                today: Optional[date] = None) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'userId': self.user_id,
            'bookId': self.book_id,
            'borrowDate': self.borrow_date,
            'dueDate': self.due_date,
            'returnDate': self.return_date,
            'status': self.status,
            'borrowedBy': self.borrowed_by,
            'returnedBy': self.returned_by,
            'fineAmount': f'{self.fine_amount:.2f}',
            'notes': self.notes,
            'renewalCount': self.renewal_count,
            'lastReminderSent': self.last_reminder_sent,
            'updatedBy': self.updated_by,
            'createdAt': self.created_at,
            'updatedAt': self.updated_at,
            'isOverdue': self.is_overdue(today),
            'daysOverdue': self.days_overdue(today) if self.is_borrowed else 0,
        }
        if include_related and self.extra:
            data['book'] = {
                'id': self.book_id,
                'title': self.extra.get('book_title'),
                'author': self.extra.get('book_author'),
                'genre': self.extra.get('book_genre'),
                'coverUrl': self.extra.get('book_cover_url'),
                'coverColor': self.extra.get('book_cover_color'),
            }
            data['user'] = {
                'id': self.user_id,
                'fullName': self.extra.get('user_name'),
                'email': self.extra.get('user_email'),
                'universityId': self.extra.get('user_university_id'),
            }
        return data
