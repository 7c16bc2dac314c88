"""CSV / JSON exports for the admin data export page."""
import csv
import json
from datetime import date
from io import StringIO
from typing import Any, Dict, List, Optional, Sequence, Tuple

from campus_library.models.analytics import Analytics
from campus_library.models.database import get_db, now_timestamp

EXPORT_FORMATS = ('csv', 'json')

BOOK_EXPORT_COLUMNS = (
    ('ID', 'id'), ('Title', 'title'), ('Author', 'author'), ('Genre', 'genre'),
    ('Rating', 'rating'), ('Total Copies', 'total_copies'),
    ('Available Copies', 'available_copies'), ('ISBN', 'isbn'),
    ('Publication Year', 'publication_year'), ('Publisher', 'publisher'),
    ('Language', 'language'), ('Page Count', 'page_count'), ('Edition', 'edition'),
    ('Is Active', 'is_active'), ('Created At', 'created_at'), ('Updated At', 'updated_at'),
)

USER_EXPORT_COLUMNS = (
    ('ID', 'id'), ('Full Name', 'full_name'), ('Email', 'email'),
    ('University ID', 'university_id'), ('Role', 'role'), ('Status', 'status'),
    ('Created At', 'created_at'),
)

BORROW_EXPORT_COLUMNS = (
    ('ID', 'id'), ('Book Title', 'book_title'), ('Book Author', 'book_author'),
    ('User Name', 'user_name'), ('User Email', 'user_email'),
    ('Borrow Date', 'borrow_date'), ('Due Date', 'due_date'),
    ('Return Date', 'return_date'), ('Status', 'status'),
    ('Fine Amount', 'fine_amount'), ('Notes', 'notes'),
    ('Renewal Count', 'renewal_count'), ('Created At', 'created_at'),
    ('Updated At', 'updated_at'),
)


def rows_to_csv(rows: List[Dict[str, Any]], columns: Sequence[Tuple[str, str]]) -> str:
    si = StringIO()
    writer = csv.writer(si)
    writer.writerow([header for header, _ in columns])
    for row in rows:
        writer.writerow(['' if row.get(key) is None else row.get(key) for _, key in columns])
    return si.getvalue()


def _package(name: str, export_format: str, rows: List[Dict[str, Any]],
             columns: Sequence[Tuple[str, str]]) -> Dict[str, str]:
    stamp = date.today().isoformat()
    if export_format == 'json':
        return {
            'data': json.dumps(rows, indent=2, default=str),
            'filename': f'{name}_export_{stamp}.json',
            'contentType': 'application/json',
        }
    return {
        'data': rows_to_csv(rows, columns),
        'filename': f'{name}_export_{stamp}.csv',
        'contentType': 'text/csv',
    }


def export_books(export_format: str = 'csv') -> Dict[str, str]:
    columns = ', '.join(key for _, key in BOOK_EXPORT_COLUMNS)
    rows = get_db().execute(f'SELECT {columns} FROM books ORDER BY created_at DESC').fetchall()
    data = []
    for row in rows:
        item = dict(row)
        item['is_active'] = bool(item['is_active'])
        data.append(item)
    return _package('books', export_format, data, BOOK_EXPORT_COLUMNS)


def export_users(export_format: str = 'csv') -> Dict[str, str]:
    columns = ', '.join(key for _, key in USER_EXPORT_COLUMNS)
    rows = get_db().execute(f'SELECT {columns} FROM users ORDER BY created_at DESC').fetchall()
    return _package('users', export_format, [dict(row) for row in rows], USER_EXPORT_COLUMNS)


def export_borrows(export_format: str = 'csv', status: Optional[str] = None,
                   date_from: Optional[str] = None, date_to: Optional[str] = None) -> Dict[str, str]:
    """Export borrow records, optionally filtered by status and borrow date."""
    sql = '''
        SELECT br.id, b.title AS book_title, b.author AS book_author,
               u.full_name AS user_name, u.email AS user_email,
               br.borrow_date, br.due_date, br.return_date, br.status,
               printf('%.2f', br.fine_amount) AS fine_amount, br.notes,
               br.renewal_count, br.created_at, br.updated_at
        FROM borrow_records br
        JOIN books b ON br.book_id = b.id
        JOIN users u ON br.user_id = u.id
        WHERE 1=1
    '''
    params: List[Any] = []
    if status:
        sql += ' AND br.status = ?'
        params.append(status)
    if date_from:
        sql += ' AND substr(br.borrow_date, 1, 10) >= ?'
        params.append(date_from[:10])
    if date_to:
        sql += ' AND substr(br.borrow_date, 1, 10) <= ?'
        params.append(date_to[:10])
    sql += ' ORDER BY br.created_at DESC'

    rows = get_db().execute(sql, params).fetchall()
    return _package('borrows', export_format, [dict(row) for row in rows], BORROW_EXPORT_COLUMNS)


def export_analytics(export_format: str = 'csv') -> Dict[str, str]:
    """Export popular books, popular genres and the monthly summary."""
    stamp = date.today().isoformat()
    popular_books = Analytics.get_popular_books()
    popular_genres = Analytics.get_popular_genres()
    monthly = Analytics.get_monthly_stats()
    overdue = Analytics.get_overdue_stats()

    if export_format == 'json':
        payload = {
            'popularBooks': popular_books,
            'popularGenres': popular_genres,
            'monthlyStats': monthly,
            'overdueStats': overdue,
            'generatedAt': now_timestamp(),
        }
        return {
            'data': json.dumps(payload, indent=2, default=str),
            'filename': f'analytics_export_{stamp}.json',
            'contentType': 'application/json',
        }

    si = StringIO()
    writer = csv.writer(si)
    writer.writerow(['Popular Books'])
    writer.writerow(['Title', 'Author', 'Genre', 'Total Borrows', 'Active', 'Returned'])
    for item in popular_books:
        writer.writerow([item['bookTitle'], item['bookAuthor'], item['bookGenre'],
                         item['totalBorrows'], item['activeBorrows'], item['returnedBorrows']])
    writer.writerow([])
    writer.writerow(['Popular Genres'])
    writer.writerow(['Genre', 'Total Borrows', 'Unique Books'])
    for item in popular_genres:
        writer.writerow([item['genre'], item['totalBorrows'], item['uniqueBooks']])
    writer.writerow([])
    writer.writerow(['Monthly Stats'])
    writer.writerow(['Month', 'Borrows'])
    for key in ('lastMonth', 'currentMonth'):
        writer.writerow([monthly[key]['month'], monthly[key]['borrows']])
    writer.writerow([])
    writer.writerow(['Overdue Stats'])
    writer.writerow(['Total Overdue', 'Total Fines', 'Avg Days Overdue'])
    writer.writerow([overdue['totalOverdue'], overdue['totalFines'], overdue['avgDaysOverdue']])

    return {
        'data': si.getvalue(),
        'filename': f'analytics_export_{stamp}.csv',
        'contentType': 'text/csv',
    }


EXPORTERS = {
    'books': export_books,
    'users': export_users,
    'borrows': export_borrows,
    'analytics': export_analytics,
}


def get_export_stats() -> Dict[str, Any]:
    db = get_db()
    return {
        'totalBooks': db.execute('SELECT COUNT(*) FROM books').fetchone()[0],
        'totalUsers': db.execute('SELECT COUNT(*) FROM users').fetchone()[0],
        'totalBorrows': db.execute('SELECT COUNT(*) FROM borrow_records').fetchone()[0],
        'lastExportDate': now_timestamp(),
    }
