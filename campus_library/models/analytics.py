"""Read-only reporting queries for the admin analytics page."""
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

from campus_library.models.database import DATE_FORMAT, TIMESTAMP_FORMAT, get_db
from campus_library.models.system_config import SystemConfig


def _month_bounds(year: int, month: int):
    start = date(year, month, 1)
    end = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
    return start.strftime(DATE_FORMAT), end.strftime(DATE_FORMAT)


class Analytics:

    @staticmethod
    def get_borrowing_trends(days: int = 30, today: Optional[date] = None) -> List[Dict[str, Any]]:
        """Requests created per day over the window, with how many are returned."""
        since = ((today or date.today()) - timedelta(days=days)).strftime(DATE_FORMAT)
        rows = get_db().execute('''
            SELECT substr(created_at, 1, 10) AS date,
                   COUNT(*) AS borrows,
                   SUM(CASE WHEN status = 'RETURNED' THEN 1 ELSE 0 END) AS returns
            FROM borrow_records
            WHERE substr(created_at, 1, 10) >= ?
            GROUP BY substr(created_at, 1, 10)
            ORDER BY date
        ''', (since,)).fetchall()
        return [dict(row) for row in rows]

    @staticmethod
    def get_popular_books(limit: int = 10) -> List[Dict[str, Any]]:
        rows = get_db().execute('''
            SELECT br.book_id AS bookId, b.title AS bookTitle, b.author AS bookAuthor,
                   b.genre AS bookGenre, COUNT(*) AS totalBorrows,
                   SUM(CASE WHEN br.status = 'BORROWED' THEN 1 ELSE 0 END) AS activeBorrows,
                   SUM(CASE WHEN br.status = 'RETURNED' THEN 1 ELSE 0 END) AS returnedBorrows
            FROM borrow_records br
            JOIN books b ON br.book_id = b.id
            GROUP BY br.book_id
            ORDER BY totalBorrows DESC, b.title ASC
            LIMIT ?
        ''', (limit,)).fetchall()
        return [dict(row) for row in rows]

    @staticmethod
    def get_popular_genres(limit: int = 10) -> List[Dict[str, Any]]:
        rows = get_db().execute('''
            SELECT b.genre AS genre, COUNT(*) AS totalBorrows,
                   COUNT(DISTINCT br.book_id) AS uniqueBooks
            FROM borrow_records br
            JOIN books b ON br.book_id = b.id
            GROUP BY b.genre
            ORDER BY totalBorrows DESC, b.genre ASC
            LIMIT ?
        ''', (limit,)).fetchall()
        return [dict(row) for row in rows]

    @staticmethod
    def get_user_activity(limit: int = 20) -> List[Dict[str, Any]]:
        """Most active borrowers with a per-status breakdown."""
        rows = get_db().execute('''
            SELECT br.user_id AS userId, u.full_name AS userName, u.email AS userEmail,
                   COUNT(*) AS totalBorrows,
                   SUM(CASE WHEN br.status = 'BORROWED' THEN 1 ELSE 0 END) AS activeBorrows,
                   SUM(CASE WHEN br.status = 'RETURNED' THEN 1 ELSE 0 END) AS returnedBorrows,
                   SUM(CASE WHEN br.status = 'PENDING' THEN 1 ELSE 0 END) AS pendingBorrows,
                   MAX(br.created_at) AS lastActivity
            FROM borrow_records br
            JOIN users u ON br.user_id = u.id
            GROUP BY br.user_id
            ORDER BY totalBorrows DESC, userName ASC
            LIMIT ?
        ''', (limit,)).fetchall()
        return [dict(row) for row in rows]

    @staticmethod
    def get_overdue_analysis(today: Optional[date] = None) -> List[Dict[str, Any]]:
        """Overdue loans with the fine they would owe if returned today."""
        from campus_library.models.borrow import Borrow

        reference = today or date.today()
        rate = SystemConfig.get_daily_fine_amount()
        rows = get_db().execute('''
            SELECT br.id AS recordId, b.title AS bookTitle, b.author AS bookAuthor,
                   u.full_name AS userName, u.email AS userEmail,
                   br.borrow_date AS borrowDate, br.due_date AS dueDate
            FROM borrow_records br
            JOIN books b ON br.book_id = b.id
            JOIN users u ON br.user_id = u.id
            WHERE br.status = 'BORROWED' AND br.due_date IS NOT NULL AND br.due_date < ?
            ORDER BY br.due_date ASC
        ''', (reference.strftime(DATE_FORMAT),)).fetchall()

        analysis = []
        for row in rows:
            item = dict(row)
            due = datetime.strptime(item['dueDate'][:10], DATE_FORMAT).date()
            item['daysOverdue'] = (reference - due).days
            item['fineAmount'] = f"{Borrow.calculate_fine(due, reference, rate):.2f}"
            analysis.append(item)
        return analysis

    @staticmethod
    def get_overdue_stats(today: Optional[date] = None) -> Dict[str, Any]:
        overdue = Analytics.get_overdue_analysis(today)
        if not overdue:
            return {'totalOverdue': 0, 'totalFines': 0.0, 'avgDaysOverdue': 0}
        return {
            'totalOverdue': len(overdue),
            'totalFines': round(sum(float(item['fineAmount']) for item in overdue), 2),
            'avgDaysOverdue': round(sum(item['daysOverdue'] for item in overdue) / len(overdue), 1),
        }

    @staticmethod
    def get_monthly_stats(today: Optional[date] = None) -> Dict[str, Dict[str, Any]]:
        """Borrow requests created this month versus last month."""
        reference = today or date.today()
        if reference.month == 1:
            last_year, last_month = reference.year - 1, 12
        else:
            last_year, last_month = reference.year, reference.month - 1

        db = get_db()
        result = {}
        for label, (year, month) in (('currentMonth', (reference.year, reference.month)),
                                     ('lastMonth', (last_year, last_month))):
            start, end = _month_bounds(year, month)
            count = db.execute('''
                SELECT COUNT(*) AS count FROM borrow_records
                WHERE substr(created_at, 1, 10) >= ? AND substr(created_at, 1, 10) < ?
            ''', (start, end)).fetchone()['count']
            result[label] = {'month': f'{year}-{month:02d}', 'borrows': count}
        return result

    @staticmethod
    def get_system_health(now: Optional[datetime] = None) -> Dict[str, int]:
        current = now or datetime.now()
        week_ago = (current - timedelta(days=7)).strftime(TIMESTAMP_FORMAT)
        today = current.strftime(DATE_FORMAT)

        db = get_db()

        def scalar(sql, params=()):
            return db.execute(sql, params).fetchone()[0]

        return {
            'totalBooks': scalar('SELECT COUNT(*) FROM books'),
            'totalUsers': scalar('SELECT COUNT(*) FROM users'),
            'activeBorrows': scalar("SELECT COUNT(*) FROM borrow_records WHERE status = 'BORROWED'"),
            'pendingRequests': scalar("SELECT COUNT(*) FROM borrow_records WHERE status = 'PENDING'"),
            'overdueBooks': scalar(
                "SELECT COUNT(*) FROM borrow_records WHERE status = 'BORROWED' AND due_date < ?",
                (today,)
            ),
            'recentActivity': scalar(
                'SELECT COUNT(*) FROM borrow_records WHERE created_at >= ?', (week_ago,)
            ),
        }

    @staticmethod
    def get_all(today: Optional[date] = None) -> Dict[str, Any]:
        return {
            'borrowingTrends': Analytics.get_borrowing_trends(today=today),
            'popularBooks': Analytics.get_popular_books(),
            'popularGenres': Analytics.get_popular_genres(),
            'userActivity': Analytics.get_user_activity(),
            'overdueAnalysis': Analytics.get_overdue_analysis(today),
            'overdueStats': Analytics.get_overdue_stats(today),
            'monthlyStats': Analytics.get_monthly_stats(today),
            'systemHealth': Analytics.get_system_health(),
        }
