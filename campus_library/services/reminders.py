"""Due-soon and overdue reminder emails."""
import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

from flask import current_app

from campus_library.models.database import DATE_FORMAT, TIMESTAMP_FORMAT, get_db
from campus_library.models.system_config import SystemConfig
from campus_library.models.system_log import SystemLog
from campus_library.services import email_service

logger = logging.getLogger(__name__)

_REMINDER_QUERY = '''
    SELECT br.id AS record_id, br.due_date, br.last_reminder_sent,
           b.title AS book_title, b.author AS book_author,
           u.full_name AS user_name, u.email AS user_email
    FROM borrow_records br
    JOIN books b ON br.book_id = b.id
    JOIN users u ON br.user_id = u.id
    WHERE br.status = 'BORROWED' AND br.due_date IS NOT NULL
'''


def _format_due(due_date: str) -> str:
    return datetime.strptime(due_date[:10], DATE_FORMAT).strftime('%A, %B %d, %Y')


def get_books_due_soon(today: Optional[date] = None) -> List[Dict[str, Any]]:
    """BORROWED loans due between today and the due-soon window (inclusive)."""
    reference = today or date.today()
    window_end = reference + timedelta(days=current_app.config['DUE_SOON_DAYS'])
    rows = get_db().execute(
        _REMINDER_QUERY + ' AND br.due_date >= ? AND br.due_date <= ? ORDER BY br.due_date',
        (reference.strftime(DATE_FORMAT), window_end.strftime(DATE_FORMAT))
    ).fetchall()
    return [dict(row) for row in rows]


def get_overdue_books(today: Optional[date] = None) -> List[Dict[str, Any]]:
    reference = today or date.today()
    rows = get_db().execute(
        _REMINDER_QUERY + ' AND br.due_date < ? ORDER BY br.due_date',
        (reference.strftime(DATE_FORMAT),)
    ).fetchall()
    return [dict(row) for row in rows]


def _due_soon_message(item: Dict[str, Any], reference: date):
    due = datetime.strptime(item['due_date'][:10], DATE_FORMAT).date()
    subject = f"Library Book Return Reminder - {item['book_title']}"
    body = (
        f"Dear {item['user_name']},\n\n"
        "This is a friendly reminder that your borrowed book is due for return soon.\n\n"
        f"Title: {item['book_title']}\n"
        f"Author: {item['book_author']}\n"
        f"Due Date: {_format_due(item['due_date'])}\n"
        f"Days Remaining: {(due - reference).days} day(s)\n\n"
        "Please return the book by the due date to avoid late fees. "
        "You can renew it from your profile before the due date."
    )
    return subject, body


def _overdue_message(item: Dict[str, Any], reference: date, daily_fine: float):
    due = datetime.strptime(item['due_date'][:10], DATE_FORMAT).date()
    days = (reference - due).days
    subject = f"Overdue Book Notice - {item['book_title']}"
    body = (
        f"Dear {item['user_name']},\n\n"
        "Our records show that the following book is overdue.\n\n"
        f"Title: {item['book_title']}\n"
        f"Author: {item['book_author']}\n"
        f"Due Date: {_format_due(item['due_date'])}\n"
        f"Days Overdue: {days} day(s)\n"
        f"Current Fine: ${days * daily_fine:.2f} (${daily_fine:.2f} per day)\n\n"
        "Please return the book as soon as possible to stop further fines."
    )
    return subject, body


def _mark_reminder_sent(record_id: str, reference: date) -> None:
    """Stamp the run date with the current time of day."""
    sent_at = datetime.combine(reference, datetime.now().time())
    db = get_db()
    db.execute(
        'UPDATE borrow_records SET last_reminder_sent = ? WHERE id = ?',
        (sent_at.strftime(TIMESTAMP_FORMAT), record_id)
    )
    db.commit()


def _send_batch(items, build_message, reference: date) -> List[Dict[str, Any]]:
    today_str = reference.strftime(DATE_FORMAT)
    results = []
    for item in items:
        if (item['last_reminder_sent'] or '')[:10] == today_str:
            results.append({
                'recordId': item['record_id'],
                'userEmail': item['user_email'],
                'bookTitle': item['book_title'],
                'status': 'skipped',
            })
            continue

        subject, body = build_message(item)
        outcome = email_service.send_reminder_email(item['user_email'], subject, body)
        entry = {
            'recordId': item['record_id'],
            'userEmail': item['user_email'],
            'bookTitle': item['book_title'],
            'status': 'sent' if outcome['success'] else 'failed',
        }
        if outcome['success']:
            _mark_reminder_sent(item['record_id'], reference)
            entry['provider'] = outcome.get('provider')
        else:
            entry['error'] = outcome.get('error')
        results.append(entry)
    return results


def send_due_soon_reminders(today: Optional[date] = None) -> List[Dict[str, Any]]:
    reference = today or date.today()
    return _send_batch(get_books_due_soon(reference),
                       lambda item: _due_soon_message(item, reference), reference)


def send_overdue_reminders(today: Optional[date] = None) -> List[Dict[str, Any]]:
    reference = today or date.today()
    daily_fine = SystemConfig.get_daily_fine_amount()
    return _send_batch(get_overdue_books(reference),
                       lambda item: _overdue_message(item, reference, daily_fine), reference)


def send_all_reminders(today: Optional[date] = None) -> Dict[str, Any]:
    """Send both reminder kinds and summarise the outcome."""
    due_soon = send_due_soon_reminders(today)
    overdue = send_overdue_reminders(today)

    summary = {
        'dueSoon': due_soon,
        'overdue': overdue,
        'sent': sum(1 for r in due_soon + overdue if r['status'] == 'sent'),
        'failed': sum(1 for r in due_soon + overdue if r['status'] == 'failed'),
        'skipped': sum(1 for r in due_soon + overdue if r['status'] == 'skipped'),
    }
    logger.info('Reminders: %d sent, %d failed, %d skipped',
                summary['sent'], summary['failed'], summary['skipped'])
    SystemLog.add(
        'Reminders Sent',
        f"{summary['sent']} sent, {summary['failed']} failed",
        'warning' if summary['failed'] else 'info'
    )
    return summary


def get_reminder_stats(today: Optional[date] = None) -> Dict[str, int]:
    reference = today or date.today()
    db = get_db()
    sent_today = db.execute(
        'SELECT COUNT(*) FROM borrow_records WHERE substr(last_reminder_sent, 1, 10) = ?',
        (reference.strftime(DATE_FORMAT),)
    ).fetchone()[0]
    return {
        'dueSoon': len(get_books_due_soon(reference)),
        'overdue': len(get_overdue_books(reference)),
        'remindersSentToday': sent_today,
    }
