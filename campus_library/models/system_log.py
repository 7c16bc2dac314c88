"""Audit trail of business actions (logins, loans, config changes)."""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from campus_library.models.database import get_db, now_timestamp, TIMESTAMP_FORMAT

logger = logging.getLogger(__name__)

LOG_TYPES = ('info', 'warning', 'error')


class SystemLog:
    """A single audit log entry."""

    def __init__(self, id: int, action: str, details: str, log_type: str,
                 user_id: Optional[str], timestamp: str, **kwargs) -> None:
        self.id = id
        self.action = action
        self.details = details
        self.log_type = log_type
        self.user_id = user_id
        self.timestamp = timestamp

    @staticmethod
    def add(action: str, details: str = '', log_type: str = 'info',
            user_id: Optional[str] = None, commit: bool = True) -> None:
        """Record an audit entry.

        Args:
            action: Short action name, e.g. 'Borrow Approved'.
            details: Human readable description.
            log_type: One of 'info', 'warning', 'error'.
            user_id: User the action relates to (optional).
            commit: Commit immediately. Pass False inside an open transaction.
        """
        if log_type not in LOG_TYPES:
            log_type = 'info'

        db = get_db()
        db.execute('''
            INSERT INTO system_logs (action, details, log_type, user_id, timestamp)
            VALUES (?, ?, ?, ?, ?)
        ''', (action, details, log_type, user_id, now_timestamp()))
        if commit:
            db.commit()

        log_level = logging.WARNING if log_type == 'warning' else (
            logging.ERROR if log_type == 'error' else logging.INFO
        )
        logger.log(log_level, '%s: %s', action, details)

    @staticmethod
    def get_recent(limit: int = 100) -> List['SystemLog']:
        db = get_db()
        rows = db.execute(
            'SELECT * FROM system_logs ORDER BY id DESC LIMIT ?', (limit,)
        ).fetchall()
        return [SystemLog(**dict(row)) for row in rows]

    @staticmethod
    def clear_old_logs(days: int = 30) -> int:
        """Delete entries older than the given number of days.

        Returns:
            Number of deleted entries.
        """
        cutoff = (datetime.now() - timedelta(days=days)).strftime(TIMESTAMP_FORMAT)
        db = get_db()
        cursor = db.execute('DELETE FROM system_logs WHERE timestamp < ?', (cutoff,))
        db.commit()
        return cursor.rowcount

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'action': self.action,
            'details': self.details,
            'logType': self.log_type,
            'userId': self.user_id,
            'timestamp': self.timestamp,
        }
