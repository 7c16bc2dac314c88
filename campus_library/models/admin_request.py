import uuid
from typing import Any, Dict, List, Optional, Tuple

from campus_library.models.database import get_db, now_timestamp, transaction
from campus_library.models.system_log import SystemLog


class AdminRequest:
    """A member's request to be granted the ADMIN role."""

    def __init__(self, id: str, user_id: str, request_reason: str, status: str,
                 reviewed_by: Optional[str], reviewed_at: Optional[str],
                 rejection_reason: Optional[str], created_at: str, updated_at: str,
                 **kwargs) -> None:
        self.id = id
        self.user_id = user_id
        self.request_reason = request_reason
        self.status = status
        self.reviewed_by = reviewed_by
        self.reviewed_at = reviewed_at
        self.rejection_reason = rejection_reason
        self.created_at = created_at
        self.updated_at = updated_at
        self.user_name = kwargs.get('user_name')
        self.user_email = kwargs.get('user_email')

    @staticmethod
    def get_by_id(request_id: str) -> Optional['AdminRequest']:
        db = get_db()
        row = db.execute('SELECT * FROM admin_requests WHERE id = ?', (request_id,)).fetchone()
        return AdminRequest(**dict(row)) if row else None

    @staticmethod
    def get_latest_for_user(user_id: str) -> Optional['AdminRequest']:
        db = get_db()
        row = db.execute('''
            SELECT * FROM admin_requests WHERE user_id = ?
            ORDER BY created_at DESC, rowid DESC LIMIT 1
        ''', (user_id,)).fetchone()
        return AdminRequest(**dict(row)) if row else None

    @staticmethod
    def create(user_id: str, reason: str) -> Tuple[Optional['AdminRequest'], str]:
        """Submit a request for admin rights.

        Args:
            user_id: Requesting user.
            reason: Why the user needs admin access.

        Returns:
            Tuple of (AdminRequest or None, message).
        """
        from campus_library.models.user import User

        reason = (reason or '').strip()
        if not reason:
            return None, "Request reason is required"

        user = User.get_by_id(user_id)
        if not user:
            return None, "User not found"
        if user.is_admin:
            return None, "You are already an admin"

        db = get_db()
        pending = db.execute(
            "SELECT 1 FROM admin_requests WHERE user_id = ? AND status = 'PENDING'", (user_id,)
        ).fetchone()
        if pending:
            return None, "You already have a pending admin request"

        request_id = str(uuid.uuid4())
        timestamp = now_timestamp()
        db.execute('''
            INSERT INTO admin_requests (id, user_id, request_reason, status,
                                        created_at, updated_at)
            VALUES (?, ?, ?, 'PENDING', ?, ?)
        ''', (request_id, user_id, reason, timestamp, timestamp))
        db.commit()

        SystemLog.add('Admin Request Submitted', f'{user.email} requested admin access',
                      'info', user_id)
        return AdminRequest.get_by_id(request_id), "Admin request submitted successfully"

    @staticmethod
    def get_all(pending_only: bool = False) -> List['AdminRequest']:
        sql = '''
            SELECT ar.*, u.full_name AS user_name, u.email AS user_email
            FROM admin_requests ar
            JOIN users u ON ar.user_id = u.id
        '''
        if pending_only:
            sql += " WHERE ar.status = 'PENDING'"
        sql += ' ORDER BY ar.created_at DESC'
        rows = get_db().execute(sql).fetchall()
        return [AdminRequest(**dict(row)) for row in rows]

    def approve(self, reviewer_email: str) -> Tuple[bool, str]:
        """Approve the request and promote the user to ADMIN."""
        if self.status != 'PENDING':
            return False, "Request has already been reviewed"

        timestamp = now_timestamp()
        with transaction() as db:
            cursor = db.execute('''
                UPDATE admin_requests
                SET status = 'APPROVED', reviewed_by = ?, reviewed_at = ?, updated_at = ?
                WHERE id = ? AND status = 'PENDING'
            ''', (reviewer_email, timestamp, timestamp, self.id))
            if cursor.rowcount != 1:
                return False, "Request has already been reviewed"
            db.execute("UPDATE users SET role = 'ADMIN' WHERE id = ?", (self.user_id,))
            SystemLog.add('Admin Request Approved',
                          f'Request {self.id} approved by {reviewer_email}',
                          'info', self.user_id, commit=False)

        self.status = 'APPROVED'
        self.reviewed_by = reviewer_email
        self.reviewed_at = timestamp
        return True, "Admin request approved"

    def reject(self, reviewer_email: str, rejection_reason: str = '') -> Tuple[bool, str]:
        if self.status != 'PENDING':
            return False, "Request has already been reviewed"

        timestamp = now_timestamp()
        db = get_db()
        cursor = db.execute('''
            UPDATE admin_requests
            SET status = 'REJECTED', reviewed_by = ?, reviewed_at = ?,
                rejection_reason = ?, updated_at = ?
            WHERE id = ? AND status = 'PENDING'
        ''', (reviewer_email, timestamp, rejection_reason or None, timestamp, self.id))
        db.commit()
        if cursor.rowcount != 1:
            return False, "Request has already been reviewed"
        SystemLog.add('Admin Request Rejected',
                      f'Request {self.id} rejected by {reviewer_email}', 'info', self.user_id)

        self.status = 'REJECTED'
        self.reviewed_by = reviewer_email
        self.reviewed_at = timestamp
        self.rejection_reason = rejection_reason or None
        return True, "Admin request rejected"

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'userId': self.user_id,
            'requestReason': self.request_reason,
            'status': self.status,
            'reviewedBy': self.reviewed_by,
            'reviewedAt': self.reviewed_at,
            'rejectionReason': self.rejection_reason,
            'createdAt': self.created_at,
            'updatedAt': self.updated_at,
        }
        if self.user_name is not None:
            data['user'] = {'fullName': self.user_name, 'email': self.user_email}
        return data
