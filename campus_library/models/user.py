"""User model module.

This module defines the User model for library members, including
authentication, account approval status and activity tracking.

Class Hierarchy:
    User (base class) - Library members (role USER)
    └── Admin - Librarians with full access (role ADMIN, see admin.py)
"""
import sqlite3
import uuid
from typing import Any, Dict, List, Optional, Tuple

from werkzeug.security import check_password_hash, generate_password_hash

from campus_library.models.database import get_db, now_timestamp

STATUSES = ('PENDING', 'APPROVED', 'REJECTED')
ROLES = ('USER', 'ADMIN')

USER_COLUMNS = '''id, full_name, email, university_id, university_card, status, role,
                  last_activity_date, last_login, created_at'''


def _get_admin_class():
    from campus_library.models.admin import Admin
    return Admin


def _from_row(row: sqlite3.Row) -> 'User':
    row_dict = dict(row)
    if row_dict.get('role') == 'ADMIN':
        return _get_admin_class()(**row_dict)
    return User(**row_dict)


class User:
    """Represents a library member.

    Attributes:
        id (str): Unique user identifier.
        full_name (str): Full name.
        email (str): Email address (unique).
        university_id (int): Student/staff number (unique).
        university_card (str): Reference to the uploaded university card.
        status (str): Account approval status (PENDING, APPROVED, REJECTED).
        role (str): USER or ADMIN.
        last_activity_date (str): Date of last activity.
        last_login (str): Timestamp of last login.
        created_at (str): Registration timestamp.
        password (str): Hashed password (only loaded when needed).
    """

    def __init__(self, id: str, full_name: str, email: str, university_id: int,
                 university_card: str, status: str, role: str,
                 last_activity_date: Optional[str], last_login: Optional[str],
                 created_at: str, password: Optional[str] = None, **kwargs) -> None:
        self.id = id
        self.full_name = full_name
        self.email = email
        self.university_id = int(university_id)
        self.university_card = university_card
        self.status = status
        self.role = role
        self.last_activity_date = last_activity_date
        self.last_login = last_login
        self.created_at = created_at
        self.password = password

    @property
    def is_authenticated(self) -> bool:
        return True

    @property
    def is_admin(self) -> bool:
        return self.role == 'ADMIN'

    @property
    def is_approved(self) -> bool:
        return self.status == 'APPROVED'

    @staticmethod
    def get_by_id(user_id: str) -> Optional['User']:
        """Retrieve a user by their ID.

        Args:
            user_id: The unique identifier of the user.

        Returns:
            User or Admin instance based on role. None if not found.
        """
        db = get_db()
        row = db.execute(
            f'SELECT {USER_COLUMNS} FROM users WHERE id = ?', (user_id,)
        ).fetchone()
        return _from_row(row) if row else None

    @staticmethod
    def get_by_email(email: str) -> Optional['User']:
        """Retrieve a user by email, including the password hash."""
        db = get_db()
        row = db.execute(
            f'SELECT {USER_COLUMNS}, password FROM users WHERE email = ?',
            ((email or '').strip().lower(),)
        ).fetchone()
        return _from_row(row) if row else None

    @staticmethod
    def get_by_university_id(university_id: int) -> Optional['User']:
        db = get_db()
        row = db.execute(
            f'SELECT {USER_COLUMNS} FROM users WHERE university_id = ?', (university_id,)
        ).fetchone()
        return _from_row(row) if row else None

    @staticmethod
    def create(full_name: str, email: str, university_id: int, password: str,
               university_card: str, status: str = 'PENDING',
               role: str = 'USER') -> Tuple[Optional['User'], str]:
        """Create a new user account.

        New accounts start as PENDING and must be approved by an admin
        before they can borrow.

        Args:
            full_name: Full name.
            email: Email address (must be unique).
            university_id: University ID number (must be unique).
            password: Plain text password (will be hashed).
            university_card: Reference to the uploaded card image.
            status: Initial account status.
            role: Initial role.

        Returns:
            Tuple of (User or None, message).
        """
        db = get_db()
        email = email.strip().lower()

        if User.get_by_email(email):
            return None, "This email is already registered. Please sign in instead."
        if User.get_by_university_id(university_id):
            return None, "This University ID is already registered."

        user_id = str(uuid.uuid4())
        timestamp = now_timestamp()

        try:
            db.execute('''
                INSERT INTO users (id, full_name, email, university_id, password,
                                   university_card, status, role, last_activity_date,
                                   created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ''', (user_id, full_name, email, university_id, generate_password_hash(password),
                  university_card, status, role, timestamp[:10], timestamp))
            db.commit()
        except sqlite3.IntegrityError:
            db.rollback()
            return None, "This email or University ID is already registered."

        from campus_library.models.system_log import SystemLog
        SystemLog.add('User Registered', f'{full_name} ({email}) signed up', 'info', user_id)
        return User.get_by_id(user_id), "Account created successfully"

    @staticmethod
    def login(email: str, password: str) -> Optional['User']:
        """Authenticate user with email and password.

        Args:
            email: User's email address.
            password: Plain text password to verify.

        Returns:
            User instance if credentials valid, None otherwise.
        """
        user = User.get_by_email(email)
        if user and user.password and check_password_hash(user.password, password):
            user.record_login()
            user.password = None
            return user
        return None

    def record_login(self) -> None:
        timestamp = now_timestamp()
        self.last_login = timestamp
        self.last_activity_date = timestamp[:10]
        db = get_db()
        db.execute(
            'UPDATE users SET last_login = ?, last_activity_date = ? WHERE id = ?',
            (self.last_login, self.last_activity_date, self.id)
        )
        db.commit()

    def touch_activity(self) -> None:
        """Update last_activity_date once per day."""
        today = now_timestamp()[:10]
        if self.last_activity_date == today:
            return
        self.last_activity_date = today
        db = get_db()
        db.execute('UPDATE users SET last_activity_date = ? WHERE id = ?', (today, self.id))
        db.commit()

    def set_status(self, status: str) -> Tuple[bool, str]:
        if status not in STATUSES:
            return False, f"Invalid status. Must be one of: {', '.join(STATUSES)}"
        self.status = status
        db = get_db()
        db.execute('UPDATE users SET status = ? WHERE id = ?', (status, self.id))
        db.commit()
        return True, f"User status updated to {status}"

    def set_role(self, role: str) -> Tuple[bool, str]:
        if role not in ROLES:
            return False, f"Invalid role. Must be one of: {', '.join(ROLES)}"
        self.role = role
        db = get_db()
        db.execute('UPDATE users SET role = ? WHERE id = ?', (role, self.id))
        db.commit()
        return True, f"User role updated to {role}"

    @staticmethod
    def search(search: str = '', status: str = '', role: str = '', sort: str = 'name',
               page: int = 1, limit: int = 50) -> Tuple[List['User'], int]:
        """Search users with filters, sorting and pagination.

        Args:
            search: Matches full name, email or university ID.
            status: Filter by account status ('all' or empty for any).
            role: Filter by role ('all' or empty for any).
            sort: 'name', 'email', 'created' or 'status'.
            page: 1-based page number.
            limit: Page size.

        Returns:
            Tuple of (users on the page, total matching users).
        """
        where = ' WHERE 1=1'
        params: List[Any] = []

        if search:
            where += (' AND (LOWER(full_name) LIKE ? OR LOWER(email) LIKE ?'
                      ' OR CAST(university_id AS TEXT) LIKE ?)')
            pattern = f'%{search.lower()}%'
            params.extend([pattern, pattern, pattern])
        if status and status != 'all':
            where += ' AND status = ?'
            params.append(status)
        if role and role != 'all':
            where += ' AND role = ?'
            params.append(role)

        order_by = {
            'email': 'email ASC',
            'created': 'created_at DESC',
            'status': 'status ASC',
        }.get(sort, 'full_name ASC')

        db = get_db()
        total = db.execute(f'SELECT COUNT(*) AS count FROM users{where}', params).fetchone()['count']
        rows = db.execute(
            f'SELECT {USER_COLUMNS} FROM users{where} ORDER BY {order_by} LIMIT ? OFFSET ?',
            params + [limit, (page - 1) * limit]
        ).fetchall()
        return [_from_row(row) for row in rows], total

    @staticmethod
    def count_by(status: Optional[str] = None, role: Optional[str] = None) -> int:
        sql = 'SELECT COUNT(*) AS count FROM users WHERE 1=1'
        params: List[Any] = []
        if status:
            sql += ' AND status = ?'
            params.append(status)
        if role:
            sql += ' AND role = ?'
            params.append(role)
        return get_db().execute(sql, params).fetchone()['count']

    @staticmethod
    def get_recent(limit: int = 5) -> List['User']:
        db = get_db()
        rows = db.execute(
            f'SELECT {USER_COLUMNS} FROM users ORDER BY created_at DESC LIMIT ?', (limit,)
        ).fetchall()
        return [_from_row(row) for row in rows]

    def to_dict(self) -> Dict[str, Any]:
        """Convert user to dictionary (never includes the password)."""
        return {
            'id': self.id,
            'fullName': self.full_name,
            'email': self.email,
            'universityId': self.university_id,
            'universityCard': self.university_card,
            'status': self.status,
            'role': self.role,
            'lastActivityDate': self.last_activity_date,
            'lastLogin': self.last_login,
            'createdAt': self.created_at,
        }
