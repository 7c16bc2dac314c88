"""Admin model module.

This module defines the Admin class for librarians. Admin inherits from
User and adds account management and dashboard statistics.
"""
from typing import Any, Dict

from campus_library.models.system_log import SystemLog
from campus_library.models.user import ROLES, STATUSES, User


class Admin(User):
    """Represents a library administrator.

    Admins have full system access including:
    - Approve, reject and return borrow requests
    - Manage books (add, edit, remove)
    - Manage users (approve accounts, change roles)
    - Fine configuration and automation jobs

    Inherits all attributes and methods from User.
    """

    def __init__(self, *args, **kwargs):
        """Initialize an Admin instance."""
        super().__init__(*args, **kwargs)
        # Ensure role is set correctly
        self.role = 'ADMIN'

    # ==================== ADMIN-SPECIFIC METHODS ====================

    def change_user_role(self, user_id: str, new_role: str) -> tuple:
        """Change a user's role.

        Args:
            user_id: ID of the user to update.
            new_role: USER or ADMIN.

        Returns:
            Tuple of (success, message).
        """
        if new_role not in ROLES:
            return False, f"Invalid role. Must be one of: {', '.join(ROLES)}"
        if user_id == self.id and new_role != 'ADMIN':
            return False, "You cannot remove your own admin privileges"

        user = User.get_by_id(user_id)
        if not user:
            return False, "User not found"

        old_role = user.role
        success, message = user.set_role(new_role)
        if success:
            SystemLog.add(
                'Role Changed',
                f'{self.email} changed {user.email} from {old_role} to {new_role}',
                'warning',
                user_id
            )
        return success, message

    def set_user_status(self, user_id: str, new_status: str) -> tuple:
        """Approve or reject a member account.

        Args:
            user_id: ID of the user to update.
            new_status: PENDING, APPROVED or REJECTED.

        Returns:
            Tuple of (success, message).
        """
        if new_status not in STATUSES:
            return False, f"Invalid status. Must be one of: {', '.join(STATUSES)}"

        user = User.get_by_id(user_id)
        if not user:
            return False, "User not found"

        success, message = user.set_status(new_status)
        if success:
            SystemLog.add(
                'Account Status Changed',
                f'{self.email} set {user.email} to {new_status}',
                'info',
                user_id
            )
        return success, message

    def get_dashboard_stats(self) -> Dict[str, Any]:
        """Get statistics for admin dashboard.

        Returns:
            Dictionary with user, book and borrow counts plus breakdowns.
        """
        from campus_library.models.book import Book
        from campus_library.models.borrow import Borrow

        borrow_counts = Borrow.count_by_status()
        recent_borrows, _ = Borrow.search(sort_by='date', page=1, limit=5)

        return {
            'users': {
                'total': User.count_by(),
                'approved': User.count_by(status='APPROVED'),
                'pending': User.count_by(status='PENDING'),
                'admins': User.count_by(role='ADMIN'),
            },
            'books': Book.get_inventory_totals(),
            'borrows': {
                'active': borrow_counts['BORROWED'],
                'pending': borrow_counts['PENDING'],
                'returned': borrow_counts['RETURNED'],
                'overdue': len(Borrow.get_overdue_borrows()),
            },
            'recentBorrows': recent_borrows,
            'recentUsers': [user.to_dict() for user in User.get_recent(5)],
            'categoryStats': [
                {'genre': item['value'], 'count': item['count']}
                for item in Book.count_by('genre')
            ],
            'booksByYear': [
                {'year': item['value'], 'count': item['count']}
                for item in Book.count_by('publication_year')
            ],
            'booksByLanguage': [
                {'language': item['value'], 'count': item['count']}
                for item in Book.count_by('language')
            ],
            'topRatedBooks': [book.to_dict() for book in Book.get_top_rated(5)],
        }
