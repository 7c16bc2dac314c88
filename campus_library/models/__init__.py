"""
Models package

Class Hierarchy:
    User (base) - Library members (user.py)
    └── Admin - Librarians with full access (admin.py)
"""
from campus_library.models.admin import Admin
from campus_library.models.admin_request import AdminRequest
from campus_library.models.book import Book
from campus_library.models.borrow import Borrow
from campus_library.models.database import close_db, get_db, init_db
from campus_library.models.review import Review
from campus_library.models.system_config import SystemConfig
from campus_library.models.system_log import SystemLog
from campus_library.models.user import User

__all__ = [
    'User', 'Admin', 'AdminRequest', 'Book', 'Borrow', 'Review',
    'SystemConfig', 'SystemLog', 'init_db', 'get_db', 'close_db'
]
