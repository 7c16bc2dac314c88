import os
from datetime import timedelta


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.lower() in ('true', '1', 'yes', 'on')


class Config:
    # Secret key for session management and security
    SECRET_KEY: str = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'

    # Session configuration
    SESSION_PERMANENT: bool = False
    PERMANENT_SESSION_LIFETIME: timedelta = timedelta(days=7)
    SESSION_COOKIE_HTTPONLY: bool = True

    # Database configuration
    DATABASE_PATH: str = os.environ.get('DATABASE_PATH') or os.path.join(
        os.path.dirname(os.path.dirname(os.path.dirname(__file__))), 'data', 'library.db'
    )

    # Background automation
    ENABLE_SCHEDULER: bool = _env_flag('ENABLE_SCHEDULER', True)
    FINE_UPDATE_HOUR: int = 1  # Daily overdue-fine run (server local time)
    REMINDER_HOUR: int = 9  # Daily due/overdue reminder run
    TRENDING_REFRESH_DAY: str = 'mon'  # Weekly trending/cache refresh

    # Email providers (Brevo first, Resend as fallback)
    BREVO_API_KEY: str = os.environ.get('BREVO_API_KEY', '')
    BREVO_API_URL: str = 'https://api.brevo.com/v3/smtp/email'
    RESEND_API_KEY: str = os.environ.get('RESEND_API_KEY', '')
    RESEND_API_URL: str = 'https://api.resend.com/emails'
    MAIL_FROM: str = os.environ.get('MAIL_FROM', 'library@university.edu')
    MAIL_FROM_NAME: str = os.environ.get('MAIL_FROM_NAME', 'University Library')
    EMAIL_TIMEOUT_SECONDS: int = 10

    # Library system business rules (defaults for the system_config table)
    BORROW_DURATION_DAYS: int = 7  # Loan period after approval
    MAX_RENEWAL_COUNT: int = 2  # Renewals allowed per loan
    DAILY_FINE_AMOUNT: float = 1.00  # Fine per overdue day
    DUE_SOON_DAYS: int = 2  # Window for "due soon" reminders
    TRENDING_WINDOW_DAYS: int = 30  # Look-back window for trending books
    RECOMMENDATION_LIMIT: int = 10  # Max recommendations per user

    # Listing defaults
    BOOKS_PER_PAGE: int = 12
    RECORDS_PER_PAGE: int = 50
    USERS_PER_PAGE: int = 50


class TestingConfig(Config):
    TESTING: bool = True
    SECRET_KEY: str = 'testing-secret-key'
    ENABLE_SCHEDULER: bool = False
    BREVO_API_KEY: str = ''
    RESEND_API_KEY: str = ''
