"""Database access layer.

One sqlite3 connection is opened per application context and stored on
``flask.g``. Rows come back as ``sqlite3.Row`` so models can build
themselves with ``Model(**dict(row))``.
"""
import logging
import os
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator

from flask import current_app, g

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = '%Y-%m-%d %H:%M:%S'
DATE_FORMAT = '%Y-%m-%d'

SCHEMA = '''
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    full_name TEXT NOT NULL,
    email TEXT NOT NULL UNIQUE,
    university_id INTEGER NOT NULL UNIQUE,
    password TEXT NOT NULL,
    university_card TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'PENDING'
        CHECK (status IN ('PENDING', 'APPROVED', 'REJECTED')),
    role TEXT NOT NULL DEFAULT 'USER' CHECK (role IN ('USER', 'ADMIN')),
    last_activity_date TEXT,
    last_login TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS books (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    author TEXT NOT NULL,
    genre TEXT NOT NULL,
    rating REAL NOT NULL DEFAULT 0,
    cover_url TEXT NOT NULL DEFAULT '',
    cover_color TEXT NOT NULL DEFAULT '#000000',
    description TEXT NOT NULL DEFAULT '',
    total_copies INTEGER NOT NULL DEFAULT 1 CHECK (total_copies >= 1),
    available_copies INTEGER NOT NULL DEFAULT 0,
    video_url TEXT NOT NULL DEFAULT '',
    summary TEXT NOT NULL DEFAULT '',
    isbn TEXT,
    publication_year INTEGER,
    publisher TEXT,
    language TEXT NOT NULL DEFAULT 'English',
    page_count INTEGER,
    edition TEXT,
    is_active INTEGER NOT NULL DEFAULT 1,
    updated_by TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    CHECK (available_copies >= 0 AND available_copies <= total_copies)
);

CREATE TABLE IF NOT EXISTS borrow_records (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL REFERENCES users(id),
    book_id TEXT NOT NULL REFERENCES books(id),
    borrow_date TEXT NOT NULL,
    due_date TEXT,
    return_date TEXT,
    status TEXT NOT NULL DEFAULT 'PENDING'
        CHECK (status IN ('PENDING', 'BORROWED', 'RETURNED')),
    borrowed_by TEXT,
    returned_by TEXT,
    fine_amount REAL NOT NULL DEFAULT 0,
    notes TEXT,
    renewal_count INTEGER NOT NULL DEFAULT 0,
    last_reminder_sent TEXT,
    updated_by TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE UNIQUE INDEX IF NOT EXISTS ux_borrow_records_active
    ON borrow_records (user_id, book_id)
    WHERE status IN ('PENDING', 'BORROWED');
CREATE INDEX IF NOT EXISTS ix_borrow_records_status ON borrow_records (status);
CREATE INDEX IF NOT EXISTS ix_borrow_records_book ON borrow_records (book_id);

CREATE TABLE IF NOT EXISTS book_reviews (
    id TEXT PRIMARY KEY,
    book_id TEXT NOT NULL REFERENCES books(id),
    user_id TEXT NOT NULL REFERENCES users(id),
    rating INTEGER NOT NULL CHECK (rating BETWEEN 1 AND 5),
    comment TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    UNIQUE (book_id, user_id)
);

CREATE TABLE IF NOT EXISTS system_config (
    id TEXT PRIMARY KEY,
    key TEXT NOT NULL UNIQUE,
    value TEXT NOT NULL,
    description TEXT,
    updated_by TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS admin_requests (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL REFERENCES users(id),
    request_reason TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'PENDING'
        CHECK (status IN ('PENDING', 'APPROVED', 'REJECTED')),
    reviewed_by TEXT,
    reviewed_at TEXT,
    rejection_reason TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS system_logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    action TEXT NOT NULL,
    details TEXT,
    log_type TEXT NOT NULL DEFAULT 'info',
    user_id TEXT,
    timestamp TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS recommendation_cache (
    user_id TEXT NOT NULL REFERENCES users(id),
    book_id TEXT NOT NULL REFERENCES books(id),
    score REAL NOT NULL,
    reason TEXT NOT NULL,
    algorithm TEXT NOT NULL,
    generated_at TEXT NOT NULL,
    PRIMARY KEY (user_id, book_id)
);
'''

DEFAULT_SETTINGS = (
    ('daily_fine_amount', '1.00', 'Fine charged per overdue day'),
    ('borrow_duration_days', '7', 'Loan period in days after approval'),
    ('max_renewals', '2', 'Maximum renewals per loan'),
)


def now_timestamp() -> str:
    return datetime.now().strftime(TIMESTAMP_FORMAT)


def get_db() -> sqlite3.Connection:
    """Return the connection bound to the current app context."""
    if 'db' not in g:
        g.db = sqlite3.connect(current_app.config['DATABASE_PATH'], timeout=15)
        g.db.row_factory = sqlite3.Row
        g.db.execute('PRAGMA foreign_keys = ON')
    return g.db


def close_db(e=None) -> None:
    db = g.pop('db', None)
    if db is not None:
        db.close()


@contextmanager
def transaction() -> Iterator[sqlite3.Connection]:
    """Run a block of statements as one write transaction.

    ``BEGIN IMMEDIATE`` takes the write lock up front, so conditional
    updates inside the block cannot interleave with another writer.
    Commits on success and rolls back on any exception.
    """
    db = get_db()
    if not db.in_transaction:
        db.execute('BEGIN IMMEDIATE')
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    else:
        db.commit()


def init_db() -> None:
    """Create tables and seed default settings if they are missing."""
    path = current_app.config['DATABASE_PATH']
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    db = get_db()
    db.executescript(SCHEMA)

    timestamp = now_timestamp()
    for key, value, description in DEFAULT_SETTINGS:
        db.execute('''
            INSERT OR IGNORE INTO system_config
                (id, key, value, description, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
        ''', (str(uuid.uuid4()), key, value, description, timestamp, timestamp))
    db.commit()
    logger.info('Database initialised at %s', path)
