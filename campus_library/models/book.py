import uuid
from typing import Any, Dict, List, Optional, Tuple

from campus_library.models.database import get_db, now_timestamp, transaction

BOOK_COLUMNS = '''id, title, author, genre, rating, cover_url, cover_color, description,
                  total_copies, available_copies, video_url, summary, isbn,
                  publication_year, publisher, language, page_count, edition,
                  is_active, updated_by, created_at, updated_at'''

EDITABLE_COLUMNS = (
    'title', 'author', 'genre', 'rating', 'cover_url', 'cover_color', 'description',
    'total_copies', 'video_url', 'summary', 'isbn', 'publication_year', 'publisher',
    'language', 'page_count', 'edition', 'is_active',
)


class Book:
    """Represents a book in the library catalogue.

    This class handles catalogue queries, admin edits and the
    ``available_copies`` counter that the borrow workflow maintains.

    Attributes:
        id (str): Unique identifier for the book.
        title (str): Book title.
        author (str): Book author name.
        genre (str): Genre used for filtering and recommendations.
        rating (float): Rating 1-5 (average of reviews once any exist).
        cover_url (str): URL of the cover image.
        cover_color (str): Hex colour used behind the cover.
        total_copies (int): Total number of copies owned.
        available_copies (int): Copies not currently on loan.
        is_active (bool): False once the book is removed from the catalogue.
    """

    def __init__(self, id: str, title: str, author: str, genre: str, rating: float,
                 cover_url: str, cover_color: str, description: str,
                 total_copies: int, available_copies: int, video_url: str,
                 summary: str, isbn: Optional[str], publication_year: Optional[int],
                 publisher: Optional[str], language: str, page_count: Optional[int],
                 edition: Optional[str], is_active: int, updated_by: Optional[str],
                 created_at: str, updated_at: str, **kwargs) -> None:
        """Initialize a Book instance."""
        self.id = id
        self.title = title
        self.author = author
        self.genre = genre
        self.rating = float(rating or 0)
        self.cover_url = cover_url
        self.cover_color = cover_color
        self.description = description
        self.total_copies = int(total_copies)
        self.available_copies = int(available_copies)
        self.video_url = video_url
        self.summary = summary
        self.isbn = isbn
        self.publication_year = publication_year
        self.publisher = publisher
        self.language = language
        self.page_count = page_count
        self.edition = edition
        self.is_active = bool(is_active)
        self.updated_by = updated_by
        self.created_at = created_at
        self.updated_at = updated_at

    @property
    def is_available(self) -> bool:
        return self.is_active and self.available_copies > 0

    @staticmethod
    def get_by_id(book_id: str) -> Optional['Book']:
        """Retrieve a book by its ID."""
        db = get_db()
        row = db.execute(
            f'SELECT {BOOK_COLUMNS} FROM books WHERE id = ?', (book_id,)
        ).fetchone()
        if row:
            return Book(**dict(row))
        return None

    @staticmethod
    def get_all(include_inactive: bool = True) -> List['Book']:
        db = get_db()
        sql = f'SELECT {BOOK_COLUMNS} FROM books'
        if not include_inactive:
            sql += ' WHERE is_active = 1'
        rows = db.execute(sql + ' ORDER BY created_at DESC').fetchall()
        return [Book(**dict(row)) for row in rows]

    @staticmethod
    def search(query: str = '', genre: str = '', availability: str = '',
               min_rating: Optional[float] = None, sort_by: str = 'title',
               page: int = 1, limit: int = 12) -> Tuple[List['Book'], int]:
        """Search the active catalogue with filters, sorting and pagination.

        Args:
            query: Case-insensitive match on title or author.
            genre: Exact genre filter.
            availability: 'available' or 'unavailable' (anything else = all).
            min_rating: Minimum rating.
            sort_by: 'title', 'author', 'rating' or 'date'.
            page: 1-based page number.
            limit: Page size.

        Returns:
            Tuple of (books on the page, total matching books).
        """
        db = get_db()

        where = ' WHERE is_active = 1'
        params: List[Any] = []

        if query:
            where += ' AND (LOWER(title) LIKE ? OR LOWER(author) LIKE ?)'
            params.extend([f'%{query.lower()}%', f'%{query.lower()}%'])

        if genre:
            where += ' AND genre = ?'
            params.append(genre)

        if availability == 'available':
            where += ' AND available_copies > 0'
        elif availability == 'unavailable':
            where += ' AND available_copies = 0'

        if min_rating is not None:
            where += ' AND rating >= ?'
            params.append(min_rating)

        # Apply sorting
        if sort_by == 'author':
            order_by = 'author ASC'
        elif sort_by == 'rating':
            order_by = 'rating DESC, title ASC'
        elif sort_by == 'date':
            order_by = 'created_at DESC'
        else:
            order_by = 'title ASC'

        total = db.execute(f'SELECT COUNT(*) AS count FROM books{where}', params).fetchone()['count']
        rows = db.execute(
            f'SELECT {BOOK_COLUMNS} FROM books{where} ORDER BY {order_by} LIMIT ? OFFSET ?',
            params + [limit, (page - 1) * limit]
        ).fetchall()
        return [Book(**dict(row)) for row in rows], total

    @staticmethod
    def get_all_genres() -> List[str]:
        """Retrieve all genres in the active catalogue."""
        db = get_db()
        rows = db.execute(
            'SELECT DISTINCT genre FROM books WHERE is_active = 1 ORDER BY genre'
        ).fetchall()
        return [row['genre'] for row in rows]

    @staticmethod
    def get_top_rated(limit: int = 5) -> List['Book']:
        db = get_db()
        rows = db.execute(
            f'SELECT {BOOK_COLUMNS} FROM books WHERE is_active = 1 '
            'ORDER BY rating DESC, title ASC LIMIT ?', (limit,)
        ).fetchall()
        return [Book(**dict(row)) for row in rows]

    @staticmethod
    def create(title: str, author: str, genre: str, total_copies: int,
               updated_by: Optional[str] = None, **extra) -> Tuple[Optional['Book'], str]:
        """Create a new book. All copies start out available."""
        db = get_db()

        book_id = str(uuid.uuid4())
        timestamp = now_timestamp()
        fields = {column: extra[column] for column in EDITABLE_COLUMNS if column in extra}
        fields.update({
            'id': book_id,
            'title': title,
            'author': author,
            'genre': genre,
            'total_copies': total_copies,
            'available_copies': total_copies,
            'rating': fields.get('rating', 0),
            'updated_by': updated_by,
            'created_at': timestamp,
            'updated_at': timestamp,
        })

        columns = ', '.join(fields)
        placeholders = ', '.join('?' for _ in fields)
        db.execute(f'INSERT INTO books ({columns}) VALUES ({placeholders})',
                   list(fields.values()))
        db.commit()

        from campus_library.models.system_log import SystemLog
        SystemLog.add('Book Created', f'"{title}" by {author} ({total_copies} copies)',
                      'info')
        return Book.get_by_id(book_id), "Book created successfully"

    def update_fields(self, updated_by: Optional[str] = None, **kwargs) -> Tuple[bool, str]:
        """Update book information.

        If ``total_copies`` changes, ``available_copies`` moves by the same
        delta so the number of copies on loan is preserved. The total can
        never drop below the number of copies currently borrowed.

        Args:
            updated_by: Email of the admin making the change.
            **kwargs: Column values to update.

        Returns:
            Tuple of (success: bool, message: str).
        """
        updates = {key: value for key, value in kwargs.items() if key in EDITABLE_COLUMNS}
        if not updates:
            return False, "No valid fields to update"

        with transaction() as db:
            row = db.execute(
                'SELECT total_copies, available_copies FROM books WHERE id = ?', (self.id,)
            ).fetchone()
            if row is None:
                return False, "Book not found"

            if 'total_copies' in updates and updates['total_copies'] != row['total_copies']:
                borrowed = row['total_copies'] - row['available_copies']
                new_total = int(updates['total_copies'])
                if new_total < borrowed:
                    return False, (f"Total copies cannot be less than the {borrowed} "
                                   "copies currently borrowed")
                updates['available_copies'] = max(0, new_total - borrowed)

            updates['updated_by'] = updated_by
            updates['updated_at'] = now_timestamp()
            assignments = ', '.join(f'{column} = ?' for column in updates)
            db.execute(f'UPDATE books SET {assignments} WHERE id = ?',
                       list(updates.values()) + [self.id])

        for column, value in updates.items():
            setattr(self, column, bool(value) if column == 'is_active' else value)
        return True, "Book updated successfully"

    def deactivate(self, updated_by: Optional[str] = None) -> Tuple[bool, str]:
        """Remove the book from the catalogue, keeping its loan history."""
        if not self.is_active:
            return False, "Book is already inactive"
        db = get_db()
        db.execute(
            'UPDATE books SET is_active = 0, updated_by = ?, updated_at = ? WHERE id = ?',
            (updated_by, now_timestamp(), self.id)
        )
        db.commit()
        self.is_active = False

        from campus_library.models.system_log import SystemLog
        SystemLog.add('Book Deactivated', f'"{self.title}" removed by {updated_by}', 'info')
        return True, "Book removed from catalogue"

    def update_rating(self) -> None:
        """Recalculate rating as the average of all reviews.

        Books without reviews keep their current rating.
        """
        db = get_db()
        row = db.execute(
            'SELECT AVG(rating) as avg_rating FROM book_reviews WHERE book_id = ?',
            (self.id,)
        ).fetchone()

        if row and row['avg_rating']:
            self.rating = round(float(row['avg_rating']), 1)
            db.execute('UPDATE books SET rating = ? WHERE id = ?', (self.rating, self.id))
            db.commit()

    def get_borrow_stats(self) -> Dict[str, int]:
        db = get_db()
        row = db.execute('''
            SELECT COUNT(*) AS total,
                   COALESCE(SUM(CASE WHEN status = 'BORROWED' THEN 1 ELSE 0 END), 0) AS active,
                   COALESCE(SUM(CASE WHEN status = 'RETURNED' THEN 1 ELSE 0 END), 0) AS returned
            FROM borrow_records WHERE book_id = ?
        ''', (self.id,)).fetchone()
        return {
            'totalBorrows': row['total'],
            'activeBorrows': row['active'],
            'returnedBorrows': row['returned'],
        }

    # ==================== INVENTORY SYNC ====================

    @staticmethod
    def check_inventory_sync() -> List[Dict[str, Any]]:
        """Find books whose available_copies disagree with active loans.

        Returns:
            One dict per mismatched book with current and expected counts.
        """
        db = get_db()
        rows = db.execute('''
            SELECT b.id, b.title, b.total_copies, b.available_copies,
                   COUNT(br.id) AS borrowed
            FROM books b
            LEFT JOIN borrow_records br
                ON br.book_id = b.id AND br.status = 'BORROWED'
            GROUP BY b.id
        ''').fetchall()

        mismatches = []
        for row in rows:
            expected = max(0, row['total_copies'] - row['borrowed'])
            if row['available_copies'] != expected:
                mismatches.append({
                    'bookId': row['id'],
                    'title': row['title'],
                    'totalCopies': row['total_copies'],
                    'borrowedCount': row['borrowed'],
                    'currentAvailable': row['available_copies'],
                    'expectedAvailable': expected,
                })
        return mismatches

    @staticmethod
    def repair_inventory_sync(updated_by: str = 'system') -> List[Dict[str, Any]]:
        """Reset available_copies to total_copies minus active loans.

        Returns:
            The mismatches that were fixed.
        """
        with transaction() as db:
            mismatches = Book.check_inventory_sync()
            timestamp = now_timestamp()
            for item in mismatches:
                db.execute(
                    'UPDATE books SET available_copies = ?, updated_by = ?, updated_at = ? '
                    'WHERE id = ?',
                    (item['expectedAvailable'], updated_by, timestamp, item['bookId'])
                )

        if mismatches:
            from campus_library.models.system_log import SystemLog
            SystemLog.add('Inventory Repaired',
                          f'Fixed available copies for {len(mismatches)} book(s)', 'warning')
        return mismatches

    # ==================== STATISTICS ====================

    @staticmethod
    def get_inventory_totals() -> Dict[str, int]:
        db = get_db()
        row = db.execute('''
            SELECT COUNT(*) AS books,
                   COALESCE(SUM(total_copies), 0) AS copies,
                   COALESCE(SUM(available_copies), 0) AS available,
                   COALESCE(SUM(CASE WHEN is_active = 1 THEN 1 ELSE 0 END), 0) AS active
            FROM books
        ''').fetchone()
        return {
            'totalBooks': row['books'],
            'totalCopies': row['copies'],
            'availableCopies': row['available'],
            'borrowedCopies': row['copies'] - row['available'],
            'activeBooks': row['active'],
            'inactiveBooks': row['books'] - row['active'],
        }

    @staticmethod
    def count_by(column: str) -> List[Dict[str, Any]]:
        """Group active books by genre, publication_year or language."""
        if column not in ('genre', 'publication_year', 'language'):
            raise ValueError(f'Cannot group books by {column}')
        db = get_db()
        rows = db.execute(f'''
            SELECT {column} AS value, COUNT(*) AS count
            FROM books WHERE is_active = 1 AND {column} IS NOT NULL
            GROUP BY {column} ORDER BY count DESC, value ASC
        ''').fetchall()
        return [dict(row) for row in rows]

    def to_dict(self) -> Dict[str, Any]:
        """Convert book to dictionary representation."""
        return {
            'id': self.id,
            'title': self.title,
            'author': self.author,
            'genre': self.genre,
            'rating': self.rating,
            'coverUrl': self.cover_url,
            'coverColor': self.cover_color,
            'description': self.description,
            'totalCopies': self.total_copies,
            'availableCopies': self.available_copies,
            'videoUrl': self.video_url,
            'summary': self.summary,
            'isbn': self.isbn,
            'publicationYear': self.publication_year,
            'publisher': self.publisher,
            'language': self.language,
            'pageCount': self.page_count,
            'edition': self.edition,
            'isActive': self.is_active,
            'updatedBy': self.updated_by,
            'createdAt': self.created_at,
            'updatedAt': self.updated_at,
        }
