"""Review model for book reviews and ratings.

This module handles creating, retrieving, and deleting book reviews.
Only readers who have returned a book may review it, once.
"""
import sqlite3
import uuid
from typing import Any, Dict, List, Optional, Tuple

from campus_library.models.database import get_db, now_timestamp


class Review:
    """Represents a book review with rating and comment.

    Attributes:
        id: Unique review identifier.
        book_id: ID of the book being reviewed.
        user_id: ID of the user who wrote the review.
        rating: Rating value (1-5).
        comment: Review comment text.
        created_at: When the review was created.
        updated_at: When the review was last changed.
    """

    def __init__(self, id: str, book_id: str, user_id: str, rating: int,
                 comment: str, created_at: str, updated_at: str, **kwargs) -> None:
        """Initialize a Review instance."""
        self.id = id
        self.book_id = book_id
        self.user_id = user_id
        self.rating = int(rating)
        self.comment = comment
        self.created_at = created_at
        self.updated_at = updated_at
        self.user_name = kwargs.get('user_name')
        self.user_email = kwargs.get('user_email')

    @staticmethod
    def get_by_id(review_id):
        """Get review by ID"""
        db = get_db()
        row = db.execute('SELECT * FROM book_reviews WHERE id = ?', (review_id,)).fetchone()
        if row:
            return Review(**dict(row))
        return None

    @staticmethod
    def get_by_book(book_id: str) -> List['Review']:
        """Get reviews for a book with reviewer details, newest first."""
        db = get_db()
        rows = db.execute('''
            SELECT r.*, u.full_name AS user_name, u.email AS user_email
            FROM book_reviews r
            JOIN users u ON r.user_id = u.id
            WHERE r.book_id = ?
            ORDER BY r.created_at DESC, r.rowid DESC
        ''', (book_id,)).fetchall()
        return [Review(**dict(row)) for row in rows]

    @staticmethod
    def user_has_reviewed(user_id: str, book_id: str) -> bool:
        db = get_db()
        row = db.execute(
            'SELECT 1 FROM book_reviews WHERE user_id = ? AND book_id = ?',
            (user_id, book_id)
        ).fetchone()
        return row is not None

    @staticmethod
    def check_eligibility(user_id: Optional[str], book_id: str) -> Dict[str, Any]:
        """Work out whether a user may review a book.

        Returns:
            Dict with canReview, hasExistingReview, isCurrentlyBorrowed
            and a human readable reason.
        """
        if not user_id:
            return {
                'canReview': False,
                'hasExistingReview': False,
                'isCurrentlyBorrowed': False,
                'reason': "Please log in to review books",
            }

        from campus_library.models.borrow import Borrow

        has_review = Review.user_has_reviewed(user_id, book_id)
        active = Borrow.get_active_for(user_id, book_id)
        is_borrowed = bool(active and active.is_borrowed)
        has_returned = Borrow.has_returned(user_id, book_id)

        if has_review:
            reason = "You have already reviewed this book"
        elif is_borrowed:
            reason = "You can review this book after returning it"
        elif not has_returned:
            reason = "You must have borrowed this book to review it"
        else:
            reason = "You can review this book"

        return {
            'canReview': has_returned and not has_review,
            'hasExistingReview': has_review,
            'isCurrentlyBorrowed': is_borrowed,
            'reason': reason,
        }

    @staticmethod
    def submit_review(user_id: str, book_id: str, rating: Any, comment: Any) -> Tuple[Optional['Review'], str]:
        """Validate and create a review, then refresh the book rating.

        Args:
            user_id: Reviewer ID.
            book_id: Reviewed book ID.
            rating: Rating 1-5 (int or numeric string).
            comment: Review text, required.

        Returns:
            Tuple of (Review or None, message).
        """
        from campus_library.models.book import Book
        from campus_library.models.borrow import Borrow

        if isinstance(rating, bool) or (isinstance(rating, float) and not rating.is_integer()):
            return None, "Rating must be a whole number between 1 and 5"
        try:
            rating = int(rating)
        except (TypeError, ValueError):
            return None, "Rating must be between 1 and 5"
        if rating < 1 or rating > 5:
            return None, "Rating must be between 1 and 5"

        comment = comment.strip() if isinstance(comment, str) else ''
        if not comment:
            return None, "Comment is required"

        book = Book.get_by_id(book_id)
        if not book:
            return None, "Book not found"

        if not Borrow.has_returned(user_id, book_id):
            return None, "You must have borrowed this book to review it"

        if Review.user_has_reviewed(user_id, book_id):
            return None, "You have already reviewed this book"

        review_id = str(uuid.uuid4())
        timestamp = now_timestamp()
        db = get_db()
        try:
            db.execute('''
                INSERT INTO book_reviews (id, book_id, user_id, rating, comment,
                                          created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            ''', (review_id, book_id, user_id, rating, comment, timestamp, timestamp))
            db.commit()
        except sqlite3.IntegrityError:
            db.rollback()
            return None, "You have already reviewed this book"

        book.update_rating()
        return Review.get_by_id(review_id), "Review submitted successfully"

    @staticmethod
    def delete_review_by_user(review_id: str, user_id: str) -> Tuple[bool, str]:
        """Delete a review owned by the user and refresh the book rating."""
        review = Review.get_by_id(review_id)
        if not review or review.user_id != user_id:
            return False, "Review not found or you don't have permission to delete it"

        db = get_db()
        db.execute('DELETE FROM book_reviews WHERE id = ?', (review_id,))
        db.commit()

        from campus_library.models.book import Book
        book = Book.get_by_id(review.book_id)
        if book:
            book.update_rating()
        return True, "Review deleted successfully"

    @staticmethod
    def get_book_rating_stats(book_id: str) -> Dict[str, Any]:
        db = get_db()
        rows = db.execute(
            'SELECT rating, COUNT(*) AS count FROM book_reviews WHERE book_id = ? GROUP BY rating',
            (book_id,)
        ).fetchall()
        distribution = {star: 0 for star in range(1, 6)}
        for row in rows:
            distribution[row['rating']] = row['count']
        total = sum(distribution.values())
        average = (sum(star * count for star, count in distribution.items()) / total) if total else 0
        return {
            'average': round(average, 1),
            'count': total,
            'distribution': distribution,
        }

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'bookId': self.book_id,
            'userId': self.user_id,
            'rating': self.rating,
            'comment': self.comment,
            'createdAt': self.created_at,
            'updatedAt': self.updated_at,
        }
        if self.user_name is not None:
            data['fullName'] = self.user_name
            data['email'] = self.user_email
        return data
