"""Book recommendations and the per-user recommendation cache.

Recommendations come from three simple sources: genres and authors the
user has read (returned loans) and books trending over the last month.
Generated lists are stored in ``recommendation_cache`` until an admin or
the weekly job refreshes them.
"""
import logging
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from campus_library.config.config import Config
from campus_library.models.database import DATE_FORMAT, get_db, now_timestamp, transaction

logger = logging.getLogger(__name__)

ALGORITHMS = ('genre-based', 'author-based', 'trending')


class Recommendation:
    """A single recommended book for a user."""

    def __init__(self, user_id: str, book_id: str, score: float, reason: str,
                 algorithm: str, book_title: str = '', book_author: str = '',
                 book_genre: str = '', generated_at: Optional[str] = None, **kwargs) -> None:
        self.user_id = user_id
        self.book_id = book_id
        self.score = float(score or 0)
        self.reason = reason
        self.algorithm = algorithm
        self.book_title = book_title
        self.book_author = book_author
        self.book_genre = book_genre
        self.generated_at = generated_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            'userId': self.user_id,
            'bookId': self.book_id,
            'bookTitle': self.book_title,
            'bookAuthor': self.book_author,
            'bookGenre': self.book_genre or 'Unknown',
            'reason': self.reason,
            'score': self.score,
            'algorithm': self.algorithm,
        }

    # ==================== GENERATION ====================

    @staticmethod
    def _top_history_values(user_id: str, column: str, limit: int = 3) -> List[str]:
        rows = get_db().execute(f'''
            SELECT b.{column} AS value, COUNT(*) AS count
            FROM borrow_records br
            JOIN books b ON br.book_id = b.id
            WHERE br.user_id = ? AND br.status = 'RETURNED'
            GROUP BY b.{column}
            ORDER BY count DESC, value ASC
            LIMIT ?
        ''', (user_id, limit)).fetchall()
        return [row['value'] for row in rows]

    @staticmethod
    def _from_history(user_id: str, column: str, algorithm: str, limit: int) -> List['Recommendation']:
        values = Recommendation._top_history_values(user_id, column)
        if not values:
            return []

        placeholders = ', '.join('?' for _ in values)
        rows = get_db().execute(f'''
            SELECT id, title, author, genre, rating FROM books
            WHERE is_active = 1 AND {column} IN ({placeholders})
              AND id NOT IN (SELECT book_id FROM borrow_records WHERE user_id = ?)
            ORDER BY rating DESC, title ASC
            LIMIT ?
        ''', values + [user_id, limit]).fetchall()

        recommendations = []
        for row in rows:
            if algorithm == 'genre-based':
                reason = f'Based on your interest in {row["genre"]} books'
            else:
                reason = f'By {row["author"]}, an author you enjoy'
            recommendations.append(Recommendation(
                user_id, row['id'], row['rating'], reason, algorithm,
                row['title'], row['author'], row['genre']
            ))
        return recommendations

    @staticmethod
    def genre_based(user_id: str, limit: int = 3) -> List['Recommendation']:
        return Recommendation._from_history(user_id, 'genre', 'genre-based', limit)

    @staticmethod
    def author_based(user_id: str, limit: int = 3) -> List['Recommendation']:
        return Recommendation._from_history(user_id, 'author', 'author-based', limit)

    @staticmethod
    def get_trending_books(limit: int = 10, exclude_user_id: Optional[str] = None,
                           today: Optional[date] = None) -> List[Dict[str, Any]]:
        """Active books with the most borrow requests in the trending window."""
        since = ((today or date.today())
                 - timedelta(days=Config.TRENDING_WINDOW_DAYS)).strftime(DATE_FORMAT)
        sql = '''
            SELECT b.id, b.title, b.author, b.genre, b.rating, COUNT(br.id) AS borrow_count
            FROM books b
            JOIN borrow_records br ON br.book_id = b.id
            WHERE b.is_active = 1 AND substr(br.borrow_date, 1, 10) >= ?
        '''
        params: List[Any] = [since]
        if exclude_user_id:
            sql += ' AND b.id NOT IN (SELECT book_id FROM borrow_records WHERE user_id = ?)'
            params.append(exclude_user_id)
        sql += ' GROUP BY b.id ORDER BY borrow_count DESC, b.rating DESC LIMIT ?'
        params.append(limit)
        return [dict(row) for row in get_db().execute(sql, params).fetchall()]

    @staticmethod
    def trending(user_id: str, limit: int = 4, today: Optional[date] = None) -> List['Recommendation']:
        return [
            Recommendation(
                user_id, row['id'], row['borrow_count'],
                f'Trending: {row["borrow_count"]} borrows in the last '
                f'{Config.TRENDING_WINDOW_DAYS} days',
                'trending', row['title'], row['author'], row['genre']
            )
            for row in Recommendation.get_trending_books(limit, user_id, today)
        ]

    @staticmethod
    def generate_for_user(user_id: str, today: Optional[date] = None) -> List['Recommendation']:
        """Combine all sources, keep the first hit per book, best score first."""
        combined = (Recommendation.genre_based(user_id, 3)
                    + Recommendation.author_based(user_id, 3)
                    + Recommendation.trending(user_id, 4, today))

        seen = set()
        unique = []
        for rec in combined:
            if rec.book_id not in seen:
                seen.add(rec.book_id)
                unique.append(rec)

        unique.sort(key=lambda rec: rec.score, reverse=True)
        return unique[:Config.RECOMMENDATION_LIMIT]

    # ==================== CACHE ====================

    @staticmethod
    def get_cached(user_id: str) -> List['Recommendation']:
        rows = get_db().execute('''
            SELECT rc.*, b.title AS book_title, b.author AS book_author, b.genre AS book_genre
            FROM recommendation_cache rc
            JOIN books b ON rc.book_id = b.id
            WHERE rc.user_id = ? AND b.is_active = 1
            ORDER BY rc.score DESC
        ''', (user_id,)).fetchall()
        return [Recommendation(**dict(row)) for row in rows]

    @staticmethod
    def store(user_id: str, recommendations: List['Recommendation']) -> None:
        timestamp = now_timestamp()
        with transaction() as db:
            db.execute('DELETE FROM recommendation_cache WHERE user_id = ?', (user_id,))
            db.executemany('''
                INSERT INTO recommendation_cache
                    (user_id, book_id, score, reason, algorithm, generated_at)
                VALUES (?, ?, ?, ?, ?, ?)
            ''', [(user_id, rec.book_id, rec.score, rec.reason, rec.algorithm, timestamp)
                  for rec in recommendations])

    @staticmethod
    def get_for_user(user_id: str) -> List['Recommendation']:
        """Cached recommendations, generating and caching them on a miss."""
        cached = Recommendation.get_cached(user_id)
        if cached:
            return cached

        recommendations = Recommendation.generate_for_user(user_id)
        if recommendations:
            Recommendation.store(user_id, recommendations)
        return recommendations

    @staticmethod
    def refresh_cache() -> Dict[str, Any]:
        """Drop every cached list so the next request regenerates it."""
        db = get_db()
        cursor = db.execute('DELETE FROM recommendation_cache')
        db.commit()
        cleared = cursor.rowcount
        logger.info('Cleared %d cached recommendation(s)', cleared)

        from campus_library.models.system_log import SystemLog
        SystemLog.add('Recommendation Cache Refreshed', f'{cleared} cached entries cleared')
        return {
            'message': ('Recommendation cache refreshed successfully. All cached recommendations '
                        'have been cleared and will be regenerated on next request.'),
            'cacheCleared': True,
            'entriesCleared': cleared,
        }

    @staticmethod
    def update_trending_books(today: Optional[date] = None) -> Dict[str, Any]:
        trending = Recommendation.get_trending_books(10, today=today)
        return {
            'message': f'Updated trending books data. Found {len(trending)} trending books.',
            'trendingCount': len(trending),
            'trendingBooks': [
                {'bookId': row['id'], 'bookTitle': row['title'], 'borrowCount': row['borrow_count']}
                for row in trending
            ],
        }

    @staticmethod
    def get_stats() -> Dict[str, Any]:
        """Recommendation counts per algorithm across all approved users."""
        rows = get_db().execute("SELECT id FROM users WHERE status = 'APPROVED'").fetchall()

        counts = {algorithm: 0 for algorithm in ALGORITHMS}
        total = 0
        for row in rows:
            recommendations = Recommendation.generate_for_user(row['id'])
            total += len(recommendations)
            for rec in recommendations:
                counts[rec.algorithm] += 1

        return {
            'totalRecommendations': total,
            'genreBasedCount': counts['genre-based'],
            'authorBasedCount': counts['author-based'],
            'trendingCount': counts['trending'],
            'lastUpdated': now_timestamp(),
        }
