import math

from flask import Blueprint, current_app, g, jsonify, request

from campus_library.extensions import broadcast_invalidation
from campus_library.models.book import Book
from campus_library.models.borrow import Borrow
from campus_library.models.recommendation import Recommendation
from campus_library.utils.decorators import login_required
from campus_library.utils.responses import error_response, success_response
from campus_library.utils.validators import parse_int

# Create book blueprint
book_bp = Blueprint('books', __name__, url_prefix='/api/books')


@book_bp.route('', methods=['GET'])
@book_bp.route('/', methods=['GET'])
def list_books():
    """Search the catalogue.

    Query params: search, genre, availability, rating, sort, page, limit.
    """
    page = max(1, parse_int(request.args.get('page'), 1))
    limit = parse_int(request.args.get('limit'), current_app.config['BOOKS_PER_PAGE'])
    limit = min(max(1, limit), 100)

    rating = request.args.get('rating')
    try:
        min_rating = float(rating) if rating else None
    except ValueError:
        return error_response('rating must be a number', 400)

    books, total = Book.search(
        query=request.args.get('search', '').strip(),
        genre=request.args.get('genre', '').strip(),
        availability=request.args.get('availability', ''),
        min_rating=min_rating,
        sort_by=request.args.get('sort', 'title'),
        page=page,
        limit=limit,
    )

    return jsonify({
        'success': True,
        'books': [book.to_dict() for book in books],
        'pagination': {
            'currentPage': page,
            'totalPages': math.ceil(total / limit) if total else 0,
            'totalBooks': total,
            'booksPerPage': limit,
        },
        'genres': Book.get_all_genres(),
    })


@book_bp.route('/genres', methods=['GET'])
def list_genres():
    return success_response(genres=Book.get_all_genres())


@book_bp.route('/recommendations', methods=['GET'])
@login_required
def recommendations():
    """Personal recommendations for the signed-in user (cached)."""
    recs = Recommendation.get_for_user(g.user.id)
    return success_response(recommendations=[rec.to_dict() for rec in recs])


@book_bp.route('/<book_id>', methods=['GET'])
def get_book(book_id):
    book = Book.get_by_id(book_id)
    if not book or (not book.is_active and not g.user.is_admin):
        return error_response('Book not found', 404)
    return success_response(book=book.to_dict())


@book_bp.route('/<book_id>/borrow-stats', methods=['GET'])
def borrow_stats(book_id):
    book = Book.get_by_id(book_id)
    if not book:
        return error_response('Book not found', 404)
    return success_response(**book.get_borrow_stats())


@book_bp.route('/<book_id>/borrow', methods=['POST'])
@login_required
def borrow_book(book_id):
    """Submit a borrow request for the signed-in user."""
    book = Book.get_by_id(book_id)
    if not book or not book.is_active:
        return error_response('Book not found', 404)

    borrow, message = Borrow.request(g.user.id, book_id)
    if not borrow:
        return error_response(message, 400)

    broadcast_invalidation('borrows', 'books')
    return success_response(message, 201, record=borrow.to_dict())
