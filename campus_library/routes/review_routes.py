from flask import Blueprint, g, request

from campus_library.extensions import broadcast_invalidation
from campus_library.models.book import Book
from campus_library.models.review import Review
from campus_library.utils.decorators import login_required
from campus_library.utils.responses import error_response, success_response

# Create review blueprint
review_bp = Blueprint('reviews', __name__, url_prefix='/api/reviews')


@review_bp.route('/<book_id>', methods=['GET'])
def list_reviews(book_id):
    """Reviews for a book, newest first, with rating summary."""
    if not Book.get_by_id(book_id):
        return error_response('Book not found', 404)

    reviews = Review.get_by_book(book_id)
    return success_response(
        reviews=[review.to_dict() for review in reviews],
        stats=Review.get_book_rating_stats(book_id),
    )


@review_bp.route('/<book_id>', methods=['POST'])
@login_required
def create_review(book_id):
    data = request.get_json(silent=True) or {}
    if not Book.get_by_id(book_id):
        return error_response('Book not found', 404)

    review, message = Review.submit_review(g.user.id, book_id, data.get('rating'), data.get('comment'))
    if not review:
        return error_response(message, 400)

    broadcast_invalidation('reviews', 'books')
    return success_response(message, 201, review=review.to_dict())


@review_bp.route('/delete/<review_id>', methods=['DELETE'])
@login_required
def delete_review(review_id):
    success, message = Review.delete_review_by_user(review_id, g.user.id)
    if not success:
        return error_response(message, 404)

    broadcast_invalidation('reviews', 'books')
    return success_response(message)


@review_bp.route('/eligibility/<book_id>', methods=['GET'])
def eligibility(book_id):
    """Whether the current visitor may review the book."""
    return success_response(**Review.check_eligibility(g.user.id, book_id))
