from conftest import make_book, make_user

from campus_library.models.book import Book
from campus_library.models.borrow import Borrow
from campus_library.models.review import Review
from campus_library.models.user import User


def _returned_loan(user, book):
    record, _ = Borrow.request(user.id, book.id)
    record.approve('admin@uni.edu')
    record.return_book(user.email)
    return record


def test_review_requires_returned_loan(ctx):
    reader = make_user()
    book = make_book(rating=3)

    review, message = Review.submit_review(reader.id, book.id, 5, 'Loved it')
    assert review is None
    assert message == 'You must have borrowed this book to review it'

    record, _ = Borrow.request(reader.id, book.id)
    record.approve('admin@uni.edu')
    eligibility = Review.check_eligibility(reader.id, book.id)
    assert eligibility['canReview'] is False
    assert eligibility['isCurrentlyBorrowed'] is True

    record.return_book(reader.email)
    assert Review.check_eligibility(reader.id, book.id)['canReview'] is True


def test_validation_order(ctx):
    reader = make_user()
    book = make_book()

    assert Review.submit_review(reader.id, book.id, 0, '')[1] == 'Rating must be between 1 and 5'
    assert Review.submit_review(reader.id, book.id, 'five', 'x')[1] == 'Rating must be between 1 and 5'
    assert Review.submit_review(reader.id, book.id, 4, '   ')[1] == 'Comment is required'
    assert Review.submit_review(reader.id, 'missing', 4, 'Good')[1] == 'Book not found'


def test_rating_must_be_a_whole_number(ctx):
    reader = make_user()
    book = make_book()

    for rating in (4.9, True, False):
        review, message = Review.submit_review(reader.id, book.id, rating, 'Good')
        assert review is None
        assert message == 'Rating must be a whole number between 1 and 5'

    assert Review.submit_review(reader.id, 'missing', 4.0, 'Good')[1] == 'Book not found'
    assert Review.submit_review(reader.id, 'missing', '4', 'Good')[1] == 'Book not found'


def test_one_review_per_user_and_rating_is_averaged(ctx):
    first = make_user()
    second = make_user('second@uni.edu', 1002)
    book = make_book(rating=1)
    _returned_loan(first, book)
    _returned_loan(second, book)

    review, message = Review.submit_review(first.id, book.id, 5, 'Great')
    assert review is not None, message
    assert Book.get_by_id(book.id).rating == 5.0

    Review.submit_review(second.id, book.id, 2, 'Too long')
    assert Book.get_by_id(book.id).rating == 3.5

    duplicate, message = Review.submit_review(first.id, book.id, 1, 'Changed my mind')
    assert duplicate is None
    assert message == 'You have already reviewed this book'

    stats = Review.get_book_rating_stats(book.id)
    assert stats['count'] == 2
    assert stats['distribution'][5] == 1
    assert stats['distribution'][2] == 1


def test_only_author_can_delete_review(ctx):
    author = make_user()
    other = make_user('other@uni.edu', 1002)
    book = make_book()
    _returned_loan(author, book)
    review, _ = Review.submit_review(author.id, book.id, 4, 'Solid')

    success, message = Review.delete_review_by_user(review.id, other.id)
    assert success is False
    assert message == "Review not found or you don't have permission to delete it"

    assert Review.delete_review_by_user(review.id, author.id)[0] is True
    assert Review.get_by_book(book.id) == []


def test_review_endpoints(app, reader_client, seed):
    with app.app_context():
        reader = User.get_by_id(seed['reader_id'])
        _returned_loan(reader, Book.get_by_id(seed['book_id']))

    created = reader_client.post(f"/api/reviews/{seed['book_id']}",
                                 json={'rating': 4, 'comment': 'Worth it'})
    assert created.status_code == 201
    review_id = created.get_json()['review']['id']

    listing = reader_client.get(f"/api/reviews/{seed['book_id']}").get_json()
    assert listing['reviews'][0]['fullName'] == 'Test Reader'
    assert listing['stats']['average'] == 4.0

    eligibility = reader_client.get(f"/api/reviews/eligibility/{seed['book_id']}").get_json()
    assert eligibility['hasExistingReview'] is True

    deleted = reader_client.delete(f'/api/reviews/delete/{review_id}')
    assert deleted.status_code == 200


def test_guest_eligibility(client, seed):
    data = client.get(f"/api/reviews/eligibility/{seed['book_id']}").get_json()
    assert data['canReview'] is False
    assert data['reason'] == 'Please log in to review books'
