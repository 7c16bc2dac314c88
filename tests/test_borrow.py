import sqlite3
from datetime import date, timedelta

import pytest

from conftest import make_book, make_user, sign_in

from campus_library.models.book import Book
from campus_library.models.borrow import Borrow
from campus_library.models.database import get_db


def _available(app, book_id):
    with app.app_context():
        return Book.get_by_id(book_id).available_copies


def test_request_does_not_reserve_a_copy(app, reader_client, seed):
    response = reader_client.post(f"/api/books/{seed['book_id']}/borrow")
    assert response.status_code == 201
    data = response.get_json()
    assert data['record']['status'] == 'PENDING'
    assert data['record']['dueDate'] is None
    assert data['message'] == 'Borrow request submitted. Awaiting admin approval.'
    assert _available(app, seed['book_id']) == 2


def test_duplicate_request_is_rejected(reader_client, seed):
    reader_client.post(f"/api/books/{seed['book_id']}/borrow")
    response = reader_client.post(f"/api/books/{seed['book_id']}/borrow")
    assert response.status_code == 400
    assert response.get_json()['message'] == 'You have already borrowed or requested this book'


def test_pending_account_cannot_borrow(app, client, seed):
    with app.app_context():
        make_user('new@uni.edu', 3003, status='PENDING')
    sign_in(client, 'new@uni.edu')
    response = client.post(f"/api/books/{seed['book_id']}/borrow")
    assert response.status_code == 400
    assert 'approved' in response.get_json()['message']


def test_borrow_requires_sign_in(client, seed):
    response = client.post(f"/api/books/{seed['book_id']}/borrow")
    assert response.status_code == 401
    assert response.get_json()['success'] is False


def test_full_lifecycle_moves_copies_once(app, reader_client, admin_client, seed):
    record_id = reader_client.post(f"/api/books/{seed['book_id']}/borrow").get_json()['record']['id']

    response = admin_client.post(f'/api/admin/borrow-requests/{record_id}/approve')
    assert response.status_code == 200
    record = response.get_json()['record']
    assert record['status'] == 'BORROWED'
    assert record['borrowedBy'] == 'reader@uni.edu'
    assert record['dueDate'] == (date.today() + timedelta(days=7)).isoformat()
    assert _available(app, seed['book_id']) == 1

    again = admin_client.post(f'/api/admin/borrow-requests/{record_id}/approve')
    assert again.status_code == 400
    assert _available(app, seed['book_id']) == 1

    returned = reader_client.post(f'/api/borrow-records/{record_id}/return')
    assert returned.status_code == 200
    assert returned.get_json()['record']['status'] == 'RETURNED'
    assert returned.get_json()['record']['fineAmount'] == '0.00'
    assert _available(app, seed['book_id']) == 2

    twice = reader_client.post(f'/api/borrow-records/{record_id}/return')
    assert twice.status_code == 400
    assert twice.get_json()['message'] == 'Only borrowed books can be returned'
    assert _available(app, seed['book_id']) == 2


def test_approve_fails_when_last_copy_is_gone(app, ctx):
    reader = make_user()
    other = make_user('other@uni.edu', 1002)
    book = make_book(total_copies=1)

    first, _ = Borrow.request(reader.id, book.id)
    second, _ = Borrow.request(other.id, book.id)
    assert first and second

    assert first.approve('admin@uni.edu')[0] is True
    success, message = second.approve('admin@uni.edu')
    assert success is False
    assert message == 'Book is no longer available'
    assert Book.get_by_id(book.id).available_copies == 0
    assert Borrow.get_by_id(second.id).status == 'PENDING'


def test_request_for_unavailable_book(ctx):
    reader = make_user()
    other = make_user('other@uni.edu', 1002)
    book = make_book(total_copies=1)
    record, _ = Borrow.request(other.id, book.id)
    record.approve('admin@uni.edu')

    borrow, message = Borrow.request(reader.id, book.id)
    assert borrow is None
    assert message == 'Book is not available for borrowing'


def test_reject_deletes_pending_request(app, reader_client, admin_client, seed):
    record_id = reader_client.post(f"/api/books/{seed['book_id']}/borrow").get_json()['record']['id']

    response = admin_client.post(f'/api/admin/borrow-requests/{record_id}/reject')
    assert response.status_code == 200
    with app.app_context():
        assert Borrow.get_by_id(record_id) is None
    assert _available(app, seed['book_id']) == 2

    # The user may ask again once the old request is gone
    retry = reader_client.post(f"/api/books/{seed['book_id']}/borrow")
    assert retry.status_code == 201


def test_return_of_pending_request_is_refused(reader_client, admin_client, seed):
    record_id = reader_client.post(f"/api/books/{seed['book_id']}/borrow").get_json()['record']['id']
    response = admin_client.post(f'/api/admin/borrow-requests/{record_id}/return')
    assert response.status_code == 400


def test_late_return_charges_fine(ctx):
    reader = make_user()
    book = make_book()
    record, _ = Borrow.request(reader.id, book.id)
    record.approve('admin@uni.edu', today=date(2026, 1, 1))
    assert record.due_date == '2026-01-08'

    success, message = record.return_book('reader@uni.edu', today=date(2026, 1, 11))
    assert success is True
    assert message == 'Book returned successfully. Late fine: $3.00'
    assert Borrow.get_by_id(record.id).fine_amount == 3.0


def test_renew_extends_due_date_until_limit(ctx):
    reader = make_user()
    book = make_book()
    record, _ = Borrow.request(reader.id, book.id)
    record.approve('admin@uni.edu', today=date(2026, 1, 1))

    assert record.renew(reader.id, today=date(2026, 1, 5))[0] is True
    assert record.due_date == '2026-01-15'
    assert record.renew(reader.id, today=date(2026, 1, 5))[0] is True
    assert record.due_date == '2026-01-22'

    success, message = record.renew(reader.id, today=date(2026, 1, 5))
    assert success is False
    assert message == 'Maximum renewal limit (2 times) reached'
    assert Borrow.get_by_id(record.id).renewal_count == 2


def test_overdue_loan_cannot_be_renewed(ctx):
    reader = make_user()
    book = make_book()
    record, _ = Borrow.request(reader.id, book.id)
    record.approve('admin@uni.edu', today=date(2026, 1, 1))

    success, message = record.renew(reader.id, today=date(2026, 1, 10))
    assert success is False
    assert message == 'Overdue books cannot be renewed'


def test_only_owner_can_renew(app, reader_client, admin_client, seed):
    record_id = reader_client.post(f"/api/books/{seed['book_id']}/borrow").get_json()['record']['id']
    admin_client.post(f'/api/admin/borrow-requests/{record_id}/approve')

    assert admin_client.post(f'/api/borrow-records/{record_id}/renew').status_code == 404
    response = reader_client.post(f'/api/borrow-records/{record_id}/renew')
    assert response.status_code == 200
    assert response.get_json()['record']['renewalCount'] == 1


def test_members_only_list_their_own_records(reader_client, seed):
    reader_client.post(f"/api/books/{seed['book_id']}/borrow")

    response = reader_client.get('/api/borrow-records')
    data = response.get_json()
    assert response.status_code == 200
    assert data['pagination']['totalRecords'] == 1
    assert data['records'][0]['book']['title'] == 'Dune'

    forbidden = reader_client.get(f"/api/borrow-records?userId={seed['admin_id']}")
    assert forbidden.status_code == 403


def test_admin_request_listing_searches_users(reader_client, admin_client, seed):
    reader_client.post(f"/api/books/{seed['book_id']}/borrow")

    response = admin_client.get('/api/admin/borrow-requests?status=PENDING&search=reader')
    data = response.get_json()
    assert data['total'] == 1
    assert data['requests'][0]['user']['email'] == 'reader@uni.edu'

    assert admin_client.get('/api/admin/borrow-requests?status=LOST').status_code == 400


def test_active_record_uniqueness_is_enforced_by_the_database(ctx):
    reader = make_user()
    book = make_book()
    Borrow.request(reader.id, book.id)

    db = get_db()
    with pytest.raises(sqlite3.IntegrityError):
        db.execute('''
            INSERT INTO borrow_records (id, user_id, book_id, borrow_date, status,
                                        created_at, updated_at)
            VALUES ('dup', ?, ?, '2026-01-01 00:00:00', 'BORROWED',
                    '2026-01-01 00:00:00', '2026-01-01 00:00:00')
        ''', (reader.id, book.id))
    db.rollback()


@pytest.mark.parametrize('available', ['total_copies + 1', '-1'])
def test_available_copies_stay_within_bounds(ctx, available):
    book = make_book(total_copies=2)

    db = get_db()
    with pytest.raises(sqlite3.IntegrityError):
        db.execute(f'UPDATE books SET available_copies = {available} WHERE id = ?', (book.id,))
    db.rollback()
    assert Book.get_by_id(book.id).available_copies == 2
