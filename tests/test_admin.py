import json
from datetime import date

from conftest import make_book, make_user, sign_in

from campus_library.models.admin_request import AdminRequest
from campus_library.models.analytics import Analytics
from campus_library.models.borrow import Borrow
from campus_library.models.system_log import SystemLog
from campus_library.models.user import User


def test_admin_endpoints_require_admin(client, reader_client):
    assert client.get('/api/admin/stats').status_code == 401
    assert reader_client.get('/api/admin/stats').status_code == 403


def test_dashboard_stats(admin_client, reader_client, seed):
    reader_client.post(f"/api/books/{seed['book_id']}/borrow")

    stats = admin_client.get('/api/admin/stats').get_json()['stats']
    assert stats['users'] == {'total': 2, 'approved': 2, 'pending': 0, 'admins': 1}
    assert stats['books']['totalCopies'] == 2
    assert stats['borrows']['pending'] == 1
    assert stats['categoryStats'] == [{'genre': 'Science Fiction', 'count': 1}]
    assert len(stats['recentBorrows']) == 1


def test_user_listing_and_status_changes(app, admin_client):
    with app.app_context():
        pending = make_user('pending@uni.edu', 3003, status='PENDING', full_name='Pending Person')

    listing = admin_client.get('/api/users?status=PENDING').get_json()
    assert listing['total'] == 1
    assert listing['users'][0]['email'] == 'pending@uni.edu'

    response = admin_client.post(f'/api/admin/users/{pending.id}/status', json={'status': 'approved'})
    assert response.status_code == 200
    with app.app_context():
        assert User.get_by_id(pending.id).status == 'APPROVED'

    invalid = admin_client.post(f'/api/admin/users/{pending.id}/status', json={'status': 'BANNED'})
    assert invalid.status_code == 400
    missing = admin_client.post('/api/admin/users/nobody/status', json={'status': 'APPROVED'})
    assert missing.status_code == 404


def test_admin_cannot_demote_self(admin_client, seed):
    response = admin_client.post(f"/api/admin/users/{seed['admin_id']}/role", json={'role': 'USER'})
    assert response.status_code == 400
    assert response.get_json()['message'] == 'You cannot remove your own admin privileges'


def test_user_listing_is_admin_only(reader_client):
    assert reader_client.get('/api/users').status_code == 403


def test_admin_request_flow(app, reader_client, admin_client, seed):
    empty = reader_client.post('/api/users/admin-request', json={'requestReason': '  '})
    assert empty.status_code == 400
    assert empty.get_json()['message'] == 'Request reason is required'

    created = reader_client.post('/api/users/admin-request',
                                 json={'requestReason': 'I run the evening desk'})
    assert created.status_code == 201
    request_id = created.get_json()['request']['id']

    duplicate = reader_client.post('/api/users/admin-request', json={'requestReason': 'Again'})
    assert duplicate.get_json()['message'] == 'You already have a pending admin request'

    pending = admin_client.get('/api/admin/admin-requests?pending=1').get_json()['requests']
    assert [item['id'] for item in pending] == [request_id]
    assert pending[0]['user']['email'] == 'reader@uni.edu'

    approved = admin_client.post(f'/api/admin/admin-requests/{request_id}/approve')
    assert approved.status_code == 200
    with app.app_context():
        assert User.get_by_id(seed['reader_id']).is_admin

    again = admin_client.post(f'/api/admin/admin-requests/{request_id}/reject', json={'reason': 'no'})
    assert again.status_code == 400

    mine = reader_client.get('/api/users/admin-request').get_json()['request']
    assert mine['status'] == 'APPROVED'


def test_rejected_admin_request_keeps_reason(app, client, admin_client):
    with app.app_context():
        make_user('hopeful@uni.edu', 5005)
    sign_in(client, 'hopeful@uni.edu')
    request_id = client.post('/api/users/admin-request',
                             json={'requestReason': 'Please'}).get_json()['request']['id']

    admin_client.post(f'/api/admin/admin-requests/{request_id}/reject',
                      json={'reason': 'Not staff'})
    mine = client.get('/api/users/admin-request').get_json()['request']
    assert mine['status'] == 'REJECTED'
    assert mine['rejectionReason'] == 'Not staff'


def test_admin_request_is_reviewed_once(ctx):
    user = make_user()
    request, _ = AdminRequest.create(user.id, 'I run the evening desk')
    first = AdminRequest.get_by_id(request.id)
    second = AdminRequest.get_by_id(request.id)

    assert first.approve('admin@uni.edu') == (True, 'Admin request approved')
    assert second.approve('other@uni.edu') == (False, 'Request has already been reviewed')
    assert second.reject('other@uni.edu', 'late') == (False, 'Request has already been reviewed')

    stored = AdminRequest.get_by_id(request.id)
    assert stored.status == 'APPROVED'
    assert stored.reviewed_by == 'admin@uni.edu'
    actions = [log.action for log in SystemLog.get_recent()]
    assert actions.count('Admin Request Approved') == 1
    assert 'Admin Request Rejected' not in actions


def test_analytics(ctx):
    reader = make_user()
    book = make_book(total_copies=2)
    record, _ = Borrow.request(reader.id, book.id)
    record.approve('admin@uni.edu', today=date(2026, 1, 1))

    overdue = Analytics.get_overdue_analysis(today=date(2026, 1, 11))
    assert overdue[0]['daysOverdue'] == 3
    assert overdue[0]['fineAmount'] == '3.00'

    stats = Analytics.get_overdue_stats(today=date(2026, 1, 11))
    assert stats == {'totalOverdue': 1, 'totalFines': 3.0, 'avgDaysOverdue': 3.0}

    popular = Analytics.get_popular_books()
    assert popular[0]['totalBorrows'] == 1
    assert popular[0]['activeBorrows'] == 1


def test_analytics_endpoint(admin_client):
    data = admin_client.get('/api/admin/analytics').get_json()['analytics']
    assert set(data) >= {'borrowingTrends', 'popularBooks', 'overdueStats', 'monthlyStats'}


def test_exports(admin_client, reader_client, seed):
    reader_client.post(f"/api/books/{seed['book_id']}/borrow")

    books = admin_client.get('/api/admin/export/books')
    assert books.status_code == 200
    assert books.headers['Content-Type'].startswith('text/csv')
    assert 'books_export_' in books.headers['Content-Disposition']
    lines = books.get_data(as_text=True).splitlines()
    assert lines[0].startswith('ID,Title,Author')
    assert 'Dune' in lines[1]

    borrows = admin_client.get('/api/admin/export/borrows?format=json&status=PENDING')
    rows = json.loads(borrows.get_data(as_text=True))
    assert rows[0]['fine_amount'] == '0.00'
    assert rows[0]['user_email'] == 'reader@uni.edu'

    assert admin_client.get('/api/admin/export/loans').status_code == 404
    assert admin_client.get('/api/admin/export/books?format=xml').status_code == 400

    stats = admin_client.get('/api/admin/export-stats').get_json()['stats']
    assert stats['totalBorrows'] == 1


def test_logs(admin_client):
    logs = admin_client.get('/api/admin/logs').get_json()['logs']
    assert any(log['action'] == 'User Login' for log in logs)

    exported = admin_client.get('/api/admin/logs/export')
    assert exported.get_data(as_text=True).startswith('Timestamp,Action,Details,Type,User ID')

    cleared = admin_client.post('/api/admin/logs/clear', json={'days': 30})
    assert cleared.get_json()['deleted'] == 0
