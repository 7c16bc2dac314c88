from conftest import make_book, make_user

from campus_library.models.book import Book
from campus_library.models.borrow import Borrow
from campus_library.models.database import get_db
from campus_library.models.user import User


def _drift(app):
    """One active loan, but available_copies still claims every copy is in."""
    with app.app_context():
        reader = make_user('drift@uni.edu', 8008)
        book = make_book(total_copies=2)
        record, _ = Borrow.request(reader.id, book.id)
        record.approve('admin@uni.edu')
        db = get_db()
        db.execute('UPDATE books SET available_copies = 2 WHERE id = ?', (book.id,))
        db.commit()
        return book.id


def test_check_and_repair(app):
    book_id = _drift(app)
    with app.app_context():
        mismatches = Book.check_inventory_sync()
        assert mismatches == [{
            'bookId': book_id,
            'title': 'Dune',
            'totalCopies': 2,
            'borrowedCount': 1,
            'currentAvailable': 2,
            'expectedAvailable': 1,
        }]

        fixed = Book.repair_inventory_sync()
        assert len(fixed) == 1
        assert Book.get_by_id(book_id).available_copies == 1
        assert Book.check_inventory_sync() == []


def test_inventory_endpoints(app, admin_client):
    book_id = _drift(app)

    report = admin_client.get('/api/admin/inventory').get_json()
    assert report['inSync'] is False
    assert report['mismatches'][0]['bookId'] == book_id

    repaired = admin_client.post('/api/admin/inventory/repair').get_json()
    assert len(repaired['fixed']) == 1
    assert admin_client.get('/api/admin/inventory').get_json()['inSync'] is True


def test_cli_inventory_commands(app):
    _drift(app)
    runner = app.test_cli_runner()

    result = runner.invoke(args=['check-inventory'])
    assert '1 book(s) out of sync' in result.output

    result = runner.invoke(args=['repair-inventory'])
    assert 'Repaired 1 book(s).' in result.output

    result = runner.invoke(args=['check-inventory'])
    assert 'All books are in sync.' in result.output


def test_cli_make_admin(app):
    with app.app_context():
        user_id = make_user('promote@uni.edu', 7007, status='PENDING').id

    runner = app.test_cli_runner()
    result = runner.invoke(args=['make-admin', 'promote@uni.edu'])
    assert result.exit_code == 0
    with app.app_context():
        user = User.get_by_id(user_id)
        assert user.is_admin and user.is_approved

    missing = runner.invoke(args=['make-admin', 'ghost@uni.edu'])
    assert missing.exit_code != 0


def test_cli_update_fines(app):
    runner = app.test_cli_runner()
    result = runner.invoke(args=['update-fines', '--force'])
    assert 'Updated fines for 0 overdue record(s).' in result.output

    negative = runner.invoke(args=['update-fines', '--amount=-2'])
    assert negative.exit_code != 0
