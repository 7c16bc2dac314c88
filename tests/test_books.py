from conftest import make_book, make_user

from campus_library.models.book import Book
from campus_library.models.borrow import Borrow


def _seed_catalogue():
    make_book('Dune', 'Frank Herbert', 'Science Fiction', 2, rating=5)
    make_book('Emma', 'Jane Austen', 'Classic', 1, rating=4)
    make_book('Persuasion', 'Jane Austen', 'Classic', 3, rating=3)
    hidden = make_book('Old Atlas', 'Unknown', 'Reference', 1)
    hidden.deactivate('admin@uni.edu')


def test_search_filters_and_sorts(ctx):
    _seed_catalogue()

    books, total = Book.search(query='austen')
    assert total == 2
    assert [book.title for book in books] == ['Emma', 'Persuasion']

    books, _ = Book.search(genre='Classic', sort_by='rating')
    assert [book.title for book in books] == ['Emma', 'Persuasion']

    _, total = Book.search(min_rating=4)
    assert total == 2

    assert 'Reference' not in Book.get_all_genres()


def test_search_pagination(ctx):
    _seed_catalogue()
    books, total = Book.search(page=2, limit=2)
    assert total == 3
    assert len(books) == 1


def test_list_endpoint(client, app):
    with app.app_context():
        _seed_catalogue()

    data = client.get('/api/books?search=JANE&limit=1').get_json()
    assert data['pagination']['totalBooks'] == 2
    assert data['pagination']['totalPages'] == 2
    assert len(data['books']) == 1
    assert data['genres'] == ['Classic', 'Science Fiction']

    assert client.get('/api/books?rating=high').status_code == 400


def test_inactive_book_hidden_from_members(app, client, admin_client):
    with app.app_context():
        book = make_book('Old Atlas', 'Unknown', 'Reference', 1)
        book.deactivate('admin@uni.edu')

    assert client.get(f'/api/books/{book.id}').status_code == 404
    assert admin_client.get(f'/api/books/{book.id}').status_code == 200


def test_admin_creates_and_updates_book(admin_client):
    created = admin_client.post('/api/admin/books', json={
        'title': 'Neuromancer',
        'author': 'William Gibson',
        'genre': 'Cyberpunk',
        'totalCopies': 3,
        'coverColor': '#112233',
    })
    assert created.status_code == 201
    book = created.get_json()['book']
    assert book['availableCopies'] == 3

    updated = admin_client.patch(f"/api/admin/books/{book['id']}", json={'totalCopies': 5})
    assert updated.status_code == 200
    assert updated.get_json()['book']['availableCopies'] == 5

    missing = admin_client.post('/api/admin/books', json={'title': 'No author'})
    assert missing.status_code == 400
    bad_color = admin_client.patch(f"/api/admin/books/{book['id']}", json={'coverColor': 'red'})
    assert bad_color.status_code == 400


def test_total_copies_change_preserves_loans(ctx):
    reader = make_user()
    book = make_book(total_copies=3)
    record, _ = Borrow.request(reader.id, book.id)
    record.approve('admin@uni.edu')

    assert book.update_fields('admin@uni.edu', total_copies=5)[0] is True
    assert Book.get_by_id(book.id).available_copies == 4

    assert book.update_fields('admin@uni.edu', total_copies=1)[0] is True
    assert Book.get_by_id(book.id).available_copies == 0


def test_total_copies_cannot_drop_below_borrowed(ctx):
    first = make_user()
    second = make_user('second@uni.edu', 1002)
    book = make_book(total_copies=3)
    for user in (first, second):
        record, _ = Borrow.request(user.id, book.id)
        record.approve('admin@uni.edu')

    success, message = book.update_fields('admin@uni.edu', total_copies=1)
    assert success is False
    assert message == 'Total copies cannot be less than the 2 copies currently borrowed'
    assert Book.get_by_id(book.id).total_copies == 3


def test_delete_is_a_soft_delete(app, admin_client, seed):
    response = admin_client.delete(f"/api/admin/books/{seed['book_id']}")
    assert response.status_code == 200
    with app.app_context():
        assert Book.get_by_id(seed['book_id']).is_active is False
    assert admin_client.delete(f"/api/admin/books/{seed['book_id']}").status_code == 400


def test_active_flag_accepts_only_booleans(app, admin_client, seed):
    url = f"/api/admin/books/{seed['book_id']}"

    response = admin_client.patch(url, json={'isActive': 'false'})
    assert response.status_code == 200
    assert response.get_json()['book']['isActive'] is False

    assert admin_client.patch(url, json={'isActive': True}).get_json()['book']['isActive'] is True

    invalid = admin_client.patch(url, json={'isActive': 'maybe'})
    assert invalid.status_code == 400
    assert invalid.get_json()['message'] == 'isActive must be true or false'
    with app.app_context():
        assert Book.get_by_id(seed['book_id']).is_active is True


def test_members_cannot_manage_books(reader_client, seed):
    response = reader_client.delete(f"/api/admin/books/{seed['book_id']}")
    assert response.status_code == 403
    assert response.get_json()['message'] == 'Only admins can access this resource'


def test_borrow_stats(admin_client, reader_client, seed):
    reader_client.post(f"/api/books/{seed['book_id']}/borrow")
    data = reader_client.get(f"/api/books/{seed['book_id']}/borrow-stats").get_json()
    assert data['totalBorrows'] == 1
    assert data['activeBorrows'] == 0
