import pytest

from campus_library.app import create_app
from campus_library.config.config import TestingConfig
from campus_library.models.book import Book
from campus_library.models.user import User

PASSWORD = 'password123'


@pytest.fixture
def app(tmp_path):
    """Fresh application with its own sqlite file per test."""
    config = type('IsolatedTestingConfig', (TestingConfig,), {
        'DATABASE_PATH': str(tmp_path / 'library.db'),
    })
    app = create_app(config)
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def ctx(app):
    """Application context for calling models directly."""
    with app.app_context():
        yield


def make_user(email='reader@uni.edu', university_id=1001, status='APPROVED',
              role='USER', full_name='Test Reader'):
    user, message = User.create(
        full_name=full_name,
        email=email,
        university_id=university_id,
        password=PASSWORD,
        university_card='card.png',
        status=status,
        role=role,
    )
    assert user is not None, message
    return user


def make_book(title='Dune', author='Frank Herbert', genre='Science Fiction',
              total_copies=2, **extra):
    book, _ = Book.create(title, author, genre, total_copies, updated_by='seed', **extra)
    return book


def sign_in(client, email, password=PASSWORD):
    response = client.post('/api/auth/sign-in', json={'email': email, 'password': password})
    assert response.status_code == 200, response.get_json()
    return response


@pytest.fixture
def seed(app):
    """An approved reader, an admin and one book, created through the models."""
    with app.app_context():
        reader = make_user()
        admin = make_user('admin@uni.edu', 2002, role='ADMIN', full_name='Head Librarian')
        book = make_book()
        return {'reader_id': reader.id, 'admin_id': admin.id, 'book_id': book.id}


@pytest.fixture
def reader_client(app, seed):
    client = app.test_client()
    sign_in(client, 'reader@uni.edu')
    return client


@pytest.fixture
def admin_client(app, seed):
    client = app.test_client()
    sign_in(client, 'admin@uni.edu')
    return client
