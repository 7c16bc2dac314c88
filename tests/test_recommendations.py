from conftest import make_book, make_user

from campus_library.models.borrow import Borrow
from campus_library.models.recommendation import Recommendation


def _library():
    reader = make_user()
    other = make_user('other@uni.edu', 1002)
    books = {
        'dune': make_book('Dune', 'Frank Herbert', 'Science Fiction', rating=5),
        'messiah': make_book('Dune Messiah', 'Frank Herbert', 'Science Fiction', rating=4),
        'foundation': make_book('Foundation', 'Isaac Asimov', 'Science Fiction', rating=3),
        'emma': make_book('Emma', 'Jane Austen', 'Classic', rating=4),
    }
    record, _ = Borrow.request(reader.id, books['dune'].id)
    record.approve('admin@uni.edu')
    record.return_book(reader.email)
    Borrow.request(other.id, books['emma'].id)
    return reader, books


def test_sources(ctx):
    reader, books = _library()

    genre = Recommendation.genre_based(reader.id)
    assert [rec.book_title for rec in genre] == ['Dune Messiah', 'Foundation']
    assert genre[0].reason == 'Based on your interest in Science Fiction books'

    author = Recommendation.author_based(reader.id)
    assert [rec.book_id for rec in author] == [books['messiah'].id]

    trending = Recommendation.trending(reader.id)
    assert [rec.book_id for rec in trending] == [books['emma'].id]
    assert trending[0].algorithm == 'trending'


def test_generated_list_is_unique_and_ranked(ctx):
    reader, books = _library()

    recs = Recommendation.generate_for_user(reader.id)
    assert [rec.book_title for rec in recs] == ['Dune Messiah', 'Foundation', 'Emma']
    assert books['dune'].id not in {rec.book_id for rec in recs}


def test_new_reader_only_gets_trending(ctx):
    _library()
    newcomer = make_user('new@uni.edu', 3003)
    recs = Recommendation.generate_for_user(newcomer.id)
    assert {rec.algorithm for rec in recs} == {'trending'}


def test_cache_and_refresh(ctx):
    reader, _ = _library()

    first = Recommendation.get_for_user(reader.id)
    assert len(Recommendation.get_cached(reader.id)) == len(first) == 3

    result = Recommendation.refresh_cache()
    assert result['cacheCleared'] is True
    assert result['entriesCleared'] == 3
    assert Recommendation.get_cached(reader.id) == []


def test_recommendation_endpoints(app, reader_client, admin_client, seed):
    with app.app_context():
        Borrow.request(seed['admin_id'], seed['book_id'])

    data = reader_client.get('/api/books/recommendations').get_json()
    assert data['success'] is True
    assert data['recommendations'][0]['bookId'] == seed['book_id']

    trending = admin_client.post('/api/admin/update-trending-books').get_json()
    assert trending['success'] is True
    assert trending['message'] == 'Updated trending books data. Found 1 trending books.'
    assert trending['trendingCount'] == 1

    refreshed = admin_client.post('/api/admin/refresh-recommendation-cache').get_json()
    assert refreshed['message'].startswith('Recommendation cache refreshed successfully.')
    assert refreshed['entriesCleared'] == 1

    stats = admin_client.get('/api/admin/recommendation-stats').get_json()['stats']
    assert stats['totalRecommendations'] == 1
    assert stats['trendingCount'] == 1


def test_recommendations_require_sign_in(client):
    assert client.get('/api/books/recommendations').status_code == 401
