import pytest

from app import create_app
from context import current_context
from models import db
from repositories import UserRepository


@pytest.fixture
def app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite://',
        'UPLOAD_PATH': str(tmp_path / 'uploads'),
        'JWT_SECRET': 'test-secret',
        'COIN_API_KEY': 'test-key',
    })
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def session(app):
    return db.session


@pytest.fixture
def make_user(session):
    def _make(telegram_id='1001', name='Alice'):
        return UserRepository(session).sign_in(telegram_id, name)
    return _make


@pytest.fixture
def alice(make_user):
    return make_user('1001', 'Alice')


@pytest.fixture
def bob(make_user):
    return make_user('2002', 'Bob')


@pytest.fixture
def headers_for(app):
    def _headers(user):
        token = current_context().tokens.issue(user.id)
        return {'Authorization': f'Bearer {token}'}
    return _headers
