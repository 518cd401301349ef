import pytest

from config import TestConfig
from pesantren import create_app, firebase_init

from tests.fakes import FakeAuth, FakeFirestore


@pytest.fixture()
def db():
    return FakeFirestore()


@pytest.fixture()
def fake_auth():
    return FakeAuth()


@pytest.fixture()
def app(db, fake_auth, monkeypatch):
    monkeypatch.setattr(firebase_init, '_app', object())
    monkeypatch.setattr(firebase_init, '_db', db)
    monkeypatch.setattr(firebase_init, '_auth', fake_auth)
    app = create_app(TestConfig)
    return app


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def make_user(db, fake_auth):
    """Store a user profile (and auth account) and return its uid."""
    def _make(uid, role, name=None, email=None, **extra):
        email = email or f'{uid}@pesantren.id'
        data = {
            'name': name or uid.title(),
            'email': email,
            'role': role,
            'phone': '',
            'createdAt': '2025-01-01T00:00:00+00:00',
        }
        data.update(extra)
        db.put(f'users/{uid}', data)
        fake_auth.add_account(uid, email)
        return uid
    return _make


def login(client, uid):
    with client.session_transaction() as sess:
        sess['firebase_session'] = f'session-{uid}'


@pytest.fixture()
def admin(make_user):
    return make_user('admin1', 'admin', name='Admin')


@pytest.fixture()
def ustad(make_user):
    return make_user('ustad1', 'ustad', name='Ustad Ahmad', specialization='Tahfidz, Tajwid')


@pytest.fixture()
def orangtua(make_user):
    return make_user('parent1', 'orangtua', name='Orang Tua Satu')
