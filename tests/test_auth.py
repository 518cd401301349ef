import pytest

from pesantren.routes import auth as auth_routes

from tests.conftest import login


def test_session_requires_login(client):
    resp = client.get('/api/auth/session')
    assert resp.status_code == 401
    assert resp.get_json() == {'error': 'Unauthorized'}


def test_session_without_profile_is_404(client):
    login(client, 'ghost')
    resp = client.get('/api/auth/session')
    assert resp.status_code == 404
    assert resp.get_json()['error'] == 'User not found'


def test_session_returns_profile(client, ustad):
    login(client, ustad)
    resp = client.get('/api/auth/session')
    assert resp.status_code == 200
    user = resp.get_json()['user']
    assert user['id'] == ustad
    assert user['role'] == 'ustad'


def test_login_sets_session(client, ustad, monkeypatch, db):
    monkeypatch.setattr(auth_routes, '_firebase_sign_in', lambda email, password: f'token-{ustad}')
    resp = client.post('/api/auth/login', json={'email': 'ustad1@pesantren.id', 'password': 'secret1'})
    assert resp.status_code == 200
    data = resp.get_json()
    assert data['message'] == 'Login berhasil'
    assert data['user']['id'] == ustad
    assert 'lastActive' in db.read(f'users/{ustad}')

    assert client.get('/api/auth/session').status_code == 200


def test_login_rejects_bad_credentials(client, ustad, monkeypatch):
    monkeypatch.setattr(auth_routes, '_firebase_sign_in', lambda email, password: None)
    resp = client.post('/api/auth/login', json={'email': 'ustad1@pesantren.id', 'password': 'wrong'})
    assert resp.status_code == 401
    assert resp.get_json()['error'] == 'Email atau password salah'


def test_logout_clears_session(client, ustad):
    login(client, ustad)
    assert client.post('/api/auth/logout').status_code == 200
    assert client.get('/api/auth/session').status_code == 401


def _registration(**overrides):
    body = {
        'parentName': 'Ibu Fatimah',
        'email': 'fatimah@pesantren.id',
        'password': 'rahasia1',
        'phone': '081234567890',
        'students': [{
            'name': 'Ahmad', 'nis': '2025001', 'tahunDaftar': '2025', 'gender': 'L',
            'tempatLahir': 'Bandung', 'tanggalLahir': '2014-05-01',
        }],
    }
    body.update(overrides)
    return body


def test_register_creates_orangtua_with_children(client, db):
    resp = client.post('/api/auth/register', json=_registration())
    assert resp.status_code == 201
    uid = resp.get_json()['user']['id']
    profile = db.read(f'users/{uid}')
    assert profile['role'] == 'orangtua'
    children = list(profile['santri'].values())
    assert [c['name'] for c in children] == ['Ahmad']
    assert children[0]['nis'] == '2025001'


def test_register_is_parent_only(client, db):
    for role in ('ustad', 'admin'):
        resp = client.post('/api/auth/register', json=_registration(role=role))
        assert resp.status_code == 400
        assert resp.get_json()['error'] == 'Validasi gagal'
    assert db.all('users') == {}


def test_registered_parent_cannot_manage_other_parents(client, orangtua, db):
    resp = client.post('/api/auth/register', json=_registration(role='ustad'))
    assert resp.status_code == 400

    uid = client.post('/api/auth/register', json=_registration()).get_json()['user']['id']
    login(client, uid)
    assert client.delete(f'/api/orangtua/{orangtua}').status_code == 403
    assert db.read(f'users/{orangtua}') is not None


def test_register_requires_complete_children(client):
    assert client.post('/api/auth/register', json=_registration(students=[])).status_code == 400
    incomplete = {'name': 'Ahmad', 'nis': '2025001'}
    assert client.post('/api/auth/register', json=_registration(students=[incomplete])).status_code == 400


def test_register_duplicate_email(client, ustad):
    resp = client.post('/api/auth/register', json=_registration(email='ustad1@pesantren.id'))
    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'Registrasi gagal, email mungkin sudah digunakan'


class _Response:

    def __init__(self, status_code, payload):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        return self._payload


def test_confirm_reset_password(client, monkeypatch):
    calls = []

    def fake_post(url, json=None, timeout=None):
        calls.append((url, json))
        return _Response(200, {'email': 'ustad1@pesantren.id'})

    monkeypatch.setattr(auth_routes.http_requests, 'post', fake_post)
    resp = client.post('/api/auth/confirm-reset-password', json={'oobCode': 'abc', 'password': 'baru123'})
    assert resp.status_code == 200
    assert calls[0][0].endswith('accounts:resetPassword?key=test-api-key')
    assert calls[0][1] == {'oobCode': 'abc', 'newPassword': 'baru123'}


@pytest.mark.parametrize('code, message', [
    ('EXPIRED_OOB_CODE', 'Link reset password telah kadaluarsa'),
    ('INVALID_OOB_CODE', 'Link reset password tidak valid'),
    ('WEAK_PASSWORD : Password should be at least 6 characters', 'Password terlalu lemah, minimal 6 karakter'),
    ('SOMETHING_ELSE', 'Failed to reset password'),
])
def test_confirm_reset_password_errors(client, monkeypatch, code, message):
    monkeypatch.setattr(
        auth_routes.http_requests, 'post',
        lambda url, json=None, timeout=None: _Response(400, {'error': {'message': code}}),
    )
    resp = client.post('/api/auth/confirm-reset-password', json={'oobCode': 'abc', 'password': 'baru123'})
    assert resp.status_code == 400
    assert resp.get_json()['error'] == message


def test_confirm_reset_password_needs_code(client):
    resp = client.post('/api/auth/confirm-reset-password', json={'password': 'baru123'})
    assert resp.status_code == 400
    assert 'oobCode' in resp.get_json()['details']


def test_reset_password_does_not_reveal_accounts(client, ustad, fake_auth):
    known = client.post('/api/auth/reset-password', json={'email': 'ustad1@pesantren.id'})
    unknown = client.post('/api/auth/reset-password', json={'email': 'nobody@pesantren.id'})
    assert known.status_code == unknown.status_code == 200
    assert known.get_json() == unknown.get_json()
    assert len(fake_auth.reset_links) == 1


def test_csrf_token_endpoint(client):
    resp = client.get('/api/auth/csrf-token')
    assert resp.status_code == 200
    assert resp.get_json()['csrfToken']
