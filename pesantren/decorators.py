import logging
from functools import wraps

from firebase_admin import auth as firebase_auth
from flask import g, jsonify, session

from pesantren.firebase_init import get_auth
from pesantren import firestore_dao as dao

logger = logging.getLogger(__name__)


def _verify_session():
    """Verify Firebase session cookie and return the user's document."""
    session_cookie = session.get('firebase_session')
    if not session_cookie:
        return None

    auth = get_auth()
    try:
        decoded = auth.verify_session_cookie(session_cookie, check_revoked=True)
    except (firebase_auth.InvalidSessionCookieError,
            firebase_auth.RevokedSessionCookieError,
            firebase_auth.UserDisabledError,
            ValueError):
        logger.info('Rejected session cookie')
        session.pop('firebase_session', None)
        return None

    uid = decoded['uid']
    user_data = dao.get_user(uid)
    if user_data is None:
        # Authenticated but without a profile document
        return {'uid': uid, 'id': uid, '_missing': True}

    user_data['uid'] = uid
    user_data['id'] = uid
    return user_data


class CurrentUser:
    """Proxy object providing attribute access to the current user dict."""

    def __init__(self, data=None):
        self._data = data or {}

    def __getattr__(self, name):
        if name.startswith('_'):
            raise AttributeError(name)
        return self._data.get(name)

    def __getitem__(self, key):
        return self._data[key]

    def __contains__(self, key):
        return key in self._data

    def get(self, key, default=None):
        return self._data.get(key, default)

    @property
    def is_authenticated(self):
        return bool(self._data)

    @property
    def has_profile(self):
        return self.is_authenticated and not self._data.get('_missing')

    @property
    def uid(self):
        return self._data.get('uid', '')

    @property
    def id(self):
        return self._data.get('uid', '')

    @property
    def role(self):
        return self._data.get('role', '')

    @property
    def name(self):
        return self._data.get('name') or self._data.get('email', '')

    def is_admin(self):
        return self.role == 'admin'

    def is_ustad(self):
        return self.role == 'ustad'

    def is_orangtua(self):
        return self.role == 'orangtua'

    def to_profile(self):
        return {
            'id': self.uid,
            'name': self.name,
            'email': self._data.get('email', ''),
            'phone': self._data.get('phone', ''),
            'role': self.role,
        }


def load_current_user():
    """Load current user into g before each request."""
    if hasattr(g, '_current_user'):
        return
    user_data = _verify_session()
    g._current_user = CurrentUser(user_data)


def get_current_user():
    if not hasattr(g, '_current_user'):
        load_current_user()
    return g._current_user


def api_auth_required(f):
    @wraps(f)
    def decorated(*args, **kwargs):
        user = get_current_user()
        if not user.is_authenticated:
            return jsonify({'error': 'Unauthorized'}), 401
        if not user.has_profile:
            return jsonify({'error': 'User not found'}), 404
        g.current_user = user
        return f(*args, **kwargs)
    return decorated


def role_required(*roles, status=401, message='Unauthorized'):
    """Allow only the given roles. Other roles get `status` with `message`."""
    def decorator(f):
        @wraps(f)
        def decorated(*args, **kwargs):
            user = get_current_user()
            if not user.is_authenticated:
                return jsonify({'error': 'Unauthorized'}), 401
            if not user.has_profile:
                return jsonify({'error': 'User not found'}), 404
            if user.role not in roles:
                return jsonify({'error': message}), status
            g.current_user = user
            return f(*args, **kwargs)
        return decorated
    return decorator
