"""
Small HTTP client for the JSON API.

Wraps a `requests.Session` so the Flask session cookie survives between
calls. State-changing requests carry the CSRF token fetched from
`/api/auth/csrf-token` in the `X-CSRFToken` header.
"""

import logging
import time

import requests

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Non-2xx response from the API."""

    def __init__(self, message, status_code=None, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload or {}


class ApiClient:

    def __init__(self, base_url, timeout=30, session=None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({'Content-Type': 'application/json'})
        self._csrf_token = None

    @classmethod
    def from_config(cls, config):
        return cls(config['API_BASE_URL'], timeout=config.get('API_TIMEOUT_SECONDS', 30))

    def _url(self, path):
        return f'{self.base_url}/{path.lstrip("/")}'

    def request(self, method, path, **kwargs):
        """Send a request and return the decoded JSON body.

        Raises ApiError for network failures and non-2xx responses.
        """
        method = method.upper()
        if method not in ('GET', 'HEAD', 'OPTIONS'):
            headers = kwargs.setdefault('headers', {})
            headers.setdefault('X-CSRFToken', self.csrf_token())
        kwargs.setdefault('timeout', self.timeout)

        started = time.monotonic()
        try:
            resp = self.session.request(method, self._url(path), **kwargs)
        except requests.Timeout as e:
            logger.warning('%s %s timed out after %ss', method, path, self.timeout)
            raise ApiError(f'Request timed out: {path}') from e
        except requests.RequestException as e:
            logger.warning('%s %s failed: %s', method, path, e)
            raise ApiError(f'Request failed: {path}') from e

        logger.debug('%s %s -> %s in %.0fms', method, path, resp.status_code,
                     (time.monotonic() - started) * 1000)

        try:
            payload = resp.json()
        except ValueError:
            payload = {}

        if not resp.ok:
            message = payload.get('error') if isinstance(payload, dict) else None
            raise ApiError(message or resp.reason or 'Request failed', resp.status_code, payload)
        return payload

    def csrf_token(self):
        if self._csrf_token is None:
            self._csrf_token = self.request('GET', '/api/auth/csrf-token').get('csrfToken')
        return self._csrf_token

    def login(self, email, password):
        data = self.request('POST', '/api/auth/login', json={'email': email, 'password': password})
        return data.get('user')

    def logout(self):
        self.request('POST', '/api/auth/logout')
        self._csrf_token = None

    def update_message_status(self, chat_id, message_id, status):
        return self.request(
            'PUT',
            f'/api/chat/{chat_id}/messages/{message_id}/status',
            json={'status': status},
        )
