import os
from dotenv import load_dotenv

load_dotenv()


def _csv(value):
    return [item.strip() for item in (value or '').split(',') if item.strip()]


class Config:
    SECRET_KEY = os.environ.get('SESSION_SECRET') or os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'
    WTF_CSRF_ENABLED = True
    WTF_CSRF_TIME_LIMIT = None
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    HOST = os.environ.get('HOST', '0.0.0.0')
    PORT = int(os.environ.get('PORT', 8080))
    DEBUG = os.environ.get('FLASK_DEBUG', 'false').lower() in ('true', '1')

    FIREBASE_WEB_API_KEY = os.environ.get('FIREBASE_WEB_API_KEY', '')
    FIREBASE_PROJECT_ID = os.environ.get('FIREBASE_PROJECT_ID', '')
    SESSION_COOKIE_DAYS = int(os.environ.get('SESSION_COOKIE_DAYS', 5))

    CORS_ALLOWED_ORIGINS = os.environ.get('CORS_ALLOWED_ORIGINS', '')
    SOCKETIO_ASYNC_MODE = os.environ.get('SOCKETIO_ASYNC_MODE', 'eventlet')

    # HTTP client used by the chat status updater
    API_BASE_URL = os.environ.get('API_BASE_URL', 'http://localhost:8080')
    API_TIMEOUT_SECONDS = float(os.environ.get('API_TIMEOUT_SECONDS', 30))

    STATUS_UPDATE_MAX_ATTEMPTS = int(os.environ.get('STATUS_UPDATE_MAX_ATTEMPTS', 3))
    STATUS_UPDATE_PAUSE_SECONDS = float(os.environ.get('STATUS_UPDATE_PAUSE_SECONDS', 0.1))
    STATUS_FALLBACK_MESSAGE_IDS = _csv(
        os.environ.get('STATUS_FALLBACK_MESSAGE_IDS', '-OeM8hFohHFWTaIC0iuD,-OeMAMZscMJUhjzuZI10')
    )
    STATUS_FALLBACK_PREFIX = os.environ.get('STATUS_FALLBACK_PREFIX', '-OeM')
    STATUS_FALLBACK_MIN_LENGTH = int(os.environ.get('STATUS_FALLBACK_MIN_LENGTH', 15))


class TestConfig(Config):
    TESTING = True
    DEBUG = False
    WTF_CSRF_ENABLED = False
    SECRET_KEY = 'test-secret-key'
    SOCKETIO_ASYNC_MODE = 'threading'
    FIREBASE_WEB_API_KEY = 'test-api-key'
    STATUS_UPDATE_PAUSE_SECONDS = 0
