import logging
from datetime import timedelta

import requests as http_requests
from firebase_admin import auth as firebase_auth
from flask import Blueprint, current_app, jsonify, session
from flask_wtf.csrf import generate_csrf
from pydantic import ValidationError

from pesantren.api_utils import json_body, validation_error
from pesantren.decorators import api_auth_required, get_current_user
from pesantren.firebase_init import get_auth
from pesantren import firestore_dao as dao
from pesantren.firestore_models import User
from pesantren.forms import ConfirmResetPasswordForm, ForgotPasswordForm, LoginForm
from pesantren.schemas import Registration
from pesantren.services.santri_links import santri_entry

logger = logging.getLogger(__name__)

bp = Blueprint('auth', __name__, url_prefix='/api/auth')

FIREBASE_SIGN_IN_URL = (
    'https://identitytoolkit.googleapis.com/v1/accounts:signInWithPassword'
)

FIREBASE_RESET_PASSWORD_URL = (
    'https://identitytoolkit.googleapis.com/v1/accounts:resetPassword'
)

# Identity Toolkit error code -> message shown to the user
RESET_ERRORS = {
    'EXPIRED_OOB_CODE': 'Link reset password telah kadaluarsa',
    'INVALID_OOB_CODE': 'Link reset password tidak valid',
    'USER_DISABLED': 'Akun pengguna telah dinonaktifkan',
    'EMAIL_NOT_FOUND': 'Pengguna tidak ditemukan',
    'WEAK_PASSWORD': 'Password terlalu lemah, minimal 6 karakter',
}


def _firebase_sign_in(email, password):
    """Verify email/password via Firebase Auth REST API.

    Returns the ID token on success, or None on failure.
    """
    api_key = current_app.config.get('FIREBASE_WEB_API_KEY')
    if not api_key:
        logger.error('FIREBASE_WEB_API_KEY is not configured')
        return None

    try:
        resp = http_requests.post(
            f'{FIREBASE_SIGN_IN_URL}?key={api_key}',
            json={
                'email': email,
                'password': password,
                'returnSecureToken': True,
            },
            timeout=10,
        )
    except http_requests.RequestException:
        logger.exception('Firebase sign-in request failed')
        return None
    if resp.status_code == 200:
        return resp.json().get('idToken')
    return None


def _firebase_confirm_reset(oob_code, new_password):
    """Apply a password-reset code via the Firebase Auth REST API.

    Returns None on success, otherwise the Identity Toolkit error code.
    """
    api_key = current_app.config.get('FIREBASE_WEB_API_KEY')
    if not api_key:
        logger.error('FIREBASE_WEB_API_KEY is not configured')
        return 'CONFIGURATION_NOT_FOUND'

    try:
        resp = http_requests.post(
            f'{FIREBASE_RESET_PASSWORD_URL}?key={api_key}',
            json={'oobCode': oob_code, 'newPassword': new_password},
            timeout=10,
        )
    except http_requests.RequestException:
        logger.exception('Firebase password reset request failed')
        return 'NETWORK_REQUEST_FAILED'
    if resp.status_code == 200:
        return None
    try:
        message = resp.json().get('error', {}).get('message', '')
    except ValueError:
        message = ''
    # e.g. "WEAK_PASSWORD : Password should be at least 6 characters"
    return message.split(' : ')[0] or 'UNKNOWN'


def _form_errors(form):
    return jsonify({'error': 'Validasi gagal', 'details': form.errors}), 400


@bp.route('/csrf-token', methods=['GET'])
def csrf_token():
    return jsonify({'csrfToken': generate_csrf()})


@bp.route('/login', methods=['POST'])
def login():
    form = LoginForm()
    if not form.validate_on_submit():
        return _form_errors(form)

    id_token = _firebase_sign_in(form.email.data, form.password.data)
    if not id_token:
        return jsonify({'error': 'Email atau password salah'}), 401

    auth = get_auth()
    expires_in = timedelta(days=current_app.config.get('SESSION_COOKIE_DAYS', 5))
    try:
        # Create a session cookie from the ID token
        session_cookie = auth.create_session_cookie(id_token, expires_in=expires_in)
    except firebase_auth.InvalidIdTokenError:
        logger.warning('Sign-in returned an unusable ID token for %s', form.email.data)
        return jsonify({'error': 'Email atau password salah'}), 401

    session['firebase_session'] = session_cookie
    decoded = auth.verify_session_cookie(session_cookie)
    user = dao.get_user(decoded['uid'])
    if not user:
        session.pop('firebase_session', None)
        return jsonify({'error': 'User not found'}), 404

    dao.touch_last_active(user['id'])
    logger.info('User %s logged in', user['id'])
    return jsonify({
        'message': 'Login berhasil',
        'user': {
            'id': user['id'],
            'name': user.get('name', ''),
            'email': user.get('email', ''),
            'phone': user.get('phone', ''),
            'role': user.get('role', ''),
        },
    })


@bp.route('/logout', methods=['POST'])
def logout():
    session.pop('firebase_session', None)
    return jsonify({'message': 'Logout berhasil'})


@bp.route('/session', methods=['GET'])
@api_auth_required
def current_session():
    return jsonify({'user': get_current_user().to_profile()})


@bp.route('/register', methods=['POST'])
def register():
    """Parent self sign-up. Other roles are created by an admin or granted
    through a role request."""
    try:
        payload = Registration.model_validate(json_body())
    except ValidationError as e:
        return validation_error(e)

    if dao.get_user_by_email(payload.email):
        return jsonify({'error': 'Registrasi gagal, email mungkin sudah digunakan'}), 400

    auth = get_auth()
    try:
        firebase_user = auth.create_user(
            email=payload.email,
            password=payload.password,
            display_name=payload.parentName,
        )
    except firebase_auth.EmailAlreadyExistsError:
        return jsonify({'error': 'Registrasi gagal, email mungkin sudah digunakan'}), 400

    uid = firebase_user.uid
    now = dao.now_iso()
    profile = User(
        name=payload.parentName,
        email=payload.email,
        role=payload.role,
        phone=payload.phone,
        created_at=now,
    ).to_dict()
    profile['santri'] = {
        dao.new_santri_id(): santri_entry(student.model_dump(), now)
        for student in payload.students
    }
    dao.create_user(uid, profile)
    logger.info('Registered orangtua %s with %d santri', uid, len(profile['santri']))

    return jsonify({
        'message': 'Registrasi berhasil',
        'user': {'id': uid, 'name': profile['name'], 'email': profile['email'], 'role': profile['role']},
    }), 201


@bp.route('/reset-password', methods=['POST'])
def reset_password():
    form = ForgotPasswordForm()
    if not form.validate_on_submit():
        return _form_errors(form)

    auth = get_auth()
    try:
        auth.generate_password_reset_link(form.email.data)
    except firebase_auth.UserNotFoundError:
        # Same response either way
        logger.info('Password reset requested for unknown email')

    return jsonify({
        'message': 'Jika email terdaftar, tautan reset password telah dikirim',
    })


@bp.route('/confirm-reset-password', methods=['POST'])
def confirm_reset_password():
    form = ConfirmResetPasswordForm()
    if not form.validate_on_submit():
        return _form_errors(form)

    error_code = _firebase_confirm_reset(form.oobCode.data, form.password.data)
    if error_code:
        logger.warning('Password reset confirmation failed: %s', error_code)
        return jsonify({'error': RESET_ERRORS.get(error_code, 'Failed to reset password')}), 400

    return jsonify({'message': 'Password has been reset successfully'})
