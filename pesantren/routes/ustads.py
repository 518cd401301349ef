import logging
from collections import Counter

from firebase_admin import auth as firebase_auth
from flask import Blueprint, jsonify, request
from pydantic import ValidationError

from pesantren.api_utils import json_body, validation_error
from pesantren.decorators import get_current_user, role_required
from pesantren.firebase_init import get_auth
from pesantren import firestore_dao as dao
from pesantren.firestore_models import User
from pesantren.schemas import UstadCreate, UstadUpdate

logger = logging.getLogger(__name__)

bp = Blueprint('ustads', __name__, url_prefix='/api/ustads')


def _listing(user):
    return {
        'id': user['id'],
        'name': user.get('name', ''),
        'email': user.get('email', ''),
        'phone': user.get('phone', '') or '',
        'specialization': user.get('specialization') or '',
        'role': user.get('role'),
        'createdAt': user.get('createdAt'),
    }


def _load_ustad(ustad_id):
    ustad = dao.get_user(ustad_id)
    if not ustad or ustad.get('role') != 'ustad':
        return None
    return ustad


# an ustad with this many classes is no longer offered as available
MAX_CLASSES_PER_USTAD = 10


def _matches(text, needle):
    return needle.lower() in (text or '').lower()


@bp.route('', methods=['GET'])
@role_required('admin')
def list_ustads():
    ustads = [_listing(u) for u in dao.get_users_by_role('ustad')]

    search = request.args.get('search', '').strip()
    if search:
        ustads = [
            u for u in ustads
            if _matches(u['name'], search) or _matches(u['email'], search)
            or _matches(u['specialization'], search)
        ]

    specialization = request.args.get('specialization', '').strip()
    if specialization:
        ustads = [u for u in ustads if _matches(u['specialization'], specialization)]

    if request.args.get('available') == 'true':
        workload = Counter(c.get('ustadId') for c in dao.get_all_classes() if c.get('ustadId'))
        for u in ustads:
            u['currentClasses'] = workload[u['id']]
            u['available'] = workload[u['id']] < MAX_CLASSES_PER_USTAD

    return jsonify({'ustadList': ustads, 'total': len(ustads)})


@bp.route('', methods=['POST'])
@role_required('admin', status=403, message='Forbidden - Insufficient permissions')
def create_ustad():
    user = get_current_user()
    try:
        payload = UstadCreate.model_validate(json_body())
    except ValidationError as e:
        return validation_error(e)

    data = payload.ustadData
    try:
        firebase_user = get_auth().create_user(
            email=data.email, password=data.password, display_name=data.name,
        )
    except firebase_auth.EmailAlreadyExistsError:
        return jsonify({'error': 'Email already in use'}), 400

    profile = User(
        name=data.name,
        email=data.email,
        role='ustad',
        phone=data.phone,
        specialization=data.specialization or '',
        created_at=dao.now_iso(),
    ).to_dict()
    profile['createdBy'] = user.uid
    dao.create_user(firebase_user.uid, profile)
    logger.info('Ustad %s created by %s', firebase_user.uid, user.uid)

    return jsonify({
        'message': 'Ustad created successfully',
        'ustad': dict(profile, id=firebase_user.uid),
    })


@bp.route('/<ustad_id>', methods=['GET'])
@role_required('admin')
def get_ustad(ustad_id):
    ustad = _load_ustad(ustad_id)
    if not ustad:
        return jsonify({'error': 'Ustad not found'}), 404
    return jsonify({'ustad': _listing(ustad)})


@bp.route('/<ustad_id>', methods=['PUT'])
@role_required('admin')
def update_ustad(ustad_id):
    try:
        payload = UstadUpdate.model_validate(json_body())
    except ValidationError as e:
        return validation_error(e)

    if not _load_ustad(ustad_id):
        return jsonify({'error': 'Ustad not found'}), 404

    update_data = payload.model_dump(exclude_unset=True)
    update_data['updatedAt'] = dao.now_iso()
    dao.update_user(ustad_id, update_data)
    logger.info('Ustad %s updated', ustad_id)

    return jsonify({'message': 'Ustad updated successfully', 'ustadId': ustad_id, 'updateData': update_data})


@bp.route('/<ustad_id>', methods=['DELETE'])
@role_required('admin')
def delete_ustad(ustad_id):
    if not _load_ustad(ustad_id):
        return jsonify({'error': 'Ustad not found'}), 404

    dao.delete_user(ustad_id)
    try:
        get_auth().delete_user(ustad_id)
    except firebase_auth.UserNotFoundError:
        logger.warning('Ustad %s had no auth account', ustad_id)
    logger.info('Ustad %s deleted', ustad_id)

    return jsonify({'message': 'Ustad deleted successfully', 'ustadId': ustad_id})
