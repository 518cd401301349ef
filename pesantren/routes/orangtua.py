import logging

from firebase_admin import auth as firebase_auth
from flask import Blueprint, jsonify, request
from pydantic import ValidationError

from pesantren.api_utils import json_body, validation_error
from pesantren.decorators import get_current_user, role_required
from pesantren.firebase_init import get_auth
from pesantren import firestore_dao as dao
from pesantren.schemas import OrangtuaCreate, OrangtuaUpdate
from pesantren.services import reports as report_service
from pesantren.services.santri_links import linked_student_ids, normalize_santri, santri_count, santri_entry

logger = logging.getLogger(__name__)

bp = Blueprint('orangtua', __name__, url_prefix='/api/orangtua')

FORBIDDEN = 'Forbidden - Insufficient permissions'


def _profile(user):
    return {
        'id': user['id'],
        'name': user.get('name', ''),
        'email': user.get('email', ''),
        'phone': user.get('phone', '') or '',
        'role': user.get('role', ''),
        'createdAt': user.get('createdAt'),
    }


def _load_orangtua(orangtua_id):
    """Returns (parent, error_response)."""
    parent = dao.get_user(orangtua_id)
    if not parent:
        return None, (jsonify({'error': 'Orang tua not found'}), 404)
    if parent.get('role') != 'orangtua':
        return None, (jsonify({'error': 'User is not an orangtua'}), 400)
    return parent, None


@bp.route('', methods=['GET'])
@role_required('admin', 'ustad', 'orangtua')
def list_orangtua():
    user = get_current_user()
    users = dao.get_all_users()
    users_by_id = {u['id']: u for u in users}

    if user.is_orangtua():
        parent = users_by_id.get(user.uid) or dao.get_user(user.uid)
        records = normalize_santri(parent, users_by_id)
        profile = _profile(parent)
        profile['santri'] = parent.get('santri') or {}
        return jsonify({
            'user': profile,
            'santri': [record.to_listing() for record in records],
        })

    orangtua_list = []
    for parent in users:
        if parent.get('role') != 'orangtua':
            continue
        entry = {k: v for k, v in parent.items() if k != 'santri'}
        entry['santriCount'] = santri_count(parent, users_by_id)
        orangtua_list.append(entry)

    return jsonify({'user': user.to_profile(), 'orangtuaList': orangtua_list})


@bp.route('', methods=['POST'])
@role_required('admin', 'ustad', status=403, message=FORBIDDEN)
def create_orangtua():
    user = get_current_user()
    try:
        payload = OrangtuaCreate.model_validate(json_body())
    except ValidationError as e:
        return validation_error(e)

    data = payload.orangtuaData
    if dao.get_user_by_email(data.email):
        return jsonify({'error': 'Email already in use'}), 400

    try:
        firebase_user = get_auth().create_user(
            email=data.email, password=data.password, display_name=data.name,
        )
    except firebase_auth.EmailAlreadyExistsError:
        return jsonify({'error': 'Email already in use'}), 400

    now = dao.now_iso()
    santri = {}
    for entry in payload.santriList:
        santri[dao.new_santri_id()] = santri_entry(entry.model_dump(), now)

    profile = {
        'name': data.name,
        'email': data.email,
        'phone': data.phone or '',
        'role': 'orangtua',
        'santri': santri,
        'createdAt': now,
        'createdBy': user.uid,
    }
    dao.create_user(firebase_user.uid, profile)
    logger.info('Orangtua %s created by %s with %d santri', firebase_user.uid, user.uid, len(santri))

    return jsonify({
        'message': 'Orang tua created successfully',
        'orangtua': dict(profile, id=firebase_user.uid),
    })


@bp.route('/<orangtua_id>', methods=['GET'])
@role_required('admin', 'ustad', status=403, message=FORBIDDEN)
def get_orangtua(orangtua_id):
    parent, error = _load_orangtua(orangtua_id)
    if error:
        return error

    orangtua = _profile(parent)
    orangtua['santriList'] = [record.to_listing() for record in normalize_santri(parent)]
    return jsonify({'orangtua': orangtua})


@bp.route('/<orangtua_id>', methods=['PUT'])
@role_required('admin', 'ustad', status=403, message=FORBIDDEN)
def update_orangtua(orangtua_id):
    try:
        payload = OrangtuaUpdate.model_validate(json_body())
    except ValidationError as e:
        return validation_error(e)

    parent, error = _load_orangtua(orangtua_id)
    if error:
        return error

    now = dao.now_iso()
    update_data = payload.model_dump(exclude_unset=True, exclude={'newSantriList'})
    if payload.newSantriList:
        santri = dict(parent.get('santri') or {})
        for entry in payload.newSantriList:
            santri[dao.new_santri_id()] = santri_entry(entry.model_dump(), now)
        update_data['santri'] = santri

    update_data['updatedAt'] = now
    dao.update_user(orangtua_id, update_data)
    logger.info('Orangtua %s updated', orangtua_id)

    return jsonify({'message': 'Orang tua updated successfully', 'orangtuaId': orangtua_id})


@bp.route('/<orangtua_id>', methods=['DELETE'])
@role_required('admin', 'ustad', status=403, message=FORBIDDEN)
def delete_orangtua(orangtua_id):
    _, error = _load_orangtua(orangtua_id)
    if error:
        return error

    dao.delete_user(orangtua_id)
    try:
        get_auth().delete_user(orangtua_id)
    except firebase_auth.UserNotFoundError:
        logger.warning('Orangtua %s had no auth account', orangtua_id)
    logger.info('Orangtua %s deleted', orangtua_id)

    return jsonify({'message': 'Orang tua deleted successfully', 'orangtuaId': orangtua_id})


# ---------------------------------------------------------------------------
# The caller's own children
# ---------------------------------------------------------------------------

def _santri_payload():
    body = json_body()
    data = body.get('santriData') if isinstance(body.get('santriData'), dict) else body
    if not data.get('name') or not data.get('tanggalLahir'):
        return None
    return data


def _own_santri_map():
    parent = dao.get_user(get_current_user().uid) or {}
    return dict(parent.get('santri') or {})


@bp.route('/santri', methods=['POST'])
@role_required('orangtua')
def add_santri():
    data = _santri_payload()
    if data is None:
        return jsonify({'error': 'Santri name and birth date are required'}), 400

    user = get_current_user()
    santri = _own_santri_map()
    santri_id = dao.new_santri_id()
    santri[santri_id] = santri_entry(data, dao.now_iso())
    dao.update_user(user.uid, {'santri': santri})
    logger.info('Santri %s added by orangtua %s', santri_id, user.uid)

    return jsonify({
        'message': 'Santri added successfully',
        'santriId': santri_id,
        'santri': dict(santri[santri_id], id=santri_id),
    })


@bp.route('/santri/<santri_id>', methods=['GET'])
@role_required('orangtua')
def get_own_santri(santri_id):
    entry = _own_santri_map().get(santri_id)
    if not entry:
        return jsonify({'error': 'Santri not found'}), 404
    return jsonify({'santri': dict(entry, id=santri_id)})


@bp.route('/santri/<santri_id>', methods=['PUT'])
@role_required('orangtua')
def update_own_santri(santri_id):
    santri = _own_santri_map()
    if santri_id not in santri:
        return jsonify({'error': 'Santri not found'}), 404

    data = _santri_payload()
    if data is None:
        return jsonify({'error': 'Santri name and birth date are required'}), 400

    santri[santri_id] = santri_entry(data, dao.now_iso(), existing=santri[santri_id])
    dao.update_user(get_current_user().uid, {'santri': santri})

    return jsonify({
        'message': 'Santri updated successfully',
        'santri': dict(santri[santri_id], id=santri_id),
    })


@bp.route('/santri/<santri_id>', methods=['DELETE'])
@role_required('orangtua')
def delete_own_santri(santri_id):
    santri = _own_santri_map()
    if santri_id not in santri:
        return jsonify({'error': 'Santri not found'}), 404

    del santri[santri_id]
    dao.update_user(get_current_user().uid, {'santri': santri})
    logger.info('Santri %s deleted by orangtua %s', santri_id, get_current_user().uid)

    return jsonify({'message': 'Santri deleted successfully', 'santriId': santri_id})


@bp.route('/reports', methods=['GET'])
@role_required('orangtua')
def children_reports():
    kind = request.args.get('kind', 'academic')
    if kind not in report_service.LABELS:
        return jsonify({'error': f'Jenis laporan tidak dikenal: {kind}'}), 400

    parent = dao.get_user(get_current_user().uid) or {'id': get_current_user().uid}
    student_ids = linked_student_ids(parent)
    if not student_ids:
        return jsonify({'reports': [], 'total': 0})

    reports = dao.get_reports(report_service.collection_for(kind), student_ids=student_ids)
    reports = report_service.sort_reports(kind, reports)
    return jsonify({'reports': reports, 'total': len(reports)})
