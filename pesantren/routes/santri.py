import logging

from flask import Blueprint, jsonify, request
from pydantic import ValidationError

from pesantren.api_utils import json_body, page_args, paginate, validation_error
from pesantren.decorators import get_current_user, role_required
from pesantren import firestore_dao as dao
from pesantren.schemas import EnhancedSantriCreate, EnhancedSantriUpdate
from pesantren.services.santri_links import (
    all_santri, find_santri_owner, normalize_santri, parent_list,
)

logger = logging.getLogger(__name__)

bp = Blueprint('santri', __name__, url_prefix='/api/santri')

SANTRI_STATUSES = ['active', 'inactive', 'graduated']


@bp.route('', methods=['GET'])
@role_required('admin')
def list_students():
    """Santri user accounts, used when enrolling students in a class."""
    entry_year = request.args.get('entryYear')
    status = request.args.get('status')
    search = (request.args.get('search') or '').lower()
    page, limit = page_args(default_limit=25)

    students = [
        {
            'id': u['id'],
            'name': u.get('name', ''),
            'email': u.get('email', ''),
            'entryYear': u.get('entryYear', '') or '',
            'status': u.get('status') or 'active',
            'orangTuaId': u.get('orangTuaId') or u.get('parentId') or '',
            'createdAt': u.get('createdAt'),
        }
        for u in dao.get_users_by_role('santri')
    ]

    if entry_year and entry_year != 'all':
        students = [s for s in students if s['entryYear'] == entry_year]
    if status and status != 'all':
        students = [s for s in students if s['status'] == status]
    if search:
        students = [s for s in students
                    if search in s['name'].lower() or search in s['email'].lower()]

    items, total, total_pages = paginate(students, page, limit)
    return jsonify({
        'students': items,
        'total': total,
        'pagination': {
            'total': total,
            'page': page,
            'limit': limit,
            'totalPages': total_pages,
            'hasNext': page * limit < total,
            'hasPrev': page > 1,
        },
        'filters': {
            'entryYears': sorted({s['entryYear'] for s in students if s['entryYear']}),
            'availableStatuses': SANTRI_STATUSES,
        },
    })


# ---------------------------------------------------------------------------
# Normalised santri across parents
# ---------------------------------------------------------------------------

@bp.route('/enhanced', methods=['GET'])
@role_required('admin', 'ustad', 'orangtua')
def enhanced_list():
    user = get_current_user()
    users = dao.get_all_users()

    if user.is_orangtua():
        users_by_id = {u['id']: u for u in users}
        parent = users_by_id.get(user.uid, {'id': user.uid})
        records = normalize_santri(parent, users_by_id)
    else:
        records = all_santri(users)

    return jsonify({
        'santriList': [record.to_listing() for record in records],
        'parents': parent_list(users),
    })


@bp.route('/enhanced', methods=['POST'])
@role_required('admin', 'ustad', 'orangtua')
def enhanced_create():
    user = get_current_user()
    try:
        payload = EnhancedSantriCreate.model_validate(json_body())
    except ValidationError as e:
        return validation_error(e)

    if user.is_orangtua() and payload.orangTuaId != user.uid:
        return jsonify({'error': 'Anda hanya dapat menambahkan santri untuk akun sendiri'}), 403

    parent = dao.get_user(payload.orangTuaId)
    if not parent:
        return jsonify({'error': 'Orang tua tidak ditemukan'}), 404
    if parent.get('role') != 'orangtua':
        return jsonify({'error': 'User yang dipilih bukan orang tua'}), 400

    santri_id = dao.new_santri_id()
    santri_data = payload.model_dump(exclude={'orangTuaId'})
    santri_data.update({
        'createdAt': dao.now_iso(),
        'createdBy': user.uid,
        'createdByName': user.name,
    })
    santri = dict(parent.get('santri') or {})
    santri[santri_id] = santri_data
    dao.update_user(payload.orangTuaId, {'santri': santri})
    logger.info('Santri %s added to orangtua %s by %s', santri_id, payload.orangTuaId, user.uid)

    return jsonify({
        'message': 'Santri berhasil ditambahkan',
        'santriId': santri_id,
        'santriData': dict(
            santri_data,
            id=santri_id,
            orangTuaId=payload.orangTuaId,
            orangTuaName=parent.get('name', ''),
        ),
    })


def _enhanced_target():
    """Returns (santri_id, parent, error_response) from the query string."""
    santri_id = request.args.get('id')
    orangtua_id = request.args.get('orangTuaId')
    if not santri_id or not orangtua_id:
        return None, None, (jsonify({'error': 'ID santri dan ID orang tua wajib diisi'}), 400)

    user = get_current_user()
    if user.is_orangtua() and orangtua_id != user.uid:
        return None, None, (jsonify({'error': 'Santri tidak ditemukan'}), 404)

    parent = dao.get_user(orangtua_id)
    if not parent:
        return None, None, (jsonify({'error': 'Orang tua tidak ditemukan'}), 404)
    if santri_id not in (parent.get('santri') or {}):
        return None, None, (jsonify({'error': 'Santri tidak ditemukan'}), 404)
    return santri_id, parent, None


@bp.route('/enhanced', methods=['PUT'])
@role_required('admin', 'ustad', 'orangtua')
def enhanced_update():
    user = get_current_user()
    santri_id, parent, error = _enhanced_target()
    if error:
        return error

    try:
        payload = EnhancedSantriUpdate.model_validate(json_body())
    except ValidationError as e:
        return validation_error(e)

    update_data = payload.model_dump(exclude_unset=True, exclude_none=True)
    update_data.update({
        'updatedAt': dao.now_iso(),
        'updatedBy': user.uid,
        'updatedByName': user.name,
    })
    santri = dict(parent['santri'])
    santri[santri_id] = dict(santri[santri_id], **update_data)
    dao.update_user(parent['id'], {'santri': santri})

    return jsonify({
        'message': 'Data santri berhasil diperbarui',
        'santriId': santri_id,
        'updateData': update_data,
    })


@bp.route('/enhanced', methods=['DELETE'])
@role_required('admin', 'ustad', 'orangtua')
def enhanced_delete():
    santri_id, parent, error = _enhanced_target()
    if error:
        return error

    santri = dict(parent['santri'])
    del santri[santri_id]
    dao.update_user(parent['id'], {'santri': santri})
    logger.info('Santri %s removed from orangtua %s', santri_id, parent['id'])

    return jsonify({'message': 'Santri berhasil dihapus', 'santriId': santri_id})


# ---------------------------------------------------------------------------
# Single santri, looked up through the parent holding it
# ---------------------------------------------------------------------------

def _owner_or_404(santri_id):
    parent, entry = find_santri_owner(santri_id, dao.get_users_by_role('orangtua'))
    if parent is None:
        return None, None, (jsonify({'error': 'Santri not found'}), 404)
    return parent, entry, None


@bp.route('/<santri_id>', methods=['GET'])
@role_required('admin', 'ustad')
def get_santri(santri_id):
    parent, entry, error = _owner_or_404(santri_id)
    if error:
        return error

    return jsonify({'santri': {
        'id': santri_id,
        'userId': parent['id'],
        'name': entry.get('name', ''),
        'nis': entry.get('nis', '') or '',
        'gender': entry.get('gender') or entry.get('jenisKelamin') or '',
        'tempatLahir': entry.get('tempatLahir', '') or '',
        'tanggalLahir': entry.get('tanggalLahir', '') or '',
        'tahunDaftar': entry.get('tahunDaftar', '') or '',
        'createdAt': entry.get('createdAt'),
        'orangtua': {
            'id': parent['id'],
            'name': parent.get('name', ''),
            'email': parent.get('email', ''),
            'phone': parent.get('phone', '') or '',
        },
    }})


@bp.route('/<santri_id>', methods=['PUT'])
@role_required('admin', 'ustad')
def update_santri(santri_id):
    body = json_body()
    data = body.get('santriData') if isinstance(body.get('santriData'), dict) else body
    if not data.get('name') or not data.get('tanggalLahir'):
        return jsonify({'error': 'Santri name and birth date are required'}), 400

    parent, entry, error = _owner_or_404(santri_id)
    if error:
        return error

    updated = dict(entry)
    for field in ('name', 'nis', 'gender', 'tempatLahir', 'tanggalLahir', 'tahunDaftar'):
        if field in data:
            updated[field] = data[field]
    updated['updatedAt'] = dao.now_iso()

    santri = dict(parent['santri'])
    santri[santri_id] = updated
    dao.update_user(parent['id'], {'santri': santri})

    return jsonify({
        'message': 'Santri updated successfully',
        'santri': dict(updated, id=santri_id),
    })


@bp.route('/<santri_id>', methods=['DELETE'])
@role_required('admin', 'ustad')
def delete_santri(santri_id):
    parent, _, error = _owner_or_404(santri_id)
    if error:
        return error

    santri = dict(parent['santri'])
    del santri[santri_id]
    dao.update_user(parent['id'], {'santri': santri})
    logger.info('Santri %s deleted from orangtua %s', santri_id, parent['id'])

    return jsonify({'message': 'Santri deleted successfully', 'santriId': santri_id})
