import logging

from flask import Blueprint, jsonify
from pydantic import ValidationError

from pesantren.api_utils import json_body, sort_newest, validation_error
from pesantren.decorators import api_auth_required, get_current_user, role_required
from pesantren import firestore_dao as dao
from pesantren.schemas import RoleRequestCreate, RoleRequestDecision

logger = logging.getLogger(__name__)

bp = Blueprint('role_requests', __name__, url_prefix='/api/role-requests')


@bp.route('', methods=['GET'])
@role_required('admin')
def list_role_requests():
    """Pending requests only, newest first."""
    return jsonify({'requests': sort_newest(dao.get_role_requests(status='pending'))})


@bp.route('', methods=['POST'])
@api_auth_required
def create_role_request():
    user = get_current_user()
    try:
        payload = RoleRequestCreate.model_validate(json_body())
    except ValidationError as e:
        return validation_error(e)

    if payload.requestedRole == user.role:
        return jsonify({'error': 'You already have this role'}), 400

    request_data = {
        'userId': user.uid,
        'userEmail': user.get('email', ''),
        'userName': user.name,
        'currentRole': user.role,
        'requestedRole': payload.requestedRole,
        'reason': payload.reason,
        'status': 'pending',
        'createdAt': dao.now_iso(),
    }
    request_id = dao.create_role_request(request_data)
    logger.info('Role request %s: %s asks for %s', request_id, user.uid, payload.requestedRole)

    return jsonify({
        'message': 'Role request submitted successfully',
        'request': dict(request_data, id=request_id),
    }), 201


@bp.route('/<request_id>', methods=['PATCH'])
@role_required('admin')
def process_role_request(request_id):
    user = get_current_user()
    try:
        payload = RoleRequestDecision.model_validate(json_body())
    except ValidationError as e:
        return validation_error(e)

    role_request = dao.get_role_request(request_id)
    if not role_request:
        return jsonify({'error': 'Role request not found'}), 404
    if role_request.get('status') != 'pending':
        return jsonify({'error': 'Role request already processed'}), 400

    now = dao.now_iso()
    update_data = {
        'status': 'approved' if payload.action == 'approve' else 'rejected',
        'processedBy': user.uid,
        'processedAt': now,
        'adminNote': payload.adminNote,
    }
    dao.update_role_request(request_id, update_data)

    if payload.action == 'approve':
        target = dao.get_user(role_request.get('userId'))
        if target:
            dao.update_user(target['id'], {
                'role': role_request['requestedRole'],
                'roleUpdatedAt': now,
            })
        else:
            logger.warning('Approved role request %s for missing user %s',
                           request_id, role_request.get('userId'))

    logger.info('Role request %s %sd by %s', request_id, payload.action, user.uid)
    return jsonify({
        'message': f'Role request {payload.action}d successfully',
        'request': dict(role_request, **update_data),
    })
