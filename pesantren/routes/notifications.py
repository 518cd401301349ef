import logging

from flask import Blueprint, jsonify, request
from pydantic import ValidationError

from pesantren.api_utils import json_body, page_args, paginate, sort_newest, validation_error
from pesantren.decorators import api_auth_required, get_current_user, role_required
from pesantren import firestore_dao as dao
from pesantren.schemas import NotificationCreate, NotificationMarkRead

logger = logging.getLogger(__name__)

bp = Blueprint('notifications', __name__, url_prefix='/api/notifications')


def visible_to(notification, role):
    """Role-based visibility of a notification's targetRole."""
    target = notification.get('targetRole')
    if role == 'ustad':
        return target != 'admin'
    if role == 'admin':
        return target != 'ustad'
    if role == 'orangtua':
        return target in (None, 'orangtua')
    return target is None


def _parse_bool(value):
    if value is None:
        return None
    return value.lower() == 'true'


@bp.route('', methods=['GET'])
@api_auth_required
def list_notifications():
    user = get_current_user()
    type_ = request.args.get('type')
    priority = request.args.get('priority')
    read = _parse_bool(request.args.get('read'))
    target_role = request.args.get('targetRole')
    page, limit = page_args()

    result = []
    for notification in dao.get_all_notifications():
        if type_ and notification.get('type') != type_:
            continue
        if priority and notification.get('priority') != priority:
            continue
        if read is not None and bool(notification.get('read')) != read:
            continue
        if target_role and notification.get('targetRole') != target_role:
            continue
        if not visible_to(notification, user.role):
            continue
        result.append(notification)

    items, total, total_pages = paginate(sort_newest(result), page, limit)
    return jsonify({
        'notifications': items,
        'total': total,
        'page': page,
        'limit': limit,
        'totalPages': total_pages,
    })


@bp.route('', methods=['POST'])
@role_required('admin')
def create_notification():
    user = get_current_user()
    try:
        payload = NotificationCreate.model_validate(json_body())
    except ValidationError as e:
        return validation_error(e)

    data = payload.model_dump(exclude_none=True)
    data.update({
        'createdBy': user.uid,
        'createdByName': user.name or '',
        'createdAt': dao.now_iso(),
        'read': False,
    })
    notification_id = dao.create_notification(data)
    logger.info('Notification %s created by %s', notification_id, user.uid)

    return jsonify({
        'message': 'Notifikasi berhasil dibuat',
        'notificationId': notification_id,
        'notificationData': dict(data, id=notification_id),
    })


@bp.route('', methods=['PUT'])
@api_auth_required
def mark_read():
    user = get_current_user()
    notification_id = request.args.get('id')

    if not notification_id:
        # Bulk form: {"ids": [...]}
        try:
            payload = NotificationMarkRead.model_validate(json_body())
        except ValidationError as e:
            return validation_error(e)
        wanted = [
            n['id'] for n in (dao.get_notification(i) for i in payload.ids)
            if n and visible_to(n, user.role)
        ]
        count = dao.mark_notifications_read(wanted, user.uid)
        return jsonify({'message': 'Notifikasi ditandai sebagai dibaca', 'updated': count})

    notification = dao.get_notification(notification_id)
    if not notification or not visible_to(notification, user.role):
        return jsonify({'error': 'Notifikasi tidak ditemukan'}), 404

    dao.mark_notification_read(notification_id, user.uid)
    return jsonify({
        'message': 'Notifikasi ditandai sebagai dibaca',
        'notificationId': notification_id,
    })


@bp.route('', methods=['DELETE'])
@role_required('admin')
def delete_notification():
    notification_id = request.args.get('id')
    if not notification_id:
        return jsonify({'error': 'ID notifikasi wajib diisi'}), 400

    if not dao.get_notification(notification_id):
        return jsonify({'error': 'Notifikasi tidak ditemukan'}), 404

    dao.delete_notification(notification_id)
    logger.info('Notification %s deleted', notification_id)
    return jsonify({
        'message': 'Notifikasi berhasil dihapus',
        'notificationId': notification_id,
    })
