import logging

from flask_socketio import emit, join_room, leave_room

from pesantren import socketio
from pesantren.decorators import get_current_user
from pesantren import firestore_dao as dao
from pesantren.services import chat as chat_service
from pesantren.services.message_status import (
    StatusUpdateError, apply_status_many, check_participant, messages_needing_status_update,
)

logger = logging.getLogger(__name__)


def _get_socket_user():
    """Get current user from the Flask session context in Socket.IO events."""
    user = get_current_user()
    if user and user.has_profile:
        return user
    return None


def _room(chat_id):
    return f'chat_{chat_id}'


def _broadcast_messages(chat_id):
    emit('chat_messages', {
        'chat_id': chat_id,
        'messages': dao.get_messages(chat_id),
    }, room=_room(chat_id))


@socketio.on('connect')
def handle_connect():
    user = _get_socket_user()
    if not user:
        return False
    dao.set_presence(user.uid, 'online')
    dao.touch_last_active(user.uid)
    emit('connected', {'user_id': user.uid, 'name': user.name})


@socketio.on('disconnect')
def handle_disconnect(*args):
    user = _get_socket_user()
    if not user:
        return
    dao.set_presence(user.uid, 'offline')
    dao.touch_last_active(user.uid)


@socketio.on('join_chat')
def handle_join_chat(data):
    user = _get_socket_user()
    if not user:
        emit('error', {'message': 'Authentication required'})
        return

    chat_id = (data or {}).get('chat_id')
    if not chat_id:
        emit('error', {'message': 'Chat ID required'})
        return

    try:
        check_participant(chat_id, user.uid)
    except StatusUpdateError as e:
        emit('error', {'message': e.message})
        return

    join_room(_room(chat_id))
    messages = dao.get_messages(chat_id)
    emit('chat_messages', {'chat_id': chat_id, 'messages': messages})

    pending = messages_needing_status_update(messages, user.uid, 'delivered')
    if pending:
        updated, _ = apply_status_many(chat_id, pending, user.uid, 'delivered')
        if updated:
            _broadcast_messages(chat_id)


@socketio.on('leave_chat')
def handle_leave_chat(data):
    chat_id = (data or {}).get('chat_id')
    if not chat_id:
        emit('error', {'message': 'Chat ID required'})
        return
    leave_room(_room(chat_id))


@socketio.on('send_message')
def handle_send_message(data):
    user = _get_socket_user()
    if not user:
        emit('error', {'message': 'Authentication required'})
        return

    data = data or {}
    chat_id = data.get('chat_id')
    text = (data.get('text') or '').strip()
    if not chat_id or not text:
        emit('error', {'message': 'Chat ID and text required'})
        return
    if len(text) > 1000:
        emit('error', {'message': 'Message too long'})
        return

    try:
        chat_service.send_message(chat_id, user.uid, user.name, text)
    except StatusUpdateError as e:
        emit('error', {'message': e.message})
        return

    _broadcast_messages(chat_id)


@socketio.on('message_status')
def handle_message_status(data):
    user = _get_socket_user()
    if not user:
        emit('error', {'message': 'Authentication required'})
        return

    data = data or {}
    chat_id = data.get('chat_id')
    message_ids = data.get('message_ids') or []
    status = data.get('status')
    if not chat_id or not isinstance(message_ids, list) or status not in ('delivered', 'read'):
        emit('error', {'message': 'Invalid status update'})
        return

    try:
        updated, skipped = apply_status_many(chat_id, message_ids, user.uid, status)
    except StatusUpdateError as e:
        emit('error', {'message': e.message})
        return

    if skipped:
        logger.info('Status %s skipped for %d message(s) in %s', status, len(skipped), chat_id)
    if updated:
        _broadcast_messages(chat_id)
