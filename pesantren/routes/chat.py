import logging

from flask import Blueprint, jsonify, request
from pydantic import ValidationError

from pesantren.api_utils import json_body, validation_error
from pesantren.decorators import api_auth_required, get_current_user
from pesantren import firestore_dao as dao
from pesantren.schemas import ChatCreate, ChatMessageCreate, MessageStatusUpdate
from pesantren.services import chat as chat_service
from pesantren.services.message_status import StatusUpdateError, apply_status, check_participant
from pesantren.services.santri_links import normalize_santri

logger = logging.getLogger(__name__)

bp = Blueprint('chat', __name__, url_prefix='/api/chat')


@bp.route('', methods=['GET'])
@api_auth_required
def list_chats():
    user = get_current_user()
    users_by_id = {u['id']: u for u in dao.get_all_users()}
    chats = [
        chat_service.chat_summary(chat, user.uid, users_by_id)
        for chat in dao.get_chats_for_user(user.uid)
    ]
    return jsonify({'chats': chat_service.sort_by_activity(chats)})


@bp.route('', methods=['POST'])
@api_auth_required
def create_chat_or_message():
    user = get_current_user()
    data = json_body()

    try:
        if data.get('chatId') and data.get('text'):
            payload = ChatMessageCreate.model_validate(data)
            message_id = chat_service.send_message(payload.chatId, user.uid, user.name, payload.text)
            return jsonify({'message': 'Message sent successfully', 'messageId': message_id})

        if data.get('participantId') and data.get('participantName'):
            payload = ChatCreate.model_validate(data)
            chat_id, created = chat_service.open_chat(
                user.uid, user.name, payload.participantId, payload.participantName
            )
            message = 'Chat created successfully' if created else 'Chat already exists'
            return jsonify({'message': message, 'chatId': chat_id})
    except ValidationError as e:
        return validation_error(e)
    except StatusUpdateError as e:
        return jsonify({'error': e.message}), e.status_code

    return jsonify({'error': 'Invalid request data'}), 400


@bp.route('/<chat_id>/messages', methods=['GET'])
@api_auth_required
def get_messages(chat_id):
    user = get_current_user()
    try:
        check_participant(chat_id, user.uid)
    except StatusUpdateError as e:
        return jsonify({'error': e.message}), e.status_code
    return jsonify({'messages': dao.get_messages(chat_id)})


@bp.route('/<chat_id>/messages/<message_id>/status', methods=['PUT'])
@api_auth_required
def update_message_status(chat_id, message_id):
    user = get_current_user()
    try:
        payload = MessageStatusUpdate.model_validate(json_body())
    except ValidationError as e:
        return validation_error(e)

    try:
        result = apply_status(chat_id, message_id, user.uid, payload.status)
    except StatusUpdateError as e:
        return jsonify({'error': e.message}), e.status_code

    return jsonify({
        'message': 'Message status updated successfully',
        'status': result['status'],
        'timestamp': result['timestamp'],
        'changed': result['changed'],
    })


@bp.route('/users', methods=['GET'])
@api_auth_required
def chat_users():
    return jsonify({'users': chat_service.chat_partners(get_current_user())})


@bp.route('/search', methods=['GET'])
@api_auth_required
def search_chats():
    user = get_current_user()
    query = (request.args.get('query') or '').strip()
    if not query:
        return jsonify({'error': 'Query parameter is required'}), 400
    if len(query) > 100:
        return jsonify({'error': 'Query too long'}), 400

    needle = query.lower()
    users_by_id = {u['id']: u for u in dao.get_all_users()}
    results = []
    for chat in dao.get_chats_for_user(user.uid):
        summary = chat_service.chat_summary(chat, user.uid, users_by_id)
        other = users_by_id.get(summary['otherParticipantId'])
        if not other:
            continue

        matched_students = [
            record.to_listing() for record in normalize_santri(other, users_by_id)
            if needle in (record.name or '').lower()
        ]
        name_matches = needle in (other.get('name') or '').lower()
        message_matches = needle in (summary['lastMessage'] or '').lower()

        if name_matches or message_matches or matched_students:
            summary['otherParticipantRole'] = other.get('role')
            summary['matchedStudents'] = matched_students
            results.append(summary)

    return jsonify({'chats': chat_service.sort_by_activity(results), 'query': query})
