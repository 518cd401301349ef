"""Chat operations shared by the HTTP handlers and the socket events."""

import logging
from datetime import datetime, timedelta, timezone

from pesantren import firestore_dao as dao
from pesantren.firestore_models import Chat, parse_datetime
from pesantren.services.message_status import StatusUpdateError, check_participant

logger = logging.getLogger(__name__)

PLACEHOLDER_NAMES = ('', 'Unknownfix')
PRESENCE_WINDOW = timedelta(minutes=5)

# who may start a chat with whom
CHAT_PARTNER_ROLES = {
    'ustad': ('orangtua',),
    'orangtua': ('ustad',),
    'admin': ('ustad', 'orangtua'),
}


def display_name(name, other_id, users_by_id):
    """Fall back to the users collection for missing or placeholder names."""
    if name and name not in PLACEHOLDER_NAMES:
        return name
    other = users_by_id.get(other_id) if users_by_id is not None else dao.get_user(other_id)
    if other and other.get('name'):
        return other['name']
    return 'Unknown User'


def chat_summary(data, uid, users_by_id=None):
    chat = Chat.from_dict(data, data.get('id'))
    other_id, other_name = chat.other_participant(uid)
    return {
        'id': chat.id,
        'otherParticipantId': other_id,
        'otherParticipantName': display_name(other_name, other_id, users_by_id),
        'lastMessage': chat.last_message or '',
        'lastMessageTime': chat.last_message_time or chat.created_at,
        'createdAt': chat.created_at,
    }


def sort_by_activity(summaries):
    return sorted(summaries, key=lambda c: c.get('lastMessageTime') or '', reverse=True)


def send_message(chat_id, sender_id, sender_name, text):
    """Append a message to a chat the sender takes part in. Returns its id."""
    check_participant(chat_id, sender_id)
    now = dao.now_iso()
    message_id = dao.create_message(chat_id, {
        'text': text,
        'senderId': sender_id,
        'senderName': sender_name,
        'createdAt': now,
        'status': 'sent',
        'statusTimestamp': {'sent': now},
    })
    dao.update_chat(chat_id, {'lastMessage': text, 'lastMessageTime': now})
    logger.info('Message %s sent in chat %s', message_id, chat_id)
    return message_id


def open_chat(user_id, user_name, participant_id, participant_name):
    """Return (chat_id, created). Reuses a chat between the two users in
    either order."""
    if participant_id == user_id:
        raise StatusUpdateError('Cannot start a chat with yourself', 400)
    existing = dao.find_chat_between(user_id, participant_id)
    if existing:
        return existing['id'], False
    chat = Chat(
        participant1_id=user_id,
        participant1_name=user_name,
        participant2_id=participant_id,
        participant2_name=participant_name,
        created_at=dao.now_iso(),
    )
    chat_id = dao.create_chat(chat.to_dict())
    logger.info('Chat %s created between %s and %s', chat_id, user_id, participant_id)
    return chat_id, True


def is_online(uid, now=None):
    presence = dao.get_presence(uid)
    if not presence:
        return False
    if presence.get('state') == 'online':
        return True
    now = now or datetime.now(timezone.utc)
    changed = parse_datetime(presence.get('lastChanged'))
    return changed is not None and now - changed <= PRESENCE_WINDOW


def chat_partners(user):
    """Users the given user may chat with, each with an `online` flag."""
    roles = CHAT_PARTNER_ROLES.get(user.role, ())
    partners = []
    for role in roles:
        for other in dao.get_users_by_role(role):
            if other['id'] == user.uid:
                continue
            partners.append({
                'uid': other['id'],
                'name': other.get('name', ''),
                'email': other.get('email', ''),
                'role': other.get('role'),
                'online': is_online(other['id']),
            })
    return partners
