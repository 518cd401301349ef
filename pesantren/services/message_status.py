"""
Message delivery status rules.

Statuses only move forward (sent -> delivered -> read) and only the
recipient of a message may move them. Each transition stamps
`statusTimestamp[status]` and keeps the stamps already present.
"""

import logging

from pesantren import firestore_dao as dao
from pesantren.firestore_models import Chat, Message, MESSAGE_STATUSES

logger = logging.getLogger(__name__)


class StatusUpdateError(Exception):
    """A status change that was refused. Carries the HTTP status to return."""

    def __init__(self, message, status_code):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def messages_needing_status_update(messages, user_id, target):
    """Ids of messages from other users whose status is below `target`."""
    if target not in MESSAGE_STATUSES:
        raise ValueError(f'Unknown message status: {target}')
    ids = []
    for data in messages:
        msg = Message.from_dict(data)
        if msg.sender_id == user_id:
            continue
        if msg.is_below(target):
            ids.append(msg.id)
    return ids


def check_participant(chat_id, user_id):
    """Load the chat and make sure `user_id` takes part in it."""
    data = dao.get_chat(chat_id)
    if not data:
        raise StatusUpdateError('Chat not found', 404)
    chat = Chat.from_dict(data, chat_id)
    if not chat.has_participant(user_id):
        raise StatusUpdateError('Access denied', 403)
    return chat


def apply_status(chat_id, message_id, user_id, status, check_chat=True):
    """Advance one message to `status` on behalf of `user_id`.

    Returns a dict with `changed`, the message's resulting `status` and the
    `timestamp` recorded for the requested status.
    """
    if status not in ('delivered', 'read'):
        raise StatusUpdateError('Invalid status', 400)
    if check_chat:
        check_participant(chat_id, user_id)

    data = dao.get_message(chat_id, message_id)
    if not data:
        raise StatusUpdateError('Message not found', 404)

    msg = Message.from_dict(data, message_id)
    if msg.sender_id == user_id:
        raise StatusUpdateError('Cannot update status for own message', 403)

    changed = msg.advance(status, dao.now_iso())
    if changed:
        dao.update_message(chat_id, message_id, {
            'status': msg.status,
            'statusTimestamp': msg.status_timestamp,
        })
        logger.debug('Message %s/%s -> %s', chat_id, message_id, msg.status)

    return {
        'changed': changed,
        'status': msg.status,
        'timestamp': msg.status_timestamp.get(status),
    }


def apply_status_many(chat_id, message_ids, user_id, status):
    """Advance several messages; refused ids are skipped and reported."""
    check_participant(chat_id, user_id)
    updated, skipped = [], []
    for message_id in message_ids:
        try:
            result = apply_status(chat_id, message_id, user_id, status, check_chat=False)
        except StatusUpdateError as e:
            logger.info('Skipped status update for %s: %s', message_id, e.message)
            skipped.append(message_id)
            continue
        if result['changed']:
            updated.append(message_id)
    return updated, skipped
