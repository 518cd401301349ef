import logging
import threading

from pesantren.firestore_models import Message

logger = logging.getLogger(__name__)


class MessageFeed:
    """Live, ordered message list of one chat.

    Every snapshot delivers the whole list to `on_messages`. Messages from
    the other participant are handed to the status updater once to be
    marked delivered; the ids already handed over are remembered in memory.
    """

    def __init__(self, db, chat_id, user_id, on_messages, status_updater=None):
        self.db = db
        self.chat_id = chat_id
        self.user_id = user_id
        self.on_messages = on_messages
        self.status_updater = status_updater
        self.connected = False
        self.messages = []
        self._seen = set()
        self._lock = threading.Lock()
        self._watch = None

    def _query(self):
        return (
            self.db.collection('chats').document(self.chat_id)
            .collection('messages')
            .order_by('createdAt')
        )

    def start(self):
        """Deliver the current list, then follow changes."""
        initial = []
        for doc in self._query().stream():
            data = doc.to_dict()
            data['id'] = doc.id
            initial.append(data)
        self._deliver(initial)
        self._watch = self._query().on_snapshot(self._on_snapshot)
        self.connected = True
        return self

    def stop(self):
        if self._watch is not None:
            self._watch.unsubscribe()
            self._watch = None
        self.connected = False

    def _on_snapshot(self, docs, changes, read_time):
        try:
            messages = []
            for doc in docs:
                data = doc.to_dict()
                data['id'] = doc.id
                messages.append(data)
            self._deliver(messages)
        except Exception:
            logger.exception('Message listener for chat %s failed', self.chat_id)
            self.connected = False

    def _deliver(self, messages):
        messages = sorted(messages, key=lambda m: m.get('createdAt') or '')
        self.messages = messages
        self.on_messages(messages)

        pending = self._take_unseen(messages)
        if pending and self.status_updater is not None:
            self.status_updater.batch_update(self.chat_id, pending, 'delivered')

    def _take_unseen(self, messages):
        """Ids of incoming messages not yet delivered and not handed over
        before. They are added to the seen set."""
        pending = []
        with self._lock:
            for data in messages:
                msg = Message.from_dict(data)
                if msg.sender_id == self.user_id:
                    continue
                if msg.status in ('delivered', 'read'):
                    continue
                if msg.id in self._seen:
                    continue
                self._seen.add(msg.id)
                pending.append(msg.id)
        return pending

    def mark_read(self):
        """Mark every message from the other participant as read."""
        unread = [
            m['id'] for m in self.messages
            if m.get('senderId') != self.user_id and m.get('status') != 'read'
        ]
        if not unread or self.status_updater is None:
            return {'success': [], 'failed': []}
        return self.status_updater.batch_update(self.chat_id, unread, 'read')
