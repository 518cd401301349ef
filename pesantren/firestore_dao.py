"""
Firestore Data Access Object (DAO) layer.

Route handlers, socket events and services call functions from this
module instead of talking to the Firestore client directly. Documents keep
the camelCase field names already present in the store; timestamps are
written as ISO-8601 UTC strings.

Nothing here is transactional: multi-step writes (report + audit entry,
archive + delete) are separate calls and the last writer wins.
"""

from datetime import datetime, timezone

from google.cloud.firestore_v1 import FieldFilter

from pesantren.firebase_init import get_db


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _doc_to_dict(doc_snapshot):
    """Convert a Firestore DocumentSnapshot to a dict with 'id' field."""
    if not doc_snapshot.exists:
        return None
    d = doc_snapshot.to_dict()
    d['id'] = doc_snapshot.id
    return d


def _query_to_list(query_ref):
    """Run a query and return a list of dicts."""
    return [_doc_to_dict(doc) for doc in query_ref.stream()]


def _now():
    return datetime.now(timezone.utc).isoformat()


def now_iso():
    """Current UTC time in the format stored on documents."""
    return _now()


# ========================================================================
# Users  (collection: users)
# ========================================================================

def get_user(uid):
    """Get a user document by UID. Returns dict or None."""
    if not uid:
        return None
    doc = get_db().collection('users').document(uid).get()
    return _doc_to_dict(doc)


def get_user_by_email(email):
    """Get a user by email address. Returns dict or None."""
    docs = (
        get_db().collection('users')
        .where(filter=FieldFilter('email', '==', email))
        .limit(1)
        .stream()
    )
    for doc in docs:
        return _doc_to_dict(doc)
    return None


def get_all_users():
    return _query_to_list(get_db().collection('users'))


def get_users_by_role(role):
    """Get every user with the given role."""
    return _query_to_list(
        get_db().collection('users')
        .where(filter=FieldFilter('role', '==', role))
    )


def get_santri_by_parent(parent_id):
    """Santri user documents that point back to a parent via parentId."""
    return _query_to_list(
        get_db().collection('users')
        .where(filter=FieldFilter('parentId', '==', parent_id))
    )


def create_user(uid, data):
    """Create a user document with the given UID as the document ID."""
    data.setdefault('createdAt', _now())
    get_db().collection('users').document(uid).set(data)


def update_user(uid, data):
    """Update fields on an existing user document."""
    data.setdefault('updatedAt', _now())
    get_db().collection('users').document(uid).update(data)


def delete_user(uid):
    get_db().collection('users').document(uid).delete()


def touch_last_active(uid):
    get_db().collection('users').document(uid).set({'lastActive': _now()}, merge=True)


def new_santri_id():
    """Auto id for an entry in a parent's `santri` map."""
    return get_db().collection('users').document().id


# ========================================================================
# Presence  (collection: status)
# ========================================================================

def set_presence(uid, state):
    """Record a user's connection state ('online' or 'offline')."""
    get_db().collection('status').document(uid).set({
        'state': state,
        'lastChanged': _now(),
    })


def get_presence(uid):
    doc = get_db().collection('status').document(uid).get()
    return _doc_to_dict(doc)


# ========================================================================
# Classes  (collection: classes)
# ========================================================================

def get_class(class_id):
    """Get a class by ID. Returns dict or None."""
    doc = get_db().collection('classes').document(class_id).get()
    return _doc_to_dict(doc)


def get_all_classes():
    return _query_to_list(get_db().collection('classes'))


def get_classes_by_ustad(ustad_id):
    """Get all classes taught by an ustad."""
    return _query_to_list(
        get_db().collection('classes')
        .where(filter=FieldFilter('ustadId', '==', ustad_id))
    )


def create_class(data):
    """Create a new class. Returns the generated doc ID."""
    data.setdefault('createdAt', _now())
    _, doc_ref = get_db().collection('classes').add(data)
    return doc_ref.id


def update_class(class_id, data):
    """Update fields on an existing class."""
    data.setdefault('updatedAt', _now())
    get_db().collection('classes').document(class_id).update(data)


def delete_class(class_id):
    get_db().collection('classes').document(class_id).delete()


# ========================================================================
# Chats  (collection: chats, subcollection: messages)
# ========================================================================

def get_chat(chat_id):
    """Get a chat by ID. Returns dict or None."""
    doc = get_db().collection('chats').document(chat_id).get()
    return _doc_to_dict(doc)


def get_all_chats():
    return _query_to_list(get_db().collection('chats'))


def get_chats_for_user(uid):
    """Get every chat in which the user is either participant."""
    chats = {}
    for field in ('participant1Id', 'participant2Id'):
        for chat in _query_to_list(
            get_db().collection('chats')
            .where(filter=FieldFilter(field, '==', uid))
        ):
            chats[chat['id']] = chat
    return list(chats.values())


def find_chat_between(uid_a, uid_b):
    """Find an existing chat between two users, in either order."""
    for chat in get_chats_for_user(uid_a):
        if {chat.get('participant1Id'), chat.get('participant2Id')} == {uid_a, uid_b}:
            return chat
    return None


def create_chat(data):
    """Create a chat. Returns doc ID."""
    data.setdefault('createdAt', _now())
    _, doc_ref = get_db().collection('chats').add(data)
    return doc_ref.id


def update_chat(chat_id, data):
    get_db().collection('chats').document(chat_id).update(data)


def messages_query(chat_id):
    """Query over a chat's messages ordered by creation time."""
    return (
        get_db().collection('chats').document(chat_id)
        .collection('messages')
        .order_by('createdAt')
    )


def get_messages(chat_id):
    """Get all messages for a chat, oldest first."""
    return _query_to_list(messages_query(chat_id))


def get_message(chat_id, message_id):
    """Get a single message. Returns dict or None."""
    doc = (
        get_db().collection('chats').document(chat_id)
        .collection('messages').document(message_id).get()
    )
    return _doc_to_dict(doc)


def create_message(chat_id, data):
    """Append a message to a chat. Returns doc ID."""
    data.setdefault('createdAt', _now())
    _, doc_ref = (
        get_db().collection('chats').document(chat_id)
        .collection('messages').add(data)
    )
    return doc_ref.id


def update_message(chat_id, message_id, data):
    (
        get_db().collection('chats').document(chat_id)
        .collection('messages').document(message_id).update(data)
    )


# ========================================================================
# Reports  (collections: academicReports, quranReports, behaviorReports)
# ========================================================================

def get_report(collection, report_id):
    """Get a report by ID from one of the report collections."""
    doc = get_db().collection(collection).document(report_id).get()
    return _doc_to_dict(doc)


def get_reports(collection, ustad_id=None, student_ids=None):
    """Get reports, optionally narrowed to one ustad or a set of students."""
    q = get_db().collection(collection)
    if ustad_id:
        q = q.where(filter=FieldFilter('ustadId', '==', ustad_id))
    reports = _query_to_list(q)
    if student_ids is not None:
        wanted = set(student_ids)
        reports = [r for r in reports if r.get('studentId') in wanted]
    return reports


def create_report(collection, data):
    """Create a report. Returns doc ID."""
    data.setdefault('createdAt', _now())
    data.setdefault('updatedAt', data['createdAt'])
    _, doc_ref = get_db().collection(collection).add(data)
    return doc_ref.id


def update_report(collection, report_id, data):
    get_db().collection(collection).document(report_id).update(data)


def delete_report(collection, report_id):
    get_db().collection(collection).document(report_id).delete()


def add_audit_entry(collection, report_id, entry):
    """Append an entry to a report's audit trail. Returns doc ID."""
    entry.setdefault('updatedAt', _now())
    _, doc_ref = (
        get_db().collection(collection).document(report_id)
        .collection('auditTrail').add(entry)
    )
    return doc_ref.id


def get_audit_trail(collection, report_id):
    return _query_to_list(
        get_db().collection(collection).document(report_id)
        .collection('auditTrail')
        .order_by('updatedAt')
    )


def archive_deleted_report(kind, entry):
    """Store a copy of a report under deletedReports/{kind}. Returns doc ID."""
    entry.setdefault('deletedAt', _now())
    _, doc_ref = (
        get_db().collection('deletedReports').document(kind)
        .collection('items').add(entry)
    )
    return doc_ref.id


def get_deleted_reports(kind):
    return _query_to_list(
        get_db().collection('deletedReports').document(kind)
        .collection('items')
    )


# ========================================================================
# Notifications  (collection: notifications)
# ========================================================================

def create_notification(data):
    """Create a notification. Returns doc ID."""
    data.setdefault('createdAt', _now())
    data.setdefault('read', False)
    _, doc_ref = get_db().collection('notifications').add(data)
    return doc_ref.id


def get_notification(notification_id):
    doc = get_db().collection('notifications').document(notification_id).get()
    return _doc_to_dict(doc)


def get_all_notifications():
    return _query_to_list(get_db().collection('notifications'))


def mark_notification_read(notification_id, uid):
    """Mark a single notification as read."""
    get_db().collection('notifications').document(notification_id).update({
        'read': True,
        'readAt': _now(),
        'readBy': uid,
    })


def mark_notifications_read(notification_ids, uid):
    """Mark several notifications as read in batched writes."""
    db = get_db()
    batch = db.batch()
    now = _now()
    count = 0
    for notification_id in notification_ids:
        batch.update(db.collection('notifications').document(notification_id),
                     {'read': True, 'readAt': now, 'readBy': uid})
        count += 1
        # Firestore batches are limited to 500 writes
        if count % 500 == 0:
            batch.commit()
            batch = db.batch()
    if count % 500 != 0:
        batch.commit()
    return count


def delete_notification(notification_id):
    get_db().collection('notifications').document(notification_id).delete()


# ========================================================================
# Role requests  (collection: roleRequests)
# ========================================================================

def create_role_request(data):
    """Create a pending role request. Returns doc ID."""
    data.setdefault('createdAt', _now())
    data.setdefault('status', 'pending')
    _, doc_ref = get_db().collection('roleRequests').add(data)
    return doc_ref.id


def get_role_request(request_id):
    doc = get_db().collection('roleRequests').document(request_id).get()
    return _doc_to_dict(doc)


def get_role_requests(status=None):
    query = get_db().collection('roleRequests')
    if status:
        query = query.where(filter=FieldFilter('status', '==', status))
    return _query_to_list(query)


def update_role_request(request_id, data):
    get_db().collection('roleRequests').document(request_id).update(data)
