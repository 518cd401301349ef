"""
Parent -> santri link normalisation.

Parent documents link their children in one of three historical shapes:

  students    list of child objects (legacy)
  santri      map of santriId -> child object (written by this service)
  studentIds  list of santri user ids; the santri user carries `parentId`

Every reader goes through `normalize_santri` so callers see one list of
`SantriRecord` no matter how the parent document was written.
"""

from datetime import datetime, timezone

from pesantren import firestore_dao as dao
from pesantren.firestore_models import SantriRecord


def santri_entry(data, now, existing=None):
    """Stored form of a child record in the parent's `santri` map."""
    entry = dict(existing or {})
    entry.update({
        'name': data.get('name'),
        'nis': data.get('nis') or '',
        'tahunDaftar': data.get('tahunDaftar') or str(datetime.now(timezone.utc).year),
        'gender': data.get('gender') or '',
        'tempatLahir': data.get('tempatLahir') or '',
        'tanggalLahir': data.get('tanggalLahir') or '',
    })
    if existing is None:
        entry['createdAt'] = now
    else:
        entry['updatedAt'] = now
    return entry


def _santri_users_for(parent, users_by_id=None):
    """Santri user documents linked to the parent through `studentIds` or
    through their own `parentId`."""
    parent_id = parent.get('id')
    found = {}

    for student_id in parent.get('studentIds') or []:
        if users_by_id is not None:
            user = users_by_id.get(student_id)
        else:
            user = dao.get_user(student_id)
        if not user or user.get('role') != 'santri':
            continue
        if user.get('parentId') not in (None, parent_id):
            continue
        found[student_id] = user

    if users_by_id is not None:
        backrefs = [u for u in users_by_id.values()
                    if u.get('role') == 'santri' and u.get('parentId') == parent_id]
    else:
        backrefs = dao.get_santri_by_parent(parent_id) if parent_id else []
    for user in backrefs:
        found.setdefault(user['id'], user)

    return list(found.values())


def normalize_santri(parent, users_by_id=None):
    """Return the parent's children as a list of SantriRecord.

    `users_by_id` is an optional {uid: user dict} lookup used instead of
    reading santri users from the store one at a time.
    """
    parent_id = parent.get('id')
    records = {}

    for index, student in enumerate(parent.get('students') or []):
        if not isinstance(student, dict):
            continue
        record_id = student.get('id') or f'array-{parent_id or "unknown"}-{index}'
        records[record_id] = SantriRecord.from_dict(student, record_id, source='array')

    santri_map = parent.get('santri')
    if isinstance(santri_map, dict):
        for santri_id, student in santri_map.items():
            if isinstance(student, dict):
                records[santri_id] = SantriRecord.from_dict(student, santri_id, source='object')

    for user in _santri_users_for(parent, users_by_id):
        records.setdefault(user['id'], SantriRecord.from_dict(user, user['id'], source='user'))

    for record in records.values():
        record.parent_id = parent_id
        record.parent_name = parent.get('name', '')
        record.parent_email = parent.get('email', '')
        record.parent_phone = parent.get('phone', '') or ''

    return list(records.values())


def linked_student_ids(parent, users_by_id=None):
    """Set of student ids the parent may see reports for."""
    return {record.id for record in normalize_santri(parent, users_by_id)}


def santri_count(parent, users_by_id=None):
    return len(normalize_santri(parent, users_by_id))


def all_santri(users):
    """Normalised children of every parent in `users`, with parent details."""
    users_by_id = {u['id']: u for u in users}
    result = []
    for user in users:
        if user.get('role') == 'orangtua':
            result.extend(normalize_santri(user, users_by_id))
    return result


def find_santri_owner(santri_id, users):
    """Return (parent, entry) for the parent whose `santri` map holds the id."""
    for user in users:
        if user.get('role') != 'orangtua':
            continue
        santri_map = user.get('santri')
        if isinstance(santri_map, dict) and santri_id in santri_map:
            return user, santri_map[santri_id]
    return None, None


def parent_list(users):
    """Short listing of every parent account."""
    return [
        {
            'id': u['id'],
            'name': u.get('name', ''),
            'email': u.get('email', ''),
            'phone': u.get('phone', '') or '',
        }
        for u in users if u.get('role') == 'orangtua'
    ]
