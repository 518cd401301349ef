import pytest

from pesantren.firestore_models import Schedule

from tests.conftest import login


def _class_body(**overrides):
    body = {
        'name': 'Kelas 1 - Fiqih',
        'academicYear': '2025/2026',
        'ustadId': 'ustad1',
        'schedule': {'days': ['senin', 'rabu'], 'startTime': '07:00', 'endTime': '08:30'},
        'studentIds': ['s1', 's2'],
    }
    body.update(overrides)
    return body


@pytest.fixture()
def students(make_user):
    return [make_user('s1', 'santri'), make_user('s2', 'santri')]


def test_admin_creates_class(client, admin, ustad, students, db):
    login(client, admin)
    resp = client.post('/api/classes', json=_class_body())
    assert resp.status_code == 200
    data = resp.get_json()
    assert data['message'] == 'Kelas berhasil dibuat'

    stored = db.read(f"classes/{data['classId']}")
    assert stored['ustadName'] == 'Ustad Ahmad'
    assert set(stored['studentIds']) == {'s1', 's2'}
    assert stored['studentIds']['s1']['status'] == 'active'
    assert stored['studentIds']['s1']['enrolledAt']


def test_ustad_cannot_create_class(client, ustad, students):
    login(client, ustad)
    assert client.post('/api/classes', json=_class_body()).status_code == 401


def test_validation_errors(client, admin, ustad):
    login(client, admin)
    resp = client.post('/api/classes', json=_class_body(name='AB', studentIds=[]))
    assert resp.status_code == 400
    fields = {tuple(d['loc']) for d in resp.get_json()['details']}
    assert ('name',) in fields
    assert ('studentIds',) in fields


def test_class_owner_must_be_ustad(client, admin, orangtua, students):
    login(client, admin)
    resp = client.post('/api/classes', json=_class_body(ustadId=orangtua))
    assert resp.status_code == 400


def test_schedule_conflict_is_409(client, admin, ustad, students):
    login(client, admin)
    client.post('/api/classes', json=_class_body())
    resp = client.post('/api/classes', json=_class_body(
        name='Kelas 2 - Nahwu',
        schedule={'days': ['rabu'], 'startTime': '08:00', 'endTime': '09:00'},
    ))
    assert resp.status_code == 409
    assert resp.get_json()['conflict']['className'] == 'Kelas 1 - Fiqih'


def test_back_to_back_classes_do_not_conflict(client, admin, ustad, students):
    login(client, admin)
    client.post('/api/classes', json=_class_body())
    resp = client.post('/api/classes', json=_class_body(
        name='Kelas 2 - Nahwu',
        schedule={'days': ['senin'], 'startTime': '08:30', 'endTime': '10:00'},
    ))
    assert resp.status_code == 200


def test_duplicate_class_is_409(client, admin, ustad, students):
    login(client, admin)
    client.post('/api/classes', json=_class_body())
    resp = client.post('/api/classes', json=_class_body(
        schedule={'days': ['jumat'], 'startTime': '07:00', 'endTime': '08:00'},
    ))
    assert resp.status_code == 409


def test_update_keeps_enrollment_dates(client, admin, ustad, students, make_user, db):
    make_user('s3', 'santri')
    login(client, admin)
    class_id = client.post('/api/classes', json=_class_body()).get_json()['classId']
    enrolled = db.read(f'classes/{class_id}')['studentIds']['s1']['enrolledAt']

    resp = client.put(f'/api/classes?id={class_id}', json={'studentIds': ['s1', 's3']})
    assert resp.status_code == 200
    stored = db.read(f'classes/{class_id}')['studentIds']
    assert set(stored) == {'s1', 's3'}
    assert stored['s1']['enrolledAt'] == enrolled


def test_ustad_lists_only_own_classes(client, admin, ustad, students, make_user, db):
    make_user('ustad2', 'ustad')
    db.put('classes/other', {'name': 'Lain', 'ustadId': 'ustad2', 'studentIds': {}})
    login(client, admin)
    client.post('/api/classes', json=_class_body())

    login(client, ustad)
    classes = client.get('/api/classes').get_json()['classes']
    assert [c['ustadId'] for c in classes] == [ustad]
    assert classes[0]['studentCount'] == 2


def test_delete_class(client, admin, ustad, students, db):
    login(client, admin)
    class_id = client.post('/api/classes', json=_class_body()).get_json()['classId']
    assert client.delete(f'/api/classes?id={class_id}').status_code == 200
    assert db.read(f'classes/{class_id}') is None
    assert client.delete(f'/api/classes?id={class_id}').status_code == 404


def test_subjects_merge_sources(client, admin, ustad, db):
    db.put('classes/c1', {
        'name': 'Kelas 1 - Fiqih',
        'ustadId': ustad,
        'subjects': ['Aqidah'],
        'studentIds': {},
    })
    login(client, ustad)
    subjects = client.get('/api/classes/c1/subjects').get_json()['subjects']
    assert [s['name'] for s in subjects] == ['Aqidah', 'Fiqih', 'Tahfidz', 'Tajwid']


def test_schedule_overlap_rules():
    base = Schedule(['senin'], '07:00', '08:00')
    assert base.overlaps(Schedule(['senin'], '07:30', '09:00'))
    assert not base.overlaps(Schedule(['selasa'], '07:30', '09:00'))
    assert not base.overlaps(Schedule(['senin'], '08:00', '09:00'))


def test_unpadded_times_are_normalised_and_still_conflict(client, admin, ustad, students, db):
    login(client, admin)
    client.post('/api/classes', json=_class_body())
    resp = client.post('/api/classes', json=_class_body(
        name='Kelas 2 - Nahwu',
        schedule={'days': ['senin'], 'startTime': '8:00', 'endTime': '9:30'},
    ))
    assert resp.status_code == 409

    resp = client.post('/api/classes', json=_class_body(
        name='Kelas 3 - Sharaf',
        schedule={'days': ['kamis'], 'startTime': '9:00', 'endTime': '11:00'},
    ))
    assert resp.status_code == 200
    stored = db.read(f"classes/{resp.get_json()['classId']}")['schedule']
    assert (stored['startTime'], stored['endTime']) == ('09:00', '11:00')


@pytest.mark.parametrize('overrides', [
    {'schedule': {'days': ['senin'], 'startTime': '12:00', 'endTime': '08:00'}},
    {'schedule': {'days': ['senin'], 'startTime': '08:00', 'endTime': '08:15'}},
    {'schedule': {'days': ['senin'], 'startTime': '07:00', 'endTime': '13:30'}},
    {'schedule': {'days': ['senin'], 'startTime': '25:00', 'endTime': '26:00'}},
    {'schedule': {'days': ['senin', 'selasa', 'rabu', 'kamis', 'jumat', 'sabtu', 'ahad'],
                  'startTime': '07:00', 'endTime': '08:00'}},
    {'academicYear': '2025'},
    {'name': 'Kelas #1'},
    {'studentIds': [f's{i}' for i in range(51)]},
])
def test_class_rules(client, admin, ustad, students, overrides):
    login(client, admin)
    resp = client.post('/api/classes', json=_class_body(**overrides))
    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'Validasi gagal'


def test_update_rejects_inverted_schedule(client, admin, ustad, students, db):
    login(client, admin)
    class_id = client.post('/api/classes', json=_class_body()).get_json()['classId']
    resp = client.put(f'/api/classes?id={class_id}', json={
        'schedule': {'days': ['senin'], 'startTime': '10:00', 'endTime': '09:00'},
    })
    assert resp.status_code == 400
    assert db.read(f'classes/{class_id}')['schedule']['startTime'] == '07:00'


def test_overlap_reads_legacy_unpadded_times():
    stored = Schedule(days=['senin'], start_time='9:00', end_time='10:30')
    assert stored.overlaps(Schedule(days=['senin'], start_time='10:00', end_time='11:00'))
    assert not stored.overlaps(Schedule(days=['senin'], start_time='10:30', end_time='11:00'))
    assert not stored.overlaps(Schedule(days=['senin'], start_time='', end_time='11:00'))
