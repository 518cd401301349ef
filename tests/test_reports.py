import pytest

from pesantren import firestore_dao as dao
from tests.conftest import login


@pytest.fixture()
def enrolled(db, make_user, ustad):
    make_user('s1', 'santri', name='Santri Satu')
    make_user('s2', 'santri', name='Santri Dua')
    db.put('classes/c1', {
        'name': 'Kelas 1 - Tahfidz',
        'ustadId': ustad,
        'studentIds': {'s1': {'enrolledAt': '2025-01-01', 'status': 'active'}},
    })
    return 's1'


def _quran(**overrides):
    body = {
        'studentId': 's1',
        'surah': 'Al-Baqarah',
        'ayatStart': 1,
        'ayatEnd': 10,
        'fluencyLevel': 'good',
        'testDate': '2025-02-01',
    }
    body.update(overrides)
    return body


def _behavior(**overrides):
    body = {
        'studentId': 's1',
        'category': 'discipline',
        'priority': 'low',
        'title': 'Terlambat',
        'description': 'Terlambat datang ke kelas pagi.',
        'incidentDate': '2025-02-01',
    }
    body.update(overrides)
    return body


def test_orangtua_cannot_list_reports(client, orangtua):
    login(client, orangtua)
    assert client.get('/api/reports/quran').status_code == 401


def test_unknown_kind_is_404(client, admin):
    login(client, admin)
    assert client.get('/api/reports/fiqh').status_code == 404


def test_ustad_creates_report_for_enrolled_student(client, ustad, enrolled, db):
    login(client, ustad)
    resp = client.post('/api/reports/quran', json=_quran())
    assert resp.status_code == 200
    report = db.read(f"quranReports/{resp.get_json()['reportId']}")
    assert report['ustadId'] == ustad
    assert report['studentName'] == 'Santri Satu'


def test_ustad_needs_class_access(client, ustad, enrolled):
    login(client, ustad)
    for kind, body in (('quran', _quran(studentId='s2')), ('behavior', _behavior(studentId='s2'))):
        resp = client.post(f'/api/reports/{kind}', json=body)
        assert resp.status_code == 403


def test_student_must_be_santri(client, admin, orangtua):
    login(client, admin)
    resp = client.post('/api/reports/quran', json=_quran(studentId=orangtua))
    assert resp.status_code == 400


def test_high_priority_behavior_notifies_admins(client, ustad, enrolled, db):
    login(client, ustad)
    client.post('/api/reports/behavior', json=_behavior(priority='low'))
    resp = client.post('/api/reports/behavior', json=_behavior(priority='critical'))
    assert resp.status_code == 200

    notifications = list(db.all('notifications').values())
    assert len(notifications) == 1
    assert notifications[0]['type'] == 'behavior_report'
    assert notifications[0]['targetRole'] == 'admin'
    assert notifications[0]['reportId'] == resp.get_json()['reportId']


def test_pagination(client, admin, db):
    for i in range(15):
        db.put(f'academicReports/r{i:02d}', {
            'studentId': 's1',
            'subject': 'Fiqih',
            'createdAt': f'2025-01-{i + 1:02d}T00:00:00+00:00',
        })
    login(client, admin)
    data = client.get('/api/reports/academic?page=2&limit=10').get_json()
    assert len(data['reports']) == 5
    assert data['total'] == 15
    assert data['totalPages'] == 2
    # newest first
    assert data['reports'][0]['id'] == 'r04'


def test_quran_filters(client, admin, db):
    db.put('quranReports/a', {'surah': 'Al-Baqarah', 'testDate': '2025-01-10', 'fluencyLevel': 'good'})
    db.put('quranReports/b', {'surah': 'Ali Imran', 'testDate': '2025-02-10', 'fluencyLevel': 'fair'})
    db.put('quranReports/c', {'surah': 'An-Nisa', 'testDate': '2025-03-10', 'fluencyLevel': 'good'})
    login(client, admin)

    ids = lambda url: [r['id'] for r in client.get(url).get_json()['reports']]
    assert ids('/api/reports/quran?surah=baqarah') == ['a']
    assert ids('/api/reports/quran?fluencyLevel=good') == ['c', 'a']
    assert ids('/api/reports/quran?dateFrom=2025-02-01&dateTo=2025-03-01') == ['b']


def test_ustad_sees_only_own_reports(client, ustad, db):
    db.put('behaviorReports/mine', {'ustadId': ustad, 'createdAt': '2025-01-01'})
    db.put('behaviorReports/theirs', {'ustadId': 'ustad2', 'createdAt': '2025-01-02'})
    login(client, ustad)
    reports = client.get('/api/reports/behavior').get_json()['reports']
    assert [r['id'] for r in reports] == ['mine']


def test_update_writes_audit_entry_first(client, ustad, enrolled, db):
    login(client, ustad)
    report_id = client.post('/api/reports/quran', json=_quran()).get_json()['reportId']
    db.writes.clear()

    resp = client.put(f'/api/reports/quran?id={report_id}', json={'fluencyLevel': 'excellent'})
    assert resp.status_code == 200

    ops = [(op, path) for op, path in db.writes if path.startswith(f'quranReports/{report_id}')]
    assert ops[0][0] == 'set'
    assert '/auditTrail/' in ops[0][1]
    assert ops[1] == ('update', f'quranReports/{report_id}')

    audit = dao.get_audit_trail('quranReports', report_id)
    assert audit[0]['previousData']['fluencyLevel'] == 'good'
    assert db.read(f'quranReports/{report_id}')['fluencyLevel'] == 'excellent'


def test_ustad_cannot_edit_other_reports(client, ustad, db):
    db.put('quranReports/x', {'ustadId': 'ustad2', 'fluencyLevel': 'good'})
    login(client, ustad)
    assert client.put('/api/reports/quran?id=x', json={'notes': 'hi'}).status_code == 403
    assert client.delete('/api/reports/quran?id=x').status_code == 403


def test_delete_archives_first(client, admin, db):
    db.put('behaviorReports/b1', {'ustadId': 'ustad1', 'title': 'Ribut'})
    login(client, admin)
    db.writes.clear()

    resp = client.delete('/api/reports/behavior?id=b1')
    assert resp.status_code == 200
    assert db.writes[0][1].startswith('deletedReports/behavior/items/')
    assert db.writes[1] == ('delete', 'behaviorReports/b1')

    archived = dao.get_deleted_reports('behavior')
    assert archived[0]['originalReportId'] == 'b1'
    assert archived[0]['reportData']['title'] == 'Ribut'
    assert archived[0]['deletedBy'] == admin


def test_missing_id(client, admin):
    login(client, admin)
    assert client.put('/api/reports/quran', json={}).status_code == 400
    assert client.delete('/api/reports/quran').status_code == 400


def test_export_formats(client, admin, db):
    db.put('quranReports/a', {'studentName': 'Santri Satu', 'surah': 'Al-Fatihah', 'testDate': '2025-01-10'})
    login(client, admin)

    csv_resp = client.get('/api/reports/quran/export?format=csv')
    assert csv_resp.status_code == 200
    assert csv_resp.mimetype == 'text/csv'
    assert b'Al-Fatihah' in csv_resp.data
    assert 'laporan_quran.csv' in csv_resp.headers['Content-Disposition']

    xlsx_resp = client.get('/api/reports/quran/export?format=xlsx')
    assert xlsx_resp.data[:2] == b'PK'

    pdf_resp = client.get('/api/reports/quran/export?format=pdf')
    assert pdf_resp.data[:4] == b'%PDF'

    assert client.get('/api/reports/quran/export?format=doc').status_code == 400
