import pytest

from tests.conftest import login


@pytest.fixture()
def family(db, make_user):
    make_user('parent1', 'orangtua', name='Orang Tua Satu', santri={
        'a1': {'name': 'Ahmad', 'tanggalLahir': '2012-05-01', 'tahunDaftar': '2024'},
    })
    make_user('parent2', 'orangtua', name='Orang Tua Dua', santri={
        'b1': {'name': 'Budi', 'tanggalLahir': '2013-06-01'},
    })
    return 'parent1', 'parent2'


def test_orangtua_sees_own_profile(client, family):
    login(client, 'parent1')
    data = client.get('/api/orangtua').get_json()
    assert data['user']['id'] == 'parent1'
    assert [s['name'] for s in data['santri']] == ['Ahmad']


def test_admin_sees_parent_list_with_counts(client, family, admin):
    login(client, admin)
    data = client.get('/api/orangtua').get_json()
    counts = {p['id']: p['santriCount'] for p in data['orangtuaList']}
    assert counts == {'parent1': 1, 'parent2': 1}


def test_create_orangtua(client, admin, db, fake_auth):
    login(client, admin)
    resp = client.post('/api/orangtua', json={
        'orangtuaData': {'name': 'Ibu Siti', 'email': 'siti@pesantren.id', 'password': 'rahasia1'},
        'santriList': [{'name': 'Zahra', 'tanggalLahir': '2014-01-01'}],
    })
    assert resp.status_code == 200
    orangtua = resp.get_json()['orangtua']
    stored = db.read(f"users/{orangtua['id']}")
    assert stored['role'] == 'orangtua'
    (entry,) = stored['santri'].values()
    assert entry['name'] == 'Zahra'
    assert entry['tahunDaftar']
    assert entry['createdAt']


def test_create_orangtua_duplicate_email(client, admin, family):
    login(client, admin)
    resp = client.post('/api/orangtua', json={
        'orangtuaData': {'name': 'Lagi', 'email': 'parent1@pesantren.id', 'password': 'rahasia1'},
    })
    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'Email already in use'


def test_create_orangtua_is_forbidden_for_parents(client, family):
    login(client, 'parent1')
    resp = client.post('/api/orangtua', json={'orangtuaData': {}})
    assert resp.status_code == 403
    assert resp.get_json()['error'] == 'Forbidden - Insufficient permissions'


def test_get_update_delete_parent(client, admin, ustad, family, db, fake_auth):
    login(client, ustad)
    data = client.get('/api/orangtua/parent1').get_json()['orangtua']
    assert [s['name'] for s in data['santriList']] == ['Ahmad']

    assert client.get(f'/api/orangtua/{admin}').status_code == 400
    assert client.get('/api/orangtua/missing').status_code == 404

    resp = client.put('/api/orangtua/parent1', json={
        'phone': '08123456789',
        'newSantriList': [{'name': 'Aisyah', 'tanggalLahir': '2015-01-01'}],
    })
    assert resp.status_code == 200
    stored = db.read('users/parent1')
    assert stored['phone'] == '08123456789'
    assert sorted(s['name'] for s in stored['santri'].values()) == ['Ahmad', 'Aisyah']

    assert client.delete('/api/orangtua/parent1').status_code == 200
    assert db.read('users/parent1') is None
    assert 'parent1' in fake_auth.deleted


def test_parent_manages_own_santri(client, family, db):
    login(client, 'parent1')
    resp = client.post('/api/orangtua/santri', json={'santriData': {'name': 'Fatimah', 'tanggalLahir': '2016-02-02'}})
    assert resp.status_code == 200
    santri_id = resp.get_json()['santriId']
    assert db.read('users/parent1')['santri'][santri_id]['name'] == 'Fatimah'

    resp = client.put(f'/api/orangtua/santri/{santri_id}', json={'santriData': {
        'name': 'Fatimah Az-Zahra', 'tanggalLahir': '2016-02-02',
    }})
    assert resp.status_code == 200
    assert db.read('users/parent1')['santri'][santri_id]['name'] == 'Fatimah Az-Zahra'

    assert client.delete(f'/api/orangtua/santri/{santri_id}').status_code == 200
    assert santri_id not in db.read('users/parent1')['santri']


def test_santri_requires_name_and_birth_date(client, family):
    login(client, 'parent1')
    resp = client.post('/api/orangtua/santri', json={'santriData': {'name': 'Tanpa Tanggal'}})
    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'Santri name and birth date are required'


def test_parent_cannot_touch_other_parents_santri(client, family, db):
    login(client, 'parent1')
    assert client.get('/api/orangtua/santri/b1').status_code == 404
    resp = client.put('/api/orangtua/santri/b1', json={'santriData': {'name': 'X', 'tanggalLahir': '2010-01-01'}})
    assert resp.status_code == 404
    assert client.delete('/api/orangtua/santri/b1').status_code == 404
    assert db.read('users/parent2')['santri']['b1']['name'] == 'Budi'


def test_santri_routes_are_for_parents_only(client, ustad):
    login(client, ustad)
    assert client.get('/api/orangtua/santri/a1').status_code == 401


def test_parent_reports_are_limited_to_linked_children(client, db, make_user):
    make_user('s1', 'santri', parentId='parent3')
    make_user('s2', 'santri')
    make_user('parent3', 'orangtua', studentIds=['s1'], students=[{'id': 'legacy1', 'name': 'Lama'}])
    db.put('quranReports/r1', {'studentId': 's1', 'testDate': '2025-01-01'})
    db.put('quranReports/r2', {'studentId': 's2', 'testDate': '2025-01-02'})
    db.put('quranReports/r3', {'studentId': 'legacy1', 'testDate': '2025-01-03'})

    login(client, 'parent3')
    data = client.get('/api/orangtua/reports?kind=quran').get_json()
    assert [r['id'] for r in data['reports']] == ['r3', 'r1']
