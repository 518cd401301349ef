import pytest

from tests.conftest import login


@pytest.fixture()
def families(make_user):
    make_user('parent1', 'orangtua', name='Orang Tua Satu', phone='0811', santri={
        'a1': {'name': 'Ahmad', 'gender': 'L', 'tanggalLahir': '2012-05-01', 'tahunDaftar': '2024'},
    })
    make_user('parent2', 'orangtua', name='Orang Tua Dua', students=[
        {'name': 'Budi', 'jenisKelamin': 'L'},
    ])


def _enhanced_body(**overrides):
    body = {
        'name': 'Khadijah',
        'nis': '2025001',
        'gender': 'P',
        'tempatLahir': 'Bogor',
        'tanggalLahir': '2014-03-03',
        'tahunDaftar': '2025',
        'orangTuaId': 'parent1',
    }
    body.update(overrides)
    return body


def test_student_list_filters_and_pagination(client, admin, make_user):
    for i in range(30):
        make_user(f's{i:02d}', 'santri', name=f'Santri {i:02d}',
                  entryYear='2024' if i % 2 else '2025',
                  status='graduated' if i == 0 else 'active')
    login(client, admin)

    data = client.get('/api/santri').get_json()
    assert data['total'] == 30
    assert len(data['students']) == 25
    assert data['pagination']['hasNext'] is True
    assert data['pagination']['hasPrev'] is False
    assert data['filters']['entryYears'] == ['2024', '2025']
    assert data['filters']['availableStatuses'] == ['active', 'inactive', 'graduated']

    assert client.get('/api/santri?entryYear=2024').get_json()['total'] == 15
    assert client.get('/api/santri?status=graduated').get_json()['total'] == 1
    assert client.get('/api/santri?search=santri 1').get_json()['total'] == 10


def test_student_list_is_admin_only(client, ustad):
    login(client, ustad)
    assert client.get('/api/santri').status_code == 401


def test_enhanced_list_normalises_link_formats(client, ustad, families):
    login(client, ustad)
    data = client.get('/api/santri/enhanced').get_json()
    by_name = {s['name']: s for s in data['santriList']}
    assert by_name['Ahmad']['dataSource'] == 'object'
    assert by_name['Ahmad']['orangTuaPhone'] == '0811'
    assert by_name['Budi']['dataSource'] == 'array'
    assert by_name['Budi']['id'] == 'array-parent2-0'
    assert by_name['Budi']['jenisKelamin'] == 'L'
    assert {p['id'] for p in data['parents']} == {'parent1', 'parent2'}


def test_enhanced_list_for_orangtua_is_own_only(client, families):
    login(client, 'parent1')
    names = [s['name'] for s in client.get('/api/santri/enhanced').get_json()['santriList']]
    assert names == ['Ahmad']


def test_enhanced_create(client, admin, families, db):
    login(client, admin)
    resp = client.post('/api/santri/enhanced', json=_enhanced_body())
    assert resp.status_code == 200
    santri_id = resp.get_json()['santriId']
    stored = db.read('users/parent1')['santri']
    assert stored[santri_id]['name'] == 'Khadijah'
    assert 'a1' in stored


def test_enhanced_create_validation(client, admin, families):
    login(client, admin)
    resp = client.post('/api/santri/enhanced', json=_enhanced_body(gender='X', nis=''))
    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'Validasi gagal'


def test_enhanced_create_requires_orangtua_parent(client, admin, ustad, families):
    login(client, admin)
    assert client.post('/api/santri/enhanced', json=_enhanced_body(orangTuaId=ustad)).status_code == 400
    assert client.post('/api/santri/enhanced', json=_enhanced_body(orangTuaId='nobody')).status_code == 404


def test_orangtua_creates_only_for_self(client, families):
    login(client, 'parent2')
    assert client.post('/api/santri/enhanced', json=_enhanced_body()).status_code == 403


def test_enhanced_update_and_delete(client, admin, families, db):
    login(client, admin)
    resp = client.put('/api/santri/enhanced?id=a1&orangTuaId=parent1', json={'nis': '999'})
    assert resp.status_code == 200
    assert db.read('users/parent1')['santri']['a1']['nis'] == '999'
    assert db.read('users/parent1')['santri']['a1']['name'] == 'Ahmad'

    assert client.put('/api/santri/enhanced?id=a1', json={}).status_code == 400
    assert client.delete('/api/santri/enhanced?id=zz&orangTuaId=parent1').status_code == 404
    assert client.delete('/api/santri/enhanced?id=a1&orangTuaId=parent1').status_code == 200
    assert db.read('users/parent1')['santri'] == {}


def test_santri_by_id(client, ustad, families, db):
    login(client, ustad)
    santri = client.get('/api/santri/a1').get_json()['santri']
    assert santri['name'] == 'Ahmad'
    assert santri['orangtua']['id'] == 'parent1'
    assert client.get('/api/santri/zz').status_code == 404

    resp = client.put('/api/santri/a1', json={'santriData': {'name': 'Ahmad Fauzi', 'tanggalLahir': '2012-05-01'}})
    assert resp.status_code == 200
    assert db.read('users/parent1')['santri']['a1']['name'] == 'Ahmad Fauzi'

    assert client.delete('/api/santri/a1').status_code == 200
    assert 'a1' not in db.read('users/parent1')['santri']


def test_santri_by_id_is_closed_to_parents(client, families):
    login(client, 'parent1')
    assert client.get('/api/santri/a1').status_code == 401
