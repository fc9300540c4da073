from conftest import auth


def test_school_missing_until_first_update(client, admin_token):
    r = client.get('/api/school', headers=auth(admin_token))
    assert r.status_code == 404
    assert r.json()['error']['message'] == 'School profile not found'

    r = client.put('/api/school', json={'name': 'Hill Valley High'}, headers=auth(admin_token))
    assert r.status_code == 200
    assert r.json()['data']['name'] == 'Hill Valley High'
    assert client.get('/api/school', headers=auth(admin_token)).json()['data']['name'] == 'Hill Valley High'


def test_update_without_name_uses_default(client, admin_token):
    r = client.put('/api/school', json={'phoneNumber': '555-0100'}, headers=auth(admin_token))
    assert r.json()['data']['name'] == 'My School'
    assert r.json()['data']['phoneNumber'] == '555-0100'


def test_blank_logo_clears_and_name_is_kept(client, admin_token):
    headers = auth(admin_token)
    client.put('/api/school', json={'name': 'Qeema', 'logoUrl': 'https://cdn.example.com/logo.png'}, headers=headers)
    r = client.put('/api/school', json={'logoUrl': ''}, headers=headers)
    assert r.json()['data']['logoUrl'] is None
    assert r.json()['data']['name'] == 'Qeema'


def test_school_validation(client, admin_token):
    r = client.put('/api/school', json={'logoUrl': 'not a url', 'phoneNumber': 'abc'}, headers=auth(admin_token))
    assert r.status_code == 422
    details = r.json()['error']['details']
    assert 'body.logoUrl' in details
    assert 'body.phoneNumber' in details


def test_school_is_admin_only(client, student):
    assert client.get('/api/school', headers=auth(student['token'])).status_code == 403
    assert client.put('/api/school', json={'name': 'Mine'}, headers=auth(student['token'])).status_code == 403
