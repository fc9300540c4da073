from conftest import auth, create_lesson


def test_alice_registers_favorites_and_rates(client, admin_token):
    lesson = create_lesson(client, admin_token, 'Poetry basics', 'Rhythm, rhyme and reading poems aloud.')

    r = client.post('/api/auth/register', json={'email': 'alice@example.com', 'password': 'Passw0rd', 'fullName': 'Alice A'})
    assert r.status_code == 201

    login = client.post('/api/auth/login', json={'email': 'alice@example.com', 'password': 'Passw0rd'})
    assert login.status_code == 200
    assert login.json()['data']['user']['role'] == 'STUDENT'
    headers = auth(login.json()['data']['token'])

    listing = client.get('/api/lessons', headers=headers).json()
    assert listing['success'] is True
    assert listing['meta']['total'] == 1
    [item] = listing['data']
    assert item['id'] == lesson['id']
    assert item['isFavorited'] is False

    assert client.post(f"/api/favorites/{lesson['id']}", headers=headers).status_code == 201
    favorites = client.get('/api/favorites', headers=headers).json()['data']
    assert [f['lesson']['id'] for f in favorites] == [lesson['id']]

    rated = client.post(f"/api/lessons/{lesson['id']}/rate", json={'value': 5}, headers=headers)
    assert rated.status_code == 200
    assert rated.json()['data']['averageRating'] == 5.0

    detail = client.get(f"/api/lessons/{lesson['id']}", headers=headers).json()['data']
    assert detail['rating'] == 5.0
    assert detail['totalRatings'] == 1
    assert detail['isFavorited'] is True
