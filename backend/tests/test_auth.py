from datetime import datetime, timedelta, timezone

import jwt
from fastapi.security import HTTPAuthorizationCredentials

from qeema.auth import optional_principal
from qeema.models import Role

from conftest import auth, register


def test_register_returns_token_and_student_user(client):
    data = register(client, 'alice@example.com', 'Alice A')
    assert data['token']
    user = data['user']
    assert user['email'] == 'alice@example.com'
    assert user['role'] == 'STUDENT'
    assert user['student']['fullName'] == 'Alice A'


def test_register_duplicate_email_is_conflict(client):
    register(client, 'dup@example.com')
    r = client.post('/api/auth/register', json={'email': 'dup@example.com', 'password': 'Passw0rd', 'fullName': 'Again'})
    assert r.status_code == 409
    body = r.json()
    assert body['success'] is False
    assert body['error']['code'] == 'CONFLICT'


def test_register_duplicate_email_ignores_case(client):
    register(client, 'case@example.com')
    r = client.post('/api/auth/register', json={'email': 'CASE@example.com', 'password': 'Passw0rd', 'fullName': 'Again'})
    assert r.status_code == 409


def test_register_rejects_weak_password(client):
    r = client.post('/api/auth/register', json={'email': 'weak@example.com', 'password': 'password', 'fullName': 'Weak'})
    assert r.status_code == 422
    err = r.json()['error']
    assert err['code'] == 'VALIDATION_ERROR'
    assert 'body.password' in err['details']


def test_register_rejects_short_name_and_bad_email(client):
    r = client.post('/api/auth/register', json={'email': 'not-an-email', 'password': 'Passw0rd', 'fullName': 'A'})
    assert r.status_code == 422
    details = r.json()['error']['details']
    assert 'body.email' in details
    assert 'body.fullName' in details


def test_login_and_me(client):
    register(client, 'bob@example.com', 'Bob B')
    r = client.post('/api/auth/login', json={'email': 'bob@example.com', 'password': 'Passw0rd'})
    assert r.status_code == 200
    token = r.json()['data']['token']
    me = client.get('/api/auth/me', headers=auth(token))
    assert me.status_code == 200
    assert me.json()['data']['email'] == 'bob@example.com'
    assert me.json()['data']['student']['fullName'] == 'Bob B'


def test_login_wrong_password_and_unknown_email_look_the_same(client):
    register(client, 'carol@example.com')
    wrong = client.post('/api/auth/login', json={'email': 'carol@example.com', 'password': 'Wrong0ne'})
    unknown = client.post('/api/auth/login', json={'email': 'nobody@example.com', 'password': 'Passw0rd'})
    assert wrong.status_code == unknown.status_code == 401
    assert wrong.json()['error']['message'] == unknown.json()['error']['message'] == 'Invalid email or password'


def test_admin_login_returns_admin_role(client, admin_token):
    me = client.get('/api/auth/me', headers=auth(admin_token))
    assert me.json()['data']['role'] == 'ADMIN'
    assert me.json()['data']['student'] is None


def test_missing_token(client):
    r = client.get('/api/auth/me')
    assert r.status_code == 401
    assert r.json()['error'] == {'code': 'UNAUTHORIZED', 'message': 'No token provided'}


def test_garbage_token(client):
    r = client.get('/api/auth/me', headers=auth('not.a.jwt'))
    assert r.status_code == 401
    assert r.json()['error']['message'] == 'Invalid token'


def test_token_signed_with_other_secret_is_invalid(client, student):
    payload = jwt.decode(student['token'], options={'verify_signature': False})
    forged = jwt.encode(payload, 'some-other-secret', algorithm='HS256')
    r = client.get('/api/auth/me', headers=auth(forged))
    assert r.status_code == 401
    assert r.json()['error']['code'] == 'UNAUTHORIZED'


def test_expired_token(client, settings, student):
    past = datetime.now(timezone.utc) - timedelta(hours=1)
    token = jwt.encode(
        {'sub': student['user']['id'], 'email': 'student@example.com', 'role': 'STUDENT', 'exp': int(past.timestamp())},
        settings.JWT_SECRET,
        algorithm='HS256',
    )
    r = client.get('/api/auth/me', headers=auth(token))
    assert r.status_code == 401
    assert r.json()['error'] == {'code': 'TOKEN_EXPIRED', 'message': 'Token expired'}


def test_token_carries_identity_claims(settings, student):
    claims = jwt.decode(student['token'], settings.JWT_SECRET, algorithms=['HS256'])
    assert claims['sub'] == student['user']['id']
    assert claims['email'] == 'student@example.com'
    assert claims['role'] == 'STUDENT'
    assert claims['exp'] - claims['iat'] == settings.JWT_EXPIRE_HOURS * 3600


def test_admin_gate(client, admin_token, student):
    assert client.get('/api/dashboard/stats').status_code == 401
    forbidden = client.get('/api/dashboard/stats', headers=auth(student['token']))
    assert forbidden.status_code == 403
    assert forbidden.json()['error']['message'] == 'Access denied. Required role(s): ADMIN'
    assert client.get('/api/dashboard/stats', headers=auth(admin_token)).status_code == 200


def test_student_gate(client, admin_token):
    r = client.get('/api/favorites', headers=auth(admin_token))
    assert r.status_code == 403
    assert r.json()['error']['code'] == 'FORBIDDEN'


class _Request:
    """Just enough of a request for the auth dependencies."""
    def __init__(self, settings):
        self.app = type('App', (), {})()
        self.app.state = type('State', (), {'settings': settings})()


def test_optional_principal(settings, student):
    request = _Request(settings)
    assert optional_principal(request, None) is None
    bad = HTTPAuthorizationCredentials(scheme='Bearer', credentials='garbage')
    assert optional_principal(request, bad) is None
    good = HTTPAuthorizationCredentials(scheme='Bearer', credentials=student['token'])
    principal = optional_principal(request, good)
    assert principal.role is Role.STUDENT
    assert str(principal.user_id) == student['user']['id']
