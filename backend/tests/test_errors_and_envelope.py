from fastapi.testclient import TestClient
from sqlalchemy.exc import IntegrityError

from qeema.main import create_app
from qeema.utils.rate_limit import InMemoryRateLimiter

from conftest import make_settings, register


def test_unknown_route(client):
    r = client.get('/api/nope')
    assert r.status_code == 404
    assert r.json() == {
        'success': False,
        'error': {'code': 'ROUTE_NOT_FOUND', 'message': 'Route GET /api/nope not found'},
    }


def test_wrong_method(client):
    r = client.get('/api/auth/login')
    assert r.status_code == 405
    assert r.json()['error']['code'] == 'METHOD_NOT_ALLOWED'


def test_health_and_root(client):
    health = client.get('/api/health')
    assert health.status_code == 200
    assert health.json()['data']['status'] == 'ok'
    root = client.get('/')
    assert root.json()['success'] is True


def test_request_id_is_echoed(client):
    r = client.get('/api/health', headers={'X-Request-ID': 'abc123'})
    assert r.headers['X-Request-ID'] == 'abc123'
    assert client.get('/api/health').headers['X-Request-ID']


def _app_with_failing_routes(**overrides):
    app = create_app(make_settings(**overrides))

    def boom():
        raise RuntimeError('boom')

    def duplicate():
        raise IntegrityError('INSERT INTO favorite', {}, Exception('UNIQUE constraint failed'))

    app.add_api_route('/api/boom', boom)
    app.add_api_route('/api/duplicate', duplicate)
    return app


def test_unexpected_error_shows_message_in_development():
    with TestClient(_app_with_failing_routes(), raise_server_exceptions=False) as c:
        r = c.get('/api/boom')
    assert r.status_code == 500
    assert r.json()['error'] == {'code': 'INTERNAL_ERROR', 'message': 'boom'}


def test_unexpected_error_is_redacted_outside_development():
    app = _app_with_failing_routes(ENV='production', JWT_SECRET='a-real-secret-value')
    with TestClient(app, raise_server_exceptions=False) as c:
        r = c.get('/api/boom')
    assert r.status_code == 500
    assert r.json()['error']['message'] == 'Internal server error'


def test_integrity_error_becomes_conflict():
    with TestClient(_app_with_failing_routes()) as c:
        r = c.get('/api/duplicate')
    assert r.status_code == 409
    assert r.json()['error'] == {'code': 'CONFLICT', 'message': 'Resource already exists'}


def test_auth_endpoints_are_rate_limited():
    with TestClient(create_app(make_settings(AUTH_RATE_LIMIT_PER_MIN=2))) as c:
        register(c, 'limited@example.com')
        ok = c.post('/api/auth/login', json={'email': 'limited@example.com', 'password': 'Passw0rd'})
        assert ok.status_code == 200
        ok = c.post('/api/auth/login', json={'email': 'limited@example.com', 'password': 'Passw0rd'})
        assert ok.status_code == 200
        r = c.post('/api/auth/login', json={'email': 'limited@example.com', 'password': 'Passw0rd'})
    assert r.status_code == 429
    assert r.json()['error']['code'] == 'TOO_MANY_REQUESTS'
    assert int(r.headers['Retry-After']) >= 1


def test_rate_limiter_window():
    limiter = InMemoryRateLimiter(2, window_seconds=60)
    assert limiter.allow('k') == (True, 0)
    assert limiter.allow('k') == (True, 0)
    allowed, retry_after = limiter.allow('k')
    assert not allowed and retry_after >= 1
    # other keys have their own budget
    assert limiter.allow('other')[0]
    limiter.reset()
    assert limiter.allow('k')[0]


def test_rate_limiter_disabled_with_zero():
    limiter = InMemoryRateLimiter(0)
    assert all(limiter.allow('k')[0] for _ in range(100))


class _Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_rate_limiter_forgets_idle_clients():
    clock = _Clock()
    limiter = InMemoryRateLimiter(5, window_seconds=60, clock=clock)
    limiter.allow('a')
    limiter.allow('b')
    clock.now = 30
    limiter.allow('a')
    assert set(limiter._hits) == {'a', 'b'}

    # b's only hit is now outside the window; a hit at 30 is not
    clock.now = 61
    limiter.allow('c')
    assert set(limiter._hits) == {'a', 'c'}

    clock.now = 200
    limiter.allow('c')
    assert set(limiter._hits) == {'c'}
    assert len(limiter._hits['c']) == 1
