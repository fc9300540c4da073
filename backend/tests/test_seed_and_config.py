import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from qeema import repositories
from qeema.config import Settings
from qeema.main import create_app
from qeema.seed import SAMPLE_LESSONS, SCHOOL_NAME, run_seed

from conftest import auth, make_settings


def test_seed_is_idempotent(engine):
    settings = make_settings()
    first = run_seed(engine, settings)
    second = run_seed(engine, settings)
    assert first['lessons_created'] == len(SAMPLE_LESSONS)
    assert second['lessons_created'] == 0
    assert first['school'] == second['school'] == SCHOOL_NAME
    with Session(engine) as s:
        assert repositories.LessonRepository(s).count() == len(SAMPLE_LESSONS)
        admin = repositories.UserRepository(s).get_by_email(settings.ADMIN_EMAIL)
        assert admin.role.value == 'ADMIN'
        assert admin.student is None


def test_seed_can_skip_lessons(engine):
    result = run_seed(engine, make_settings(), with_lessons=False)
    assert result['lessons_created'] == 0


def test_seed_on_startup_allows_admin_login():
    settings = make_settings(SEED_ON_STARTUP=True, ADMIN_EMAIL='boss@example.com', ADMIN_PASSWORD='Sup3rSecret')
    with TestClient(create_app(settings)) as c:
        r = c.post('/api/auth/login', json={'email': 'boss@example.com', 'password': 'Sup3rSecret'})
        assert r.status_code == 200
        token = r.json()['data']['token']
        assert c.get('/api/school', headers=auth(token)).json()['data']['name'] == SCHOOL_NAME
        assert c.get('/api/dashboard/stats', headers=auth(token)).json()['data']['totalLessons'] == len(SAMPLE_LESSONS)


def test_settings_overrides_and_env(monkeypatch):
    monkeypatch.setenv('PAGINATION_DEFAULT_LIMIT', '20')
    monkeypatch.setenv('CORS_ORIGINS', 'https://a.example, https://b.example')
    s = Settings(ENV='test')
    assert s.PAGINATION_DEFAULT_LIMIT == 20
    assert s.CORS_ORIGINS == ['https://a.example', 'https://b.example']
    with pytest.raises(AttributeError):
        Settings(NOT_A_SETTING=1)


def test_default_secret_rejected_outside_development(monkeypatch):
    monkeypatch.delenv('JWT_SECRET', raising=False)
    with pytest.raises(RuntimeError):
        Settings(ENV='production')
    assert Settings(ENV='production', ALLOW_INSECURE_JWT=True).ENV == 'production'


def test_integer_settings_are_checked(monkeypatch):
    monkeypatch.setenv('JWT_EXPIRE_HOURS', 'soon')
    with pytest.raises(RuntimeError):
        Settings()
