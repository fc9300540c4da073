import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from qeema import models, repositories
from qeema.auth import Principal
from qeema.config import Settings
from qeema.database import build_engine, create_db_and_tables
from qeema.main import create_app
from qeema.seed import seed_admin

STUDENT_PASSWORD = 'Passw0rd'


def make_settings(**overrides):
    """Settings for an isolated in-memory database; overrides win."""
    values = dict(
        ENV='test',
        DATABASE_URL='sqlite://',
        AUTH_RATE_LIMIT_PER_MIN=0,
        SEED_ON_STARTUP=False,
        CLOUDINARY_CLOUD_NAME='',
        CLOUDINARY_API_KEY='',
        CLOUDINARY_API_SECRET='',
        LOG_LEVEL='WARNING',
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    # entering the client runs the lifespan, which builds the engine
    with TestClient(app) as c:
        yield c


@pytest.fixture
def engine():
    """A bare engine for service-level tests that skip HTTP."""
    eng = build_engine('sqlite://')
    create_db_and_tables(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as s:
        yield s


def auth(token):
    return {'Authorization': f'Bearer {token}'}


def register(client, email, full_name='Test Student', password=STUDENT_PASSWORD):
    """Register a student and return the `data` part of the response."""
    r = client.post('/api/auth/register', json={'email': email, 'password': password, 'fullName': full_name})
    assert r.status_code == 201, r.text
    return r.json()['data']


@pytest.fixture
def admin_token(client, app, settings):
    with Session(app.state.engine) as s:
        seed_admin(s, settings.ADMIN_EMAIL, settings.ADMIN_PASSWORD)
    r = client.post('/api/auth/login', json={'email': settings.ADMIN_EMAIL, 'password': settings.ADMIN_PASSWORD})
    assert r.status_code == 200, r.text
    return r.json()['data']['token']


@pytest.fixture
def student(client):
    """A registered student: `{token, user}`."""
    return register(client, 'student@example.com', 'Sam Student')


def create_lesson(client, admin_token, title='Fractions', description='Adding and comparing fractions.'):
    r = client.post(
        '/api/lessons',
        json={'title': title, 'description': description},
        headers=auth(admin_token),
    )
    assert r.status_code == 201, r.text
    return r.json()['data']


def make_student(session, email):
    """Insert a STUDENT user with a profile and return its principal."""
    user = models.User(email=email, password_hash='x', role=models.Role.STUDENT)
    student = models.Student(user_id=user.id, full_name=email.split('@')[0].title())
    repositories.UserRepository(session).create_with_student(user, student)
    return Principal(user_id=user.id, email=email, role=models.Role.STUDENT)


def make_lesson(session, title='Geometry'):
    return repositories.LessonRepository(session).create(
        models.Lesson(title=title, description='Angles, shapes and areas.')
    )
