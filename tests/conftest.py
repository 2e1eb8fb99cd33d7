from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from agrosanga.auth import AuthSession
from agrosanga.backends.local import LocalBackend
from app import create_app
from tests.factories import registration, registration_form


@pytest.fixture
def app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test-secret',
        'BACKEND': 'local',
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'agrosanga-test.db'}",
        'STORAGE_ROOT': str(tmp_path / 'storage'),
        'ANALYSIS_DELAY_SECONDS': 0,
        'OPENWEATHER_API_KEY': None,
    })
    yield app
    app.extensions['agrosanga_sessions'].dispose()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def storage_root(app):
    return Path(app.config['STORAGE_ROOT'])


@pytest.fixture
def connect(app):
    """Open a fresh local backend connection, as a new browser would."""
    return lambda: LocalBackend(app, app.config['STORAGE_ROOT'])


@pytest.fixture
def executor():
    pool = ThreadPoolExecutor(max_workers=1)
    yield pool
    pool.shutdown(wait=True)


@pytest.fixture
def auth(connect, executor):
    session = AuthSession(connect(), executor).restore()
    yield session
    session.close()


@pytest.fixture
def registered(auth):
    """A farmer who has registered and signed out again."""
    auth.sign_up(registration_form())
    auth.sign_out()
    return registration()
