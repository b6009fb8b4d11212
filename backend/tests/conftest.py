"""
Pytest fixtures for inventory backend tests.

Provides the test app (in-memory SQLite), a fresh database per test, one login
per role, and the test client.
"""

import pytest
from lucciole import create_app
from lucciole.extensions import db
from lucciole.services.auth_service import create_user
from lucciole.services.reporting_service import get_report_cache

PASSWORD = "secret1"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'BUSINESS_TIMEZONE': 'UTC',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Core DELETE bypasses the log's ORM guards
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        get_report_cache().clear()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def users(db_session):
    """One login per role-table entry, all with PASSWORD."""
    return {
        "admin": create_user("admin@lucciole.app", PASSWORD),
        "manager": create_user("manager@lucciole.app", PASSWORD),
        "cuoco": create_user("cuoco@lucciole.app", PASSWORD),
        "bar": create_user("bar@lucciole.app", PASSWORD),
    }


def get_auth_token(client, identifier: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'identifier': identifier,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(client, users):
    return auth_headers(get_auth_token(client, "admin"))


@pytest.fixture(scope='function')
def manager_headers(client, users):
    return auth_headers(get_auth_token(client, "manager"))


@pytest.fixture(scope='function')
def kitchen_headers(client, users):
    return auth_headers(get_auth_token(client, "cuoco"))


@pytest.fixture(scope='function')
def bar_headers(client, users):
    return auth_headers(get_auth_token(client, "bar"))
