"""
Pytest fixtures for storefront backend tests.

Provides test database setup, a clean document store per test, and a test client.
"""

import pytest
from storefront import create_app
from storefront.extensions import db
from storefront.services.document_store import document_store
from storefront.services import identity_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'DOCUMENT_STORE_RETRY_BACKOFF': 0,
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
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def store(db_session):
    """The document store over an empty database."""
    return document_store


@pytest.fixture(scope='function')
def customer_id(store):
    """A freshly created customer (cu000001)."""
    return identity_service.create_user({
        "email": "ada@example.com",
        "firstName": "Ada",
        "lastName": "Lovelace",
        "primaryPhone": "555-0100",
    })

