"""
Pytest fixtures for back-office tests.

Provides the app on an in-memory database, a per-test table wipe, seeded users
with auth headers, and a controllable fake dispatcher.
"""

from datetime import date

import pytest

from backoffice import create_app
from backoffice.delivery import DeliveryError, Dispatcher, set_dispatcher
from backoffice.extensions import db
from backoffice.models import Company, UserRole
from backoffice.services import consumption_service
from backoffice.services.auth_service import create_user
from backoffice.services.session_service import create_session

PASSWORD = "Password123!"


class FakeDispatcher(Dispatcher):
    """
    Records every document. Fails while `failures` is non-empty, popping one
    message per attempt, or always when `always_fail` is set.
    """
    name = "fake"

    def __init__(self):
        self.delivered = []
        self.failures = []
        self.always_fail = None

    def fail_next(self, *messages):
        self.failures.extend(messages or ["Connection refused"])

    def deliver(self, document):
        if self.always_fail:
            raise DeliveryError(self.always_fail)
        if self.failures:
            raise DeliveryError(self.failures.pop(0))
        self.delivered.append(document)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'BCRYPT_ROUNDS': 4,
        'DELIVERY_BACKEND': 'log',
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
    meta = db.metadata
    for table in reversed(meta.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    yield db.session

    db.session.rollback()


@pytest.fixture(scope='function', autouse=True)
def dispatcher(app):
    fake = FakeDispatcher()
    set_dispatcher(app, fake)
    return fake


@pytest.fixture(scope='function')
def users(db_session):
    """One user per role."""
    return {
        role.value: create_user(
            email=f"{role.value}@marmitas.test",
            name=role.value.title(),
            password=PASSWORD,
            role=role,
        )
        for role in UserRole
    }


def _headers_for(user) -> dict:
    _, token = create_session(user.id)
    return auth_headers(token)


@pytest.fixture(scope='function')
def admin_headers(users):
    return _headers_for(users["admin"])


@pytest.fixture(scope='function')
def manager_headers(users):
    return _headers_for(users["manager"])


@pytest.fixture(scope='function')
def operator_headers(users):
    return _headers_for(users["operator"])


@pytest.fixture(scope='function')
def make_company(db_session):
    def _make(name="Acme Ltda", discount_bps=0, is_active=True, **kwargs):
        company = Company(
            name=name,
            contact_name=kwargs.pop("contact_name", "Maria"),
            email=kwargs.pop("email", f"{name.split()[0].lower()}@example.com"),
            discount_bps=discount_bps,
            is_active=is_active,
            **kwargs,
        )
        db_session.add(company)
        db_session.commit()
        return company
    return _make


@pytest.fixture(scope='function')
def make_record(db_session):
    def _make(company, size="M", quantity=1, consumed_on=date(2025, 3, 10), extra_items=None):
        return consumption_service.create_record(
            company_id=company.id,
            consumed_on=consumed_on,
            size=size,
            quantity=quantity,
            extra_items=extra_items,
        )
    return _make


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
