"""
Pytest fixtures for blueledger backend tests.

Provides an app per test on in-memory SQLite, two tenants (companies A and B)
with an admin each, a worker in company A, and HTTP helpers.
"""

from types import SimpleNamespace

import pytest

from blueledger import create_app
from blueledger.extensions import db
from blueledger.models import Role
from blueledger.services import get_services
from blueledger.services.tenant_service import Caller

TEST_PASSWORD = "Password123!"


def _test_config(**overrides) -> dict:
    config = {
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'LEDGER_TX_BACKOFF_BASE': 0.001,
        'LOG_LEVEL': 'WARNING',
    }
    config.update(overrides)
    return config


@pytest.fixture(scope='function')
def app():
    """Create application for testing with a fresh schema."""
    app = create_app(_test_config())

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def file_app(tmp_path):
    """
    Application on a file-backed SQLite database.

    Threads get their own connections here, which in-memory SQLite cannot
    provide.
    """
    app = create_app(_test_config(
        SQLALCHEMY_DATABASE_URI=f"sqlite:///{tmp_path / 'ledger.sqlite3'}",
        LEDGER_TX_MAX_ATTEMPTS=20,
    ))

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def services(app):
    return get_services()


def make_tenant(services, label: str):
    """Register a company through the real signup path and return its admin as a Caller."""
    email = f"owner@{label.lower()}.test"
    company, profile = services.companies.register(
        name=f"Owner {label}",
        email=email,
        password=TEST_PASSWORD,
        company_name=f"Company {label}",
    )
    admin = Caller(
        uid=profile.uid,
        company_id=company.id,
        role=Role.ADMIN,
        name=profile.name,
        email=email,
    )
    return SimpleNamespace(company_id=company.id, admin=admin, email=email)


def make_worker(services, tenant, name: str = "Worker One", email: str | None = None) -> Caller:
    email = email or f"{name.lower().replace(' ', '.')}@{tenant.company_id[:8]}.test"
    uid = services.provisioning.create_worker(tenant.admin.uid, name, email, TEST_PASSWORD)
    return Caller(uid=uid, company_id=tenant.company_id, role=Role.WORKER, name=name, email=email)


@pytest.fixture(scope='function')
def tenant_a(services):
    """Company A with its admin."""
    return make_tenant(services, "Acme")


@pytest.fixture(scope='function')
def tenant_b(services):
    """Company B with its admin."""
    return make_tenant(services, "Beta")


@pytest.fixture(scope='function')
def worker_a(services, tenant_a):
    """Worker created by company A's admin."""
    return make_worker(services, tenant_a, "Worker A", "worker.a@acme.test")


@pytest.fixture(scope='function')
def product_a(services, tenant_a):
    """Product in company A with 10 units."""
    return services.ledger.create_product(
        company_id=tenant_a.company_id,
        actor_uid=tenant_a.admin.uid,
        name="Widget",
        category="tools",
        price="12.50",
        qty=10,
    )


def get_auth_token(client, email: str, password: str = TEST_PASSWORD) -> str:
    """Helper to get auth token for an identity."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password,
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def tenant_factory():
    """make_tenant for tests that build their own app or services."""
    return make_tenant
