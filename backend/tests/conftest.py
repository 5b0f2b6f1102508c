"""
Pytest fixtures for stockroom backend tests.

Provides the application on an in-memory database, seeded roles, users per
role, a small catalog, and login helpers for HTTP-level tests.
"""

import pytest

from stockroom import create_app
from stockroom.extensions import db
from stockroom.models import Product, ProductVariant, Role, User, UserRole
from stockroom.services.auth_service import hash_password
from stockroom.services import permission_service


PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'LOG_LEVEL': 'WARNING',
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
def setup_roles(db_session):
    """Setup default roles and permissions."""
    permission_service.seed_roles_and_permissions()
    db_session.commit()


@pytest.fixture(scope='function')
def authz(app):
    return app.extensions["authorization"]


def make_user(db_session, name: str, email: str, role_name: str | None) -> User:
    user = User(name=name, email=email, password_hash=hash_password(PASSWORD, rounds=4))
    db_session.add(user)
    db_session.flush()
    if role_name:
        role = db_session.query(Role).filter_by(name=role_name).first()
        db_session.add(UserRole(user_id=user.id, role_id=role.id))
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin_user(db_session, setup_roles):
    return make_user(db_session, "Admin", "admin@stockroom.test", "admin")


@pytest.fixture(scope='function')
def staff_user(db_session, setup_roles):
    return make_user(db_session, "Staff", "staff@stockroom.test", "inventory_staff")


@pytest.fixture(scope='function')
def supervisor_user(db_session, setup_roles):
    return make_user(db_session, "Supervisor", "supervisor@stockroom.test", "warehouse_supervisor")


@pytest.fixture(scope='function')
def manager_user(db_session, setup_roles):
    return make_user(db_session, "Manager", "manager@stockroom.test", "management")


@pytest.fixture(scope='function')
def product(db_session):
    """One product with two variants: V (10 on hand) and W (5 on hand)."""
    product = Product(name="Arabica Beans", sku="ARB", description="Whole beans")
    product.variants.append(ProductVariant(name="250g", sku="ARB-250", stock_current=10))
    product.variants.append(ProductVariant(name="1kg", sku="ARB-1000", stock_current=5))
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def variant_v(product):
    return next(v for v in product.variants if v.sku == "ARB-250")


@pytest.fixture(scope='function')
def variant_w(product):
    return next(v for v in product.variants if v.sku == "ARB-1000")


def get_auth_token(client, email: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, admin_user.email))


@pytest.fixture(scope='function')
def staff_headers(client, staff_user):
    return auth_headers(get_auth_token(client, staff_user.email))


@pytest.fixture(scope='function')
def manager_headers(client, manager_user):
    return auth_headers(get_auth_token(client, manager_user.email))


@pytest.fixture(scope='function')
def user_factory(db_session, setup_roles):
    """make_user bound to the test session: user_factory(name, email, role_name=None)."""
    def _make(name: str, email: str, role_name: str | None = None) -> User:
        return make_user(db_session, name, email, role_name)
    return _make
