"""
Pytest fixtures for Fleur backend tests.

Provides the test application, a fresh database per test, one logged-in
user per role and a few catalogue products.
"""

import pytest

from fleur import create_app
from fleur.config import TestConfig
from fleur.extensions import db
from fleur.models import Customer, Employee, Product, User
from fleur.services.auth_service import hash_password


PASSWORD = "secret123"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestConfig)

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


def make_user(session, email: str, role: str, name: str, *, employee_position: str | None = None) -> User:
    user = User(
        email=email,
        display_name=name,
        password_hash=hash_password(PASSWORD),
        role=role,
        is_active=True,
    )
    session.add(user)
    session.flush()
    if employee_position:
        session.add(Employee(user_id=user.id, name=name, email=email, position=employee_position))
    session.commit()
    return user


@pytest.fixture(scope='function')
def admin_user(db_session):
    return make_user(db_session, "admin@fleur.test", "admin", "Chủ cửa hàng", employee_position="ADMIN")


@pytest.fixture(scope='function')
def manager_user(db_session):
    return make_user(db_session, "manager@fleur.test", "manager", "Quản lý Hoa", employee_position="MANAGER")


@pytest.fixture(scope='function')
def staff_user(db_session):
    return make_user(db_session, "staff@fleur.test", "staff", "Nhân viên Mai", employee_position="STAFF")


@pytest.fixture(scope='function')
def customer_user(db_session):
    user = make_user(db_session, "lan@fleur.test", "customer", "Chị Lan")
    db_session.add(Customer(user_id=user.id, name="Chị Lan", phone="0901234567", address="12 Lê Lợi, Q1"))
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def other_customer_user(db_session):
    user = make_user(db_session, "binh@fleur.test", "customer", "Anh Bình")
    db_session.add(Customer(user_id=user.id, name="Anh Bình", phone="0907654321", address="5 Hai Bà Trưng"))
    db_session.commit()
    return user


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
    return auth_headers(get_auth_token(client, "admin@fleur.test"))


@pytest.fixture(scope='function')
def manager_headers(client, manager_user):
    return auth_headers(get_auth_token(client, "manager@fleur.test"))


@pytest.fixture(scope='function')
def staff_headers(client, staff_user):
    return auth_headers(get_auth_token(client, "staff@fleur.test"))


@pytest.fixture(scope='function')
def customer_headers(client, customer_user):
    return auth_headers(get_auth_token(client, "lan@fleur.test"))


@pytest.fixture(scope='function')
def other_customer_headers(client, other_customer_user):
    return auth_headers(get_auth_token(client, "binh@fleur.test"))


def make_product(session, **overrides) -> Product:
    fields = {
        "name": "Hoa hồng",
        "color": "Đỏ",
        "quality": "Loại 1",
        "size": "Nhỏ",
        "unit": "Bó",
        "quantity": 10,
        "price": 100000,
        "cost_price": 60000,
    }
    fields.update(overrides)
    product = Product(**fields)
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def rose(db_session):
    return make_product(db_session, max_discount_per_unit=10000)


@pytest.fixture(scope='function')
def lily(db_session):
    return make_product(
        db_session, name="Hoa ly", color="Trắng", quality=None, size="Lớn", unit="Cành",
        quantity=5, price=50000, cost_price=30000,
    )


def stock_of(session, product_id: int) -> int:
    """Fresh read of a product's quantity."""
    session.expire_all()
    return session.get(Product, product_id).quantity
