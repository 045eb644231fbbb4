"""
Pytest configuration and fixtures for tests.

Environment is set before any project import so config.settings picks up a
throwaway SQLite database and a test secret. Every test gets its own
in-memory database.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ["CSRF_ENABLED"] = "false"

from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import main  # noqa: E402  (registers every model on Base)
from config.database import Base, get_db  # noqa: E402
from common.security import create_token  # noqa: E402
from modules.cart.models import CartItem  # noqa: E402
from modules.catalog.models import Product  # noqa: E402
from modules.user.models import User  # noqa: E402


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def test_engine():
    """Create test database engine (in-memory SQLite)."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


# ============================================================================
# Data Factories (rows are committed so a service-side rollback keeps them)
# ============================================================================

@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(role: str = "user", **kwargs) -> User:
        counter["n"] += 1
        n = counter["n"]
        user = User(
            username=kwargs.pop("username", f"user{n}"),
            email=kwargs.pop("email", f"user{n}@example.com"),
            address=kwargs.pop("address", f"{n} Test Street"),
            role=role,
            **kwargs,
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def make_product(db):
    def _make(name: str = "Apples", price="4.50", quantity: int = 10, **kwargs) -> Product:
        product = Product(name=name, price=Decimal(str(price)), quantity=quantity, **kwargs)
        db.add(product)
        db.commit()
        return product

    return _make


@pytest.fixture
def put_in_cart(db):
    """Insert a cart row directly, bypassing stock validation."""
    def _put(user, product, quantity: int) -> CartItem:
        item = CartItem(
            user_id=user.id,
            product_id=product.id,
            quantity=quantity,
            captured_name=product.name,
            captured_price=product.price,
        )
        db.add(item)
        db.commit()
        return item

    return _put


@pytest.fixture
def set_stock(db):
    def _set(product: Product, quantity: int):
        product.quantity = quantity
        db.commit()

    return _set


@pytest.fixture
def delete_product(db):
    def _delete(product: Product):
        db.delete(product)
        db.commit()

    return _delete


# ============================================================================
# HTTP Fixtures
# ============================================================================

@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    main.app.dependency_overrides[get_db] = override_get_db
    with TestClient(main.app) as c:
        yield c
    main.app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _headers(user: User) -> dict:
        return {"Authorization": f"Bearer {create_token({'sub': user.email})}"}

    return _headers
