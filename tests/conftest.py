import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from srp.config import JWT_ALGORITHM, JWT_SECRET, STATIC_DATA_DIR
from srp.db.db import get_session
from srp.main import app
from srp.models.user import User
from srp.services.ship_catalog import ShipCatalog, get_ship_catalog
from srp.services.ship_classes import ShipClassTable, get_ship_class_table


@pytest.fixture
def engine():
    """In-memory SQLite shared by every session in a test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def ship_table():
    """Ship-class table loaded from the packaged static data."""
    return ShipClassTable.from_directory(STATIC_DATA_DIR)


@pytest.fixture
def catalog():
    catalog = ShipCatalog()
    catalog.load(STATIC_DATA_DIR)
    return catalog


@pytest.fixture
def client(session, ship_table, catalog):
    app.dependency_overrides[get_session] = lambda: session
    app.dependency_overrides[get_ship_class_table] = lambda: ship_table
    app.dependency_overrides[get_ship_catalog] = lambda: catalog

    yield TestClient(app)

    app.dependency_overrides.clear()


def make_token(seat_user_id: int, name: str) -> str:
    return jwt.encode({"sub": str(seat_user_id), "name": name}, JWT_SECRET, algorithm=JWT_ALGORITHM)


@pytest.fixture
def make_user(session):
    """Create a user with a role and return bearer headers for them."""
    def _make_user(seat_user_id: int, role: str = "member", name: str = None) -> dict:
        name = name or f"Pilot {seat_user_id}"
        session.add(User(seat_user_id=seat_user_id, main_character_name=name, role=role))
        session.commit()
        return {"Authorization": f"Bearer {make_token(seat_user_id, name)}"}

    return _make_user


@pytest.fixture
def token_headers():
    """Bearer headers for a seat user that may not exist yet."""
    def _headers(seat_user_id: int, name: str) -> dict:
        return {"Authorization": f"Bearer {make_token(seat_user_id, name)}"}

    return _headers
