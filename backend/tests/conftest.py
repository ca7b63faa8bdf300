"""
Pytest fixtures for the inventory ledger test suite.

Provides:
- A fresh in-memory SQLite database per test
- Project / material / user factories
- A FastAPI TestClient with the database and Cognito auth overridden
"""
import os
import tempfile

# Must be set before `database` / `main` are imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("LOG_DIR", os.path.join(tempfile.gettempdir(), "site-inventory-test-logs"))

from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, get_db
import models  # noqa: F401
from models.materials import Material
from models.projects import Project
from models.users import User


@pytest.fixture
def engine():
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def user(db):
    db_user = User(username="storekeeper", full_name="Store Keeper", email="store@example.com", is_active=True)
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    return db_user


@pytest.fixture
def make_project(db):
    counter = {"n": 0}

    def _make(name=None, code=None):
        counter["n"] += 1
        project = Project(name=name or f"Tower {counter['n']}", code=code or f"PRJ-{counter['n']:03d}")
        db.add(project)
        db.commit()
        db.refresh(project)
        return project

    return _make


@pytest.fixture
def project(make_project):
    return make_project(name="Riverside Tower", code="RT-001")


@pytest.fixture
def make_material(db):
    """Seed a material row with a starting stock (test setup only, no ledger row)."""
    counter = {"n": 0}

    def _make(stock="100", reorder_point="10", minimum="0", name=None, project_id=None, cost_per_unit=None, unit="bags"):
        counter["n"] += 1
        material = Material(
            name=name or f"Cement OPC 53 #{counter['n']}",
            item_code=f"MAT-{counter['n']:04d}",
            unit=unit,
            stock_qty=Decimal(stock),
            reorder_point=Decimal(reorder_point),
            minimum_stock_level=Decimal(minimum),
            project_id=project_id,
            cost_per_unit=Decimal(cost_per_unit) if cost_per_unit is not None else None,
            location="Main Store",
        )
        db.add(material)
        db.commit()
        db.refresh(material)
        return material

    return _make


@pytest.fixture
def material(make_material):
    return make_material(stock="100", reorder_point="10", minimum="20")


ADMIN_CLAIMS = {
    "sub": "b1c2d3e4-0000-1111-2222-333344445555",
    "cognito:username": "site.admin",
    "email": "admin@example.com",
    "name": "Site Admin",
    "cognito:groups": ["admin"],
}


@pytest.fixture
def claims():
    return dict(ADMIN_CLAIMS)


@pytest.fixture
def client(session_factory, claims):
    from fastapi.testclient import TestClient
    from main import app
    from utils.auth_utils import get_current_user

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = lambda: claims
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
