# tests/conftest.py

import os

# must be set before geoaccess.core.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret-0123456789abcdef0123456789")
os.environ.setdefault("PASSWORD_PEPPER", "p" * 32)

import pytest
from fastapi.testclient import TestClient

from geoaccess.main import app as fastapi_app
from geoaccess.core.config import load_auth_settings
from geoaccess.core.database import SessionLocal, engine as app_engine, get_db

from geoaccess.models.auth import Base
import geoaccess.models.auth as _auth_models  # noqa: F401
import geoaccess.models.access as _access_models  # noqa: F401

from geoaccess.auth.identity import AccessLevel, Role
from geoaccess.crud import crud_access, crud_groups
from geoaccess.crud.crud_auth import create_principal

DEFAULT_PASSWORD = "correct-horse-battery"


@pytest.fixture(scope="session")
def engine():
    Base.metadata.create_all(bind=app_engine)
    return app_engine


@pytest.fixture(scope="session")
def settings():
    return load_auth_settings()


@pytest.fixture()
def db_session(engine):
    db = SessionLocal()

    # Clean between tests because app code commits
    for table in reversed(Base.metadata.sorted_tables):
        db.execute(table.delete())
    db.commit()

    try:
        yield db
    finally:
        db.rollback()
        db.close()


@pytest.fixture()
def client(db_session):
    def _override_get_db():
        yield db_session

    # set override BEFORE creating the client
    fastapi_app.dependency_overrides[get_db] = _override_get_db

    try:
        yield TestClient(fastapi_app)
    finally:
        fastapi_app.dependency_overrides.clear()


@pytest.fixture()
def make_principal(db_session, settings):
    def _make(username, role=Role.USER, password=DEFAULT_PASSWORD, email=None, active=True):
        row, api_key = create_principal(
            db_session,
            username=username,
            password=password,
            pepper=settings.password_pepper,
            role=role,
            email=email,
        )
        row.is_active = active
        db_session.commit()
        return row, api_key

    return _make


@pytest.fixture()
def make_group(db_session):
    def _make(name, members=()):
        group = crud_groups.create_group(db_session, name, None, created_by=None)
        for principal in members:
            crud_groups.add_member(db_session, group, principal.id, added_by=None)
        db_session.commit()
        return group

    return _make


@pytest.fixture()
def make_zone(db_session):
    def _make(name, access_level=AccessLevel.PRIVATE):
        zone = crud_access.create_zone(db_session, name, access_level=access_level)
        db_session.commit()
        return zone

    return _make


@pytest.fixture()
def make_model(db_session):
    def _make(name, access_level=AccessLevel.PUBLIC):
        model = crud_access.create_model(db_session, name, access_level=access_level)
        db_session.commit()
        return model

    return _make


@pytest.fixture()
def users(make_principal):
    """admin, alice and bob with their API keys."""
    admin, admin_key = make_principal("admin", role=Role.ADMIN)
    alice, alice_key = make_principal("alice")
    bob, bob_key = make_principal("bob")
    return {
        "admin": (admin, admin_key),
        "alice": (alice, alice_key),
        "bob": (bob, bob_key),
    }
