"""Shared fixtures: an in-memory SQLite database wired into the app."""

import itertools
import os
from types import SimpleNamespace

# Tests never touch a real database server; set before inkpost is imported.
os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from inkpost.db import get_db, make_engine
from inkpost.main import app
from inkpost.models import Base
from inkpost.security import create_access_token
from inkpost.services.users import register_user


@pytest.fixture
def engine():
    engine = make_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def db(session_factory):
    """A bare session for service-level tests; nothing is committed."""
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def create_user(session_factory):
    """Factory committing a user and returning its id, token and auth headers."""
    counter = itertools.count(1)

    def _create(name=None, email=None, password="secret123", bio=None):
        n = next(counter)
        session = session_factory()
        try:
            user = register_user(
                session,
                email=email or f"user{n}@example.com",
                password=password,
                name=name or f"User Number {n}",
            )
            user.bio = bio
            session.flush()
            info = SimpleNamespace(id=user.id, email=user.email, name=user.name)
            session.commit()
        finally:
            session.close()

        info.token = create_access_token(info.id, info.email)
        info.headers = {"Authorization": f"Bearer {info.token}"}
        return info

    return _create
