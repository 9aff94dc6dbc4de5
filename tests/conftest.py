import os

# Settings read ENV at import time; keep tests on in-memory SQLite.
os.environ["ENV"] = "test"
os.environ.setdefault("TEST_DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy.orm import sessionmaker

from chatrelay.db import Base, build_engine
import chatrelay.models  # noqa: F401

pytest_plugins = [
    "tests.fixtures.context_fixtures",
    "tests.fixtures.chat_client_fixtures",
]


@pytest.fixture(scope="function")
def session_factory():
    """Fresh in-memory database per test."""
    engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()
