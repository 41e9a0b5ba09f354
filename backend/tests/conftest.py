import os
import uuid

# Must be set before weekgrid.database is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("AUTH_MODE", "demo")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from weekgrid.database import Base, get_db
from weekgrid.models import audit_log, timesheet  # noqa: F401  (register tables)
from weekgrid.services.timesheet_lifecycle import Actor

ORG_ID = uuid.UUID("11111111-1111-1111-1111-111111111111")


@pytest.fixture
def engine(tmp_path):
    # file database so threads in the concurrency tests share one store
    eng = create_engine(
        f"sqlite:///{tmp_path / 'weekgrid.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )

    @event.listens_for(eng, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


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
def member():
    return Actor(user_id=uuid.uuid4(), org_id=ORG_ID, role="member")


@pytest.fixture
def manager():
    return Actor(user_id=uuid.uuid4(), org_id=ORG_ID, role="manager")


@pytest.fixture
def client(session_factory):
    from main import app

    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


