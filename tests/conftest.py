from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from coachdesk.core.db import Base, get_db
from coachdesk.core.security import hash_password
from coachdesk.main import app
from coachdesk.models import User
from coachdesk.services.table_state import TableStateRegistry


@pytest.fixture()
def client() -> Generator[TestClient, None, None]:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    coach = User(email="coach@test.local", full_name="Coach", password_hash=hash_password("pass1234"))
    other = User(email="other@test.local", full_name="Other Coach", password_hash=hash_password("pass1234"))
    db.add_all([coach, other])
    db.commit()
    db.close()

    def override_get_db():
        test_db = TestingSessionLocal()
        try:
            yield test_db
        finally:
            test_db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.state.testing_sessionmaker = TestingSessionLocal
    app.state.table_states = TableStateRegistry()

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db(client):
    session = app.state.testing_sessionmaker()
    try:
        yield session
    finally:
        session.close()
