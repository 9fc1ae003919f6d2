import os
from typing import Callable, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# The signing key is read at import time; set it before the app is imported.
os.environ.setdefault(
    "MEETUP_JWT_SECRET_KEY", "meetup-test-signing-key-0123456789-abcdefghij"
)

from meetup.auth.auth import create_access_token
from meetup.data.meeting_manager import MeetingManager
from meetup.database import Base, create_database_engine, get_db
from meetup.main import app
from meetup.models.user import User, UserBlock
from meetup.schemas.meeting import MeetingCreate

# Define a test database URL
TEST_DATABASE_URL = "sqlite://"  # One shared in-memory connection for the suite
engine = create_database_engine(TEST_DATABASE_URL, poolclass=StaticPool)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="session")
def create_test_tables():
    """Create all database tables once per session before tests run."""
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture(scope="function")
def db_session(create_test_tables):
    """
    Provides a database session whose commits land in a savepoint of an outer
    transaction that is rolled back after the test.
    Overrides the main app's get_db dependency.
    """
    connection = engine.connect()
    transaction = connection.begin()
    db = TestingSessionLocal(bind=connection, join_transaction_mode="create_savepoint")

    original_get_db = app.dependency_overrides.get(get_db)
    app.dependency_overrides[get_db] = lambda: db

    try:
        yield db
    finally:
        db.close()
        transaction.rollback()
        connection.close()
        if original_get_db:
            app.dependency_overrides[get_db] = original_get_db
        else:
            del app.dependency_overrides[get_db]


@pytest.fixture(scope="function")
def client(db_session: Session):
    """TestClient without the lifespan, so no file database or log directory is touched."""
    return TestClient(app)


@pytest.fixture
def make_user(db_session: Session) -> Callable[..., User]:
    def _make(user_id: str, nickname: Optional[str] = None) -> User:
        user = User(user_id=user_id, nickname=nickname or user_id)
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


@pytest.fixture
def host(make_user) -> User:
    return make_user("usr-host", "Host")


@pytest.fixture
def make_meeting(db_session: Session, host: User):
    manager = MeetingManager(db=db_session)

    def _make(capacity: int = 4, auto_approve: bool = False, title: str = "Board game night", **extra):
        payload = MeetingCreate(
            title=title, capacity=capacity, auto_approve=auto_approve, **extra
        )
        return manager.create_meeting(host.user_id, payload)

    return _make


@pytest.fixture
def block(db_session: Session):
    def _block(blocker_id: str, blocked_id: str) -> UserBlock:
        record = UserBlock(blocker_id=blocker_id, blocked_id=blocked_id)
        db_session.add(record)
        db_session.commit()
        return record

    return _block


@pytest.fixture
def auth_headers():
    def _headers(user_id: str) -> dict:
        token = create_access_token({"sub": user_id})
        return {"Authorization": f"Bearer {token}"}

    return _headers
