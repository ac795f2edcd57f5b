"""
Test configuration and fixtures for SynergySphere tests.

Provides:
- Test database with SQLite in-memory for speed
- FastAPI test client with database dependency override
- Authentication helpers (JWT token generation)
- Common fixtures for users, projects, memberships and tasks
"""

import os
import logging
from datetime import timedelta
from typing import Dict, Generator, Optional

# Keep the application's own engine off the filesystem during tests
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from synergysphere import models
from synergysphere.auth.security import create_access_token, hash_password
from synergysphere.database import Base, get_db
from synergysphere.main import app

# Configure logging for tests
logging.basicConfig(level=logging.WARNING)
logger = logging.getLogger(__name__)

# SQLite in-memory database for fast testing
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"


@pytest.fixture(scope="function")
def test_db() -> Generator[Session, None, None]:
    """
    Create a fresh in-memory SQLite database for each test.

    This ensures test isolation and fast execution.
    """
    logger.debug("Creating test database")

    engine = create_engine(
        SQLALCHEMY_TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = TestingSessionLocal()

    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)
        logger.debug("Test database cleaned up")


@pytest.fixture(scope="function")
def client(test_db: Session) -> TestClient:
    """
    Create FastAPI test client with database dependency override.
    """
    def override_get_db():
        try:
            yield test_db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def make_user(db: Session, name: str, email: str, password: str = "password123") -> models.User:
    """Insert a registered user directly into the database."""
    user = models.User(
        name=name,
        email=email,
        password_hash=hash_password(password),
        role=models.UserRole.USER,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"Created user {email} with ID: {user.id}")
    return user


def add_membership(
    db: Session, project: models.Project, user: models.User, role: models.MemberRole = models.MemberRole.MEMBER
) -> models.ProjectMember:
    """Insert a membership row, bypassing the project service."""
    member = models.ProjectMember(project_id=project.id, user_id=user.id, role=role)
    db.add(member)
    db.commit()
    return member


def make_task(
    db: Session,
    project: models.Project,
    title: str,
    status: models.TaskStatus = models.TaskStatus.TODO,
    assignee: Optional[models.User] = None,
    due_date=None,
) -> models.Task:
    """Insert a task row directly, without notifications."""
    task = models.Task(
        title=title,
        status=status,
        project_id=project.id,
        assigned_to=assignee.id if assignee else None,
        due_date=due_date,
    )
    db.add(task)
    db.commit()
    db.refresh(task)
    return task


def create_auth_token(user: models.User, expires_delta: Optional[timedelta] = None) -> str:
    """
    Helper to create JWT access token for a user.

    Args:
        user: User to create token for
        expires_delta: Optional expiration time override

    Returns:
        JWT access token string
    """
    logger.debug(f"Creating auth token for user {user.id}")
    token_data = {
        "sub": str(user.id),
        "role": user.role.value,
        "email": user.email,
    }
    return create_access_token(token_data, expires_delta)


def auth_header(user: models.User) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_auth_token(user)}"}


@pytest.fixture(scope="function")
def owner_user(test_db: Session) -> models.User:
    """User who owns the ``project`` fixture."""
    return make_user(test_db, "Owner User", "owner@test.com")


@pytest.fixture(scope="function")
def member_user(test_db: Session) -> models.User:
    """User who is not a member of anything until a test adds them."""
    return make_user(test_db, "Member User", "member@test.com")


@pytest.fixture(scope="function")
def other_user(test_db: Session) -> models.User:
    """A third user for multi-user scenarios."""
    return make_user(test_db, "Other User", "other@test.com")


@pytest.fixture(scope="function")
def owner_headers(owner_user: models.User) -> Dict[str, str]:
    return auth_header(owner_user)


@pytest.fixture(scope="function")
def member_headers(member_user: models.User) -> Dict[str, str]:
    return auth_header(member_user)


@pytest.fixture(scope="function")
def other_headers(other_user: models.User) -> Dict[str, str]:
    return auth_header(other_user)


@pytest.fixture(scope="function")
def project(test_db: Session, owner_user: models.User) -> models.Project:
    """
    Create a project owned by ``owner_user`` with its OWNER membership.
    """
    logger.debug("Creating test project")
    project = models.Project(
        name="Test Project",
        description="A project for testing",
        owner_id=owner_user.id,
    )
    test_db.add(project)
    test_db.commit()
    test_db.refresh(project)

    add_membership(test_db, project, owner_user, models.MemberRole.OWNER)

    logger.info(f"Created test project with ID: {project.id}")
    return project


@pytest.fixture(scope="function")
def project_with_member(
    test_db: Session, project: models.Project, member_user: models.User
) -> models.Project:
    """``project`` with ``member_user`` added as MEMBER."""
    add_membership(test_db, project, member_user)
    return project
