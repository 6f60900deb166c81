"""
Pytest fixtures for backend tests.

Usage:
    pytest tests/
"""
import os
import pytest
from datetime import datetime, timedelta
from typing import Callable, Generator

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

# Set test environment before importing app modules
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-testing-only")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.pop("SMTP_HOST", None)

from database import Base, get_db
from main import app
from auth.jwt_handler import create_access_token
from auth.passwords import hash_password
from auth.permissions import Actor, build_actor
from constants import Role, SessionStatus
from models import Student, Tutor, TutoringSession, User
from utils.rate_limiter import clear_rate_limits


# In-memory SQLite for fast tests (no external DB dependency)
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

test_engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

DEFAULT_PASSWORD = "secret123"

# Monday 08:00-10:00 and Wednesday 14:00-16:00
DEFAULT_AVAILABILITY = {
    "lunes": ["08:00-10:00"],
    "miércoles": ["14:00-16:00"],
}


def next_weekday_at(weekday: int, hour: int, minute: int = 0, weeks_ahead: int = 1) -> datetime:
    """A naive local datetime on the given weekday (Monday=0) at least a week in the future."""
    today = datetime.now().replace(hour=0, minute=0, second=0, microsecond=0)
    days = (weekday - today.weekday()) % 7 + 7 * weeks_ahead
    return (today + timedelta(days=days)).replace(hour=hour, minute=minute)


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """
    Create a fresh database session for each test.
    Tables are created before and dropped after each test.
    """
    # Create all tables
    Base.metadata.create_all(bind=test_engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        # Drop all tables after test
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(scope="function")
def client(db_session: Session) -> Generator[TestClient, None, None]:
    """
    FastAPI test client with overridden database dependency.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def reset_rate_limits():
    clear_rate_limits()
    yield
    clear_rate_limits()


# ============================================================================
# Sample Data Fixtures
# ============================================================================

def _make_user(db: Session, email: str, name: str, role: str, is_active: bool = True) -> User:
    user = User(
        email=email,
        password_hash=hash_password(DEFAULT_PASSWORD),
        name=name,
        role=role,
        is_active=is_active,
    )
    db.add(user)
    db.flush()
    return user


@pytest.fixture
def make_student(db_session: Session) -> Callable[..., Student]:
    counter = {"n": 0}

    def factory(name: str = None, email: str = None) -> Student:
        counter["n"] += 1
        n = counter["n"]
        user = _make_user(
            db_session,
            email or f"estudiante{n}@example.edu",
            name or f"Estudiante {n}",
            Role.STUDENT.value,
        )
        student = Student(
            user_id=user.id,
            student_number=f"MAT{n:04d}",
            program="Ingeniería de Software",
            term=3,
        )
        db_session.add(student)
        db_session.commit()
        return student

    return factory


@pytest.fixture
def make_tutor(db_session: Session) -> Callable[..., Tutor]:
    counter = {"n": 0}

    def factory(name: str = None, availability=DEFAULT_AVAILABILITY) -> Tutor:
        counter["n"] += 1
        n = counter["n"]
        user = _make_user(db_session, f"tutor{n}@example.edu", name or f"Tutor {n}", Role.TUTOR.value)
        tutor = Tutor(
            user_id=user.id,
            specialty="Matemáticas",
            department="Ciencias Exactas",
            availability=availability,
        )
        db_session.add(tutor)
        db_session.commit()
        return tutor

    return factory


@pytest.fixture
def make_session(db_session: Session) -> Callable[..., TutoringSession]:
    def factory(
        tutor: Tutor,
        subject: str = "Cálculo",
        max_seats: int = 2,
        status: str = SessionStatus.SCHEDULED.value,
        starts_at: datetime = None,
        topic: str = "Derivadas",
    ) -> TutoringSession:
        session = TutoringSession(
            tutor_id=tutor.id,
            subject=subject,
            topic=topic,
            starts_at=starts_at or next_weekday_at(0, 9),
            duration_minutes=60,
            max_seats=max_seats,
            modality="presencial",
            location="Aula 101",
            status=status,
        )
        db_session.add(session)
        db_session.commit()
        return session

    return factory


@pytest.fixture
def admin_user(db_session: Session) -> User:
    user = _make_user(db_session, "admin@example.edu", "Admin", Role.ADMIN.value)
    db_session.commit()
    return user


@pytest.fixture
def tutor(make_tutor) -> Tutor:
    return make_tutor(name="Ana Tutora")


@pytest.fixture
def student(make_student) -> Student:
    return make_student(name="Luis Estudiante")


@pytest.fixture
def admin_actor(db_session: Session, admin_user: User) -> Actor:
    return build_actor(db_session, admin_user)


@pytest.fixture
def tutor_actor(db_session: Session, tutor: Tutor) -> Actor:
    return build_actor(db_session, tutor.user)


@pytest.fixture
def student_actor(db_session: Session, student: Student) -> Actor:
    return build_actor(db_session, student.user)


def auth_headers(user: User) -> dict:
    """Bearer header for a user, as issued by /api/login."""
    token = create_access_token({"sub": str(user.id), "email": user.email, "role": user.role})
    return {"Authorization": f"Bearer {token}"}
