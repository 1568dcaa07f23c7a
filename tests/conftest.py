import asyncio
from datetime import datetime, timedelta

import httpx
import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine, text

from exam_portal.auth_utils import create_access_token, hash_password
from exam_portal.config import Settings, get_settings
from exam_portal.database import get_session
from exam_portal.models import Exam, User

# ============================================================================
# IN-MEMORY DATABASE FOR TESTING
# ============================================================================

test_engine = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,  # all connections share the same in-memory database
)

test_settings = Settings(
    secret_key="test-secret-key-for-exam-portal-suite",
    database_url="sqlite:///:memory:",
    allow_resubmission=True,
    enforce_exam_window=True,
)


@pytest.fixture(scope="session", autouse=True)
def setup_test_db():
    """Create all tables in the test database once per session."""
    SQLModel.metadata.create_all(test_engine)
    yield
    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture(autouse=True)
def cleanup_db_between_tests():
    """Clean up test data after each test."""
    yield

    # Clean up in FK-safe order
    with Session(test_engine) as session:
        session.exec(text("DELETE FROM submission"))
        session.exec(text("DELETE FROM exam"))
        session.exec(text("DELETE FROM course"))
        session.exec(text("DELETE FROM user"))
        session.commit()


@pytest.fixture
def settings():
    return test_settings


@pytest.fixture
def session():
    """Provide a database session for tests."""
    with Session(test_engine) as session:
        yield session


# ============================================================================
# FASTAPI APP & TEST CLIENT
# ============================================================================

from exam_portal.main import app  # noqa: E402


class SyncClientWrapper:
    """Drive an httpx.AsyncClient from synchronous test code."""

    def __init__(self, async_client, loop):
        self.async_client = async_client
        self.loop = loop

    def request(self, method, url, token=None, **kwargs):
        if token:
            headers = dict(kwargs.pop("headers", None) or {})
            headers["Authorization"] = f"Bearer {token}"
            kwargs["headers"] = headers
        return self.loop.run_until_complete(self.async_client.request(method, url, **kwargs))

    def get(self, url, **kwargs):
        return self.request("GET", url, **kwargs)

    def post(self, url, **kwargs):
        return self.request("POST", url, **kwargs)

    def put(self, url, **kwargs):
        return self.request("PUT", url, **kwargs)

    def delete(self, url, **kwargs):
        return self.request("DELETE", url, **kwargs)


@pytest.fixture
def client():
    """Create test client using httpx AsyncClient with sync wrapper."""

    def override_get_session():
        with Session(test_engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_settings] = lambda: test_settings

    loop = asyncio.new_event_loop()
    transport = httpx.ASGITransport(app=app)
    async_client = httpx.AsyncClient(transport=transport, base_url="http://testserver")

    yield SyncClientWrapper(async_client, loop)

    loop.run_until_complete(async_client.aclose())
    loop.close()
    app.dependency_overrides.clear()


# ============================================================================
# ENTITY FIXTURES
# ============================================================================


def _create_user(**fields) -> User:
    with Session(test_engine) as session:
        user = User(password_hash=hash_password(fields.pop("password", "Password123")), **fields)
        session.add(user)
        session.commit()
        session.refresh(user)
        user_id = user.id

    with Session(test_engine) as session:
        return session.get(User, user_id)


@pytest.fixture
def teacher_user():
    """Create a sample teacher account."""
    return _create_user(
        first_name="Grace",
        last_name="Hopper",
        email="grace@example.com",
        role="teacher",
        department="Computer Science",
        subjects=["Compilers"],
    )


@pytest.fixture
def other_teacher():
    """A second teacher who owns none of the fixture exams."""
    return _create_user(
        first_name="Alan",
        last_name="Turing",
        email="alan@example.com",
        role="teacher",
        department="Mathematics",
    )


@pytest.fixture
def student_user():
    """Create a sample student account."""
    return _create_user(
        first_name="Alice",
        last_name="Student",
        email="alice@example.com",
        role="student",
        department="Computer Science",
        student_number="STU1001",
        level=2,
    )


@pytest.fixture
def second_student():
    return _create_user(
        first_name="Bob",
        last_name="Learner",
        email="bob@example.com",
        role="student",
        department="Computer Science",
        student_number="STU1002",
        level=1,
    )


@pytest.fixture
def teacher_token(teacher_user):
    return create_access_token(teacher_user.id, teacher_user.role, test_settings)


@pytest.fixture
def other_teacher_token(other_teacher):
    return create_access_token(other_teacher.id, other_teacher.role, test_settings)


@pytest.fixture
def student_token(student_user):
    return create_access_token(student_user.id, student_user.role, test_settings)


def mc_question(question_id, points, correct_index, option_count=4):
    return {
        "id": question_id,
        "type": "multiple-choice",
        "text": f"Question {question_id}?",
        "points": points,
        "options": [
            {"text": f"Option {i}", "isCorrect": i == correct_index} for i in range(option_count)
        ],
    }


def _create_exam(teacher, questions, **fields) -> Exam:
    total = sum(q.get("points", 1) for q in questions)
    with Session(test_engine) as session:
        exam = Exam(
            title=fields.pop("title", "Midterm"),
            description=fields.pop("description", "Covers chapters 1-4"),
            teacher_id=teacher.id,
            questions=questions,
            duration_minutes=fields.pop("duration_minutes", 60),
            start_time=fields.pop("start_time", datetime.utcnow() - timedelta(hours=1)),
            end_time=fields.pop("end_time", datetime.utcnow() + timedelta(hours=1)),
            total_points=total,
            **fields,
        )
        session.add(exam)
        session.commit()
        session.refresh(exam)
        exam_id = exam.id

    with Session(test_engine) as session:
        return session.get(Exam, exam_id)


@pytest.fixture
def mc_exam(teacher_user):
    """Open exam with two multiple-choice questions worth 5 and 10 points."""
    return _create_exam(
        teacher_user,
        [mc_question("q1", 5, correct_index=1), mc_question("q2", 10, correct_index=3)],
        passing_score=0.6,
    )


@pytest.fixture
def mixed_exam(teacher_user):
    """Open exam mixing multiple-choice, true/false and essay questions."""
    return _create_exam(
        teacher_user,
        [
            mc_question("mc", 2, correct_index=0),
            {"id": "tf", "type": "true-false", "text": "The sky is blue.", "points": 3, "correctAnswer": "true"},
            {"id": "essay", "type": "essay", "text": "Explain recursion.", "points": 5},
        ],
        title="Mixed Quiz",
    )


@pytest.fixture
def closed_exam(teacher_user):
    """Exam whose window has already ended."""
    return _create_exam(
        teacher_user,
        [mc_question("q1", 1, correct_index=0)],
        title="Last Week's Quiz",
        start_time=datetime.utcnow() - timedelta(days=8),
        end_time=datetime.utcnow() - timedelta(days=7),
    )
