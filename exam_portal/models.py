"""SQLModel tables and question/answer documents for the Exam Portal."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, TypeAdapter, model_validator
from pydantic import Field as PydanticField
from pydantic.alias_generators import to_camel
from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import Field, SQLModel

QUESTION_TYPES = ("multiple-choice", "true-false", "short-answer", "essay")
WRITTEN_QUESTION_TYPES = ("short-answer", "essay")
EXAM_TYPES = ("quiz", "midterm", "final", "assignment", "mcq", "written")


class Document(BaseModel):
    """Base for nested documents stored as JSON and exchanged in camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Question documents (stored inside Exam.questions) ---


class Option(Document):
    text: str = PydanticField(min_length=1)
    is_correct: bool = False


class QuestionBase(Document):
    id: str = PydanticField(default_factory=lambda: uuid.uuid4().hex)
    text: str = PydanticField(min_length=1)
    points: int = PydanticField(default=1, ge=1)

    @property
    def auto_gradable(self) -> bool:
        return True


class MultipleChoiceQuestion(QuestionBase):
    type: Literal["multiple-choice"] = "multiple-choice"
    options: List[Option] = PydanticField(min_length=1)

    @model_validator(mode="after")
    def require_correct_option(self) -> "MultipleChoiceQuestion":
        if not any(option.is_correct for option in self.options):
            raise ValueError("Multiple-choice questions need at least one correct option")
        return self


class TrueFalseQuestion(QuestionBase):
    type: Literal["true-false"] = "true-false"
    correct_answer: str


class WrittenQuestion(QuestionBase):
    """Short-answer or essay question; recorded but never auto-graded."""

    type: Literal["short-answer", "essay"] = "short-answer"

    @property
    def auto_gradable(self) -> bool:
        return False


Question = Annotated[
    Union[MultipleChoiceQuestion, TrueFalseQuestion, WrittenQuestion],
    PydanticField(discriminator="type"),
]

QUESTION_LIST_ADAPTER = TypeAdapter(List[Question])


def dump_questions(questions: List[QuestionBase]) -> list[dict[str, Any]]:
    """Serialize questions to the JSON document shape kept in the database."""
    return [q.model_dump(mode="json", by_alias=True) for q in questions]


# --- Answer documents (stored inside Submission.answers) ---


class GradedAnswer(Document):
    question_id: str
    answer: Optional[str] = None
    is_correct: bool = False
    points_earned: int = 0


# --- Tables ---


class User(SQLModel, table=True):
    """Account that can log in as a teacher or a student."""

    __table_args__ = (UniqueConstraint("email", name="uq_user_email"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    first_name: str
    last_name: str
    email: str  # stored lowercase, must be unique
    password_hash: str
    role: str = Field(default="student")  # "teacher", "student"
    department: Optional[str] = None
    phone_number: Optional[str] = None

    # Student-specific fields
    student_number: Optional[str] = None
    level: Optional[int] = None  # 1..5

    # Teacher-specific fields
    subjects: List[str] = Field(default_factory=list, sa_column=Column(JSON))

    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Course(SQLModel, table=True):
    """A course a teacher runs for one department and study level."""

    __table_args__ = (UniqueConstraint("course_code", name="uq_course_code"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    course_code: str  # uppercase letters, digits and hyphens
    course_name: str
    description: str
    department: str
    level: int  # 1..5
    teacher_id: int = Field(foreign_key="user.id", index=True)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class Exam(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    description: str
    teacher_id: int = Field(foreign_key="user.id")
    questions: List[dict] = Field(default_factory=list, sa_column=Column(JSON))
    duration_minutes: int
    start_time: datetime
    end_time: datetime
    exam_type: str = Field(default="quiz")
    is_active: bool = Field(default=True)
    # Fraction of total points needed to pass; None falls back to the configured default
    passing_score: Optional[float] = None
    total_points: int = Field(default=0)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    def question_list(self) -> List[QuestionBase]:
        """Parse the stored question documents into typed questions."""
        return QUESTION_LIST_ADAPTER.validate_python(self.questions or [])


class Submission(SQLModel, table=True):
    """One student's recorded attempt at an exam."""

    id: Optional[int] = Field(default=None, primary_key=True)
    exam_id: int = Field(foreign_key="exam.id", index=True)
    student_id: int = Field(foreign_key="user.id", index=True)
    answers: List[dict] = Field(default_factory=list, sa_column=Column(JSON))
    start_time: datetime
    end_time: datetime
    total_score: int = Field(default=0)
    max_possible_score: int = Field(default=0)
    is_passed: bool = Field(default=False)
    is_submitted: bool = Field(default=False)
    is_graded: bool = Field(default=False)
    # True when the exam has written questions nobody has scored yet
    manual_grading_pending: bool = Field(default=False)
    submitted_at: datetime = Field(default_factory=datetime.utcnow)

    def answer_list(self) -> List[GradedAnswer]:
        return [GradedAnswer.model_validate(a) for a in self.answers or []]
