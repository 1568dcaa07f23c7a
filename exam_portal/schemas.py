"""Request/response schemas for the JSON API.

Payloads use camelCase keys. Legacy field names sent by older clients
(``questionText``, ``questionType``, ``selectedAnswer``...) are folded into
the canonical shape here, before anything reaches the services.
"""

from datetime import datetime, timezone
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from exam_portal.models import EXAM_TYPES, GradedAnswer, Question


class ApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# --- Boundary normalisation ---


def _as_answer_string(value: Any) -> Optional[str]:
    """Coerce a JSON scalar to the string form used for grading."""
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def normalize_question(raw: Any) -> Any:
    """Map the various question shapes clients send onto the canonical one."""
    if not isinstance(raw, dict):
        return raw
    q = dict(raw)

    if "text" not in q and "questionText" in q:
        q["text"] = q.pop("questionText")
    if "type" not in q and "questionType" in q:
        q["type"] = q.pop("questionType")
    if "id" not in q and "_id" in q:
        q["id"] = q.pop("_id")
    q.setdefault("type", "multiple-choice")
    if q.get("id") is not None:
        q["id"] = str(q["id"])

    if q["type"] == "true-false":
        correct = q.get("correctAnswer", q.get("correct_answer"))
        if correct is None:
            # Some clients send true/false as two options with one flagged correct
            for option in q.get("options") or []:
                if isinstance(option, dict) and option.get("isCorrect"):
                    correct = str(option.get("text", "")).strip().lower()
                    break
        q.pop("correct_answer", None)
        q["correctAnswer"] = _as_answer_string(correct)
        q.pop("options", None)
    elif q["type"] in ("short-answer", "essay"):
        q.pop("options", None)
        q.pop("correctAnswer", None)
    return q


# --- Exams ---


def _naive_utc(value: Any) -> Any:
    """Store timestamps as naive UTC, matching datetime.utcnow()."""
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class ExamIn(ApiModel):
    title: str = Field(min_length=1, max_length=100)
    description: str = Field(min_length=1)
    duration: int = Field(ge=1, description="Exam length in minutes")
    start_time: datetime
    end_time: datetime
    exam_type: str = "quiz"
    is_active: bool = True
    passing_score: Optional[float] = Field(default=None, gt=0, le=1)
    questions: List[Question] = Field(default_factory=list)

    @field_validator("start_time", "end_time")
    @classmethod
    def to_naive_utc(cls, value: datetime) -> datetime:
        return _naive_utc(value)

    @field_validator("title", "description", mode="before")
    @classmethod
    def strip(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("exam_type")
    @classmethod
    def known_exam_type(cls, value: str) -> str:
        if value not in EXAM_TYPES:
            raise ValueError(f"{value} is not a valid exam type")
        return value

    @field_validator("questions", mode="before")
    @classmethod
    def normalize_questions(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [normalize_question(q) for q in value]
        return value


class ExamUpdateIn(ApiModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, min_length=1)
    duration: Optional[int] = Field(default=None, ge=1)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    exam_type: Optional[str] = None
    is_active: Optional[bool] = None
    passing_score: Optional[float] = Field(default=None, gt=0, le=1)

    @field_validator("start_time", "end_time")
    @classmethod
    def to_naive_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _naive_utc(value)

    @field_validator("title", "description", mode="before")
    @classmethod
    def strip(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("exam_type")
    @classmethod
    def known_exam_type(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and value not in EXAM_TYPES:
            raise ValueError(f"{value} is not a valid exam type")
        return value


class QuestionsIn(ApiModel):
    questions: List[Question]

    @field_validator("questions", mode="before")
    @classmethod
    def normalize_questions(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [normalize_question(q) for q in value]
        return value


class ExamOut(ApiModel):
    id: int
    title: str
    description: str
    teacher_id: int
    duration: int
    start_time: datetime
    end_time: datetime
    exam_type: str
    is_active: bool
    passing_score: Optional[float] = None
    total_points: int
    questions: List[dict]
    created_at: datetime
    updated_at: datetime


# --- Submissions ---


class AnswerIn(ApiModel):
    question_id: str = Field(min_length=1)
    answer: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def fold_legacy_fields(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if "answer" not in data:
            for legacy in ("selectedAnswer", "writtenAnswer"):
                if data.get(legacy) is not None:
                    data["answer"] = data[legacy]
                    break
        if "answer" in data:
            data["answer"] = _as_answer_string(data["answer"])
        if data.get("questionId") is not None:
            data["questionId"] = str(data["questionId"])
        return data


class SubmitIn(ApiModel):
    answers: List[AnswerIn] = Field(default_factory=list)


class SubmitOut(ApiModel):
    message: str = "Exam submitted successfully"
    submission_id: int
    total_score: int
    max_possible_score: int
    is_passed: bool
    manual_grading_pending: bool
    warnings: List[str] = Field(default_factory=list)


class SubmissionOut(ApiModel):
    id: int
    exam_id: int
    exam_title: Optional[str] = None
    student_id: int
    answers: List[GradedAnswer]
    start_time: datetime
    end_time: datetime
    total_score: int
    max_possible_score: int
    is_passed: bool
    is_submitted: bool
    is_graded: bool
    manual_grading_pending: bool
    submitted_at: datetime


class Statistics(ApiModel):
    passed: int = 0
    failed: int = 0
    not_submitted: int = 0
    pass_rate: str = "0.00%"


class SubmissionSummaryOut(ApiModel):
    id: int
    student_id: int
    student_name: Optional[str] = None
    student_email: Optional[str] = None
    total_score: int
    max_possible_score: int
    is_passed: bool
    is_submitted: bool
    is_graded: bool
    manual_grading_pending: bool
    submitted_at: datetime


class ExamResultsOut(ApiModel):
    exam_title: str
    total_students: int
    statistics: Statistics
    submissions: List[SubmissionSummaryOut] = Field(default_factory=list)


# --- Courses ---


class CourseIn(ApiModel):
    course_name: str = ""
    course_code: str = ""
    description: str = ""
    department: str = ""
    level: Optional[int] = None


class CourseUpdateIn(ApiModel):
    course_name: Optional[str] = None
    course_code: Optional[str] = None
    description: Optional[str] = None
    department: Optional[str] = None
    level: Optional[int] = None
    is_active: Optional[bool] = None


class CourseOut(ApiModel):
    id: int
    course_code: str
    course_name: str
    description: str
    department: str
    level: int
    teacher_id: int
    teacher_name: Optional[str] = None
    teacher_email: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


# --- Accounts ---


class TeacherRegisterIn(ApiModel):
    first_name: str
    last_name: str
    email: str
    password: str
    department: str
    phone_number: Optional[str] = None
    subjects: List[str] = Field(default_factory=list)


class StudentRegisterIn(ApiModel):
    first_name: str
    last_name: str
    email: str
    password: str
    student_id: str
    department: str
    level: int = Field(ge=1, le=5)
    phone_number: Optional[str] = None


class LoginIn(ApiModel):
    email: str
    password: str


class UserOut(ApiModel):
    id: int
    first_name: str
    last_name: str
    email: str
    role: str
    department: Optional[str] = None
    phone_number: Optional[str] = None
    student_number: Optional[str] = None
    level: Optional[int] = None
    subjects: List[str] = Field(default_factory=list)


class TokenOut(ApiModel):
    message: str
    token: str
    user: UserOut
