import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlmodel import Session, select

from exam_portal.models import Exam, QuestionBase, Submission, dump_questions
from exam_portal.utils import sanitize_questions, validate_unique_question_ids

logger = logging.getLogger(__name__)

# Columns an owner may change through update_exam()
EDITABLE_FIELDS = (
    "title",
    "description",
    "duration_minutes",
    "start_time",
    "end_time",
    "exam_type",
    "is_active",
    "passing_score",
)


def _validate_window(start_time: datetime, end_time: datetime) -> None:
    if end_time <= start_time:
        raise ValueError("End time must be after start time")


def _set_questions(exam: Exam, questions: List[QuestionBase]) -> None:
    questions = sanitize_questions(questions)
    validate_unique_question_ids(questions)
    exam.questions = dump_questions(questions)


def _save(session: Session, exam: Exam) -> Exam:
    """Persist an exam, recomputing its derived total points."""
    _validate_window(exam.start_time, exam.end_time)
    exam.total_points = sum(q.points for q in exam.question_list())
    exam.updated_at = datetime.utcnow()
    session.add(exam)
    session.commit()
    session.refresh(exam)
    return exam


def create_exam(
    session: Session,
    teacher_id: int,
    title: str,
    description: str,
    duration_minutes: int,
    start_time: datetime,
    end_time: datetime,
    questions: Optional[List[QuestionBase]] = None,
    exam_type: str = "quiz",
    is_active: bool = True,
    passing_score: Optional[float] = None,
) -> Exam:
    if duration_minutes < 1:
        raise ValueError("Duration must be at least 1 minute")

    exam = Exam(
        title=title,
        description=description,
        teacher_id=teacher_id,
        duration_minutes=duration_minutes,
        start_time=start_time,
        end_time=end_time,
        exam_type=exam_type,
        is_active=is_active,
        passing_score=passing_score,
    )
    _set_questions(exam, questions or [])
    exam = _save(session, exam)
    logger.info("Teacher %s created exam %s (%s)", teacher_id, exam.id, exam.title)
    return exam


def get_exam(session: Session, exam_id: int) -> Optional[Exam]:
    return session.get(Exam, exam_id)


def list_teacher_exams(session: Session, teacher_id: int) -> List[Exam]:
    stmt = select(Exam).where(Exam.teacher_id == teacher_id).order_by(Exam.created_at.desc(), Exam.id.desc())
    return list(session.exec(stmt).all())


def list_active_exams(session: Session, now: Optional[datetime] = None) -> List[Exam]:
    """Exams flagged active whose window contains ``now``, soonest first."""
    now = now or datetime.utcnow()
    stmt = (
        select(Exam)
        .where(Exam.is_active == True)  # noqa: E712
        .where(Exam.start_time <= now)
        .where(Exam.end_time >= now)
        .order_by(Exam.start_time)
    )
    return list(session.exec(stmt).all())


def is_open(exam: Exam, now: datetime) -> bool:
    return exam.is_active and exam.start_time <= now <= exam.end_time


def update_exam(session: Session, exam: Exam, changes: Dict[str, Any]) -> Exam:
    """Apply field changes to an exam.

    Raises:
        ValueError: If an unknown field is given or the new window is invalid
    """
    for key, value in changes.items():
        if key not in EDITABLE_FIELDS:
            raise ValueError(f"Field {key!r} cannot be updated")
        setattr(exam, key, value)
    exam = _save(session, exam)
    logger.info("Exam %s updated (%s)", exam.id, ", ".join(sorted(changes)) or "no changes")
    return exam


def replace_questions(session: Session, exam: Exam, questions: List[QuestionBase]) -> Exam:
    _set_questions(exam, questions)
    exam = _save(session, exam)
    logger.info("Exam %s now has %d questions worth %d points", exam.id, len(questions), exam.total_points)
    return exam


def delete_exam(session: Session, exam: Exam) -> None:
    """Delete an exam together with its submissions."""
    exam_id = exam.id
    for submission in session.exec(select(Submission).where(Submission.exam_id == exam_id)).all():
        session.delete(submission)
    session.delete(exam)
    session.commit()
    logger.info("Exam %s deleted", exam_id)
