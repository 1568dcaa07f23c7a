"""Exam management, submission and results routes."""

import logging
from datetime import datetime
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session, select

from exam_portal.config import Settings, get_settings
from exam_portal.database import get_session
from exam_portal.deps import get_submission_recorder, require_login, require_role
from exam_portal.models import Exam, User
from exam_portal.schemas import (
    ExamIn,
    ExamOut,
    ExamResultsOut,
    ExamUpdateIn,
    QuestionsIn,
    SubmissionOut,
    SubmitIn,
    SubmitOut,
)
from exam_portal.services import exam_service
from exam_portal.services.grading import SubmittedAnswer
from exam_portal.services.reporting import build_exam_results
from exam_portal.services.submission_service import (
    SubmissionRecorder,
    latest_submission,
    list_submissions,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_exam(exam_id: int, session: Session) -> Exam:
    """Get exam by ID or raise 404."""
    exam = session.get(Exam, exam_id)
    if not exam:
        raise HTTPException(status_code=404, detail="Exam not found")
    return exam


def _get_owned_exam(exam_id: int, session: Session, teacher: User) -> Exam:
    """Get an exam the given teacher created, or raise 404/403."""
    exam = _get_exam(exam_id, session)
    if exam.teacher_id != teacher.id:
        raise HTTPException(status_code=403, detail="You can only manage your own exams")
    return exam


def _exam_out(exam: Exam) -> ExamOut:
    return ExamOut(
        id=exam.id,
        title=exam.title,
        description=exam.description,
        teacher_id=exam.teacher_id,
        duration=exam.duration_minutes,
        start_time=exam.start_time,
        end_time=exam.end_time,
        exam_type=exam.exam_type,
        is_active=exam.is_active,
        passing_score=exam.passing_score,
        total_points=exam.total_points,
        questions=exam.questions or [],
        created_at=exam.created_at,
        updated_at=exam.updated_at,
    )


def _student_question_view(question: Dict[str, Any]) -> Dict[str, Any]:
    """Drop answer keys from a stored question document."""
    view = {key: question.get(key) for key in ("id", "type", "text", "points")}
    if question.get("type") == "multiple-choice":
        view["options"] = [{"text": option.get("text")} for option in question.get("options") or []]
    elif question.get("type") == "true-false":
        view["options"] = [{"text": "true"}, {"text": "false"}]
    return view


def _student_exam_out(exam: Exam) -> ExamOut:
    out = _exam_out(exam)
    out.questions = [_student_question_view(q) for q in exam.questions or []]
    return out


@router.get("/public", response_model=List[ExamOut])
def public_exams(session: Session = Depends(get_session)):
    """Currently open exams, without answers; no login needed."""
    return [_student_exam_out(exam) for exam in exam_service.list_active_exams(session)]


@router.post("/", response_model=ExamOut, status_code=status.HTTP_201_CREATED)
def create_exam(
    payload: ExamIn,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_role(["teacher"])),
):
    try:
        exam = exam_service.create_exam(
            session,
            teacher_id=current_user.id,
            title=payload.title,
            description=payload.description,
            duration_minutes=payload.duration,
            start_time=payload.start_time,
            end_time=payload.end_time,
            questions=payload.questions,
            exam_type=payload.exam_type,
            is_active=payload.is_active,
            passing_score=payload.passing_score,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _exam_out(exam)


@router.get("/teacher", response_model=List[ExamOut])
def teacher_exams(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_role(["teacher"])),
):
    return [_exam_out(exam) for exam in exam_service.list_teacher_exams(session, current_user.id)]


@router.get("/active", response_model=List[ExamOut])
def active_exams(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_login),
):
    exams = exam_service.list_active_exams(session)
    if current_user.role == "teacher":
        return [_exam_out(exam) for exam in exams]
    return [_student_exam_out(exam) for exam in exams]


@router.get("/{exam_id}", response_model=ExamOut)
def exam_details(
    exam_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_login),
):
    exam = _get_exam(exam_id, session)
    # Students never see which answers are correct
    if current_user.role == "student":
        return _student_exam_out(exam)
    return _exam_out(exam)


@router.put("/{exam_id}", response_model=ExamOut)
def update_exam(
    exam_id: int,
    payload: ExamUpdateIn,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_role(["teacher"])),
):
    exam = _get_owned_exam(exam_id, session, current_user)
    changes = payload.model_dump(exclude_unset=True)
    if "duration" in changes:
        changes["duration_minutes"] = changes.pop("duration")
    # Only passing_score may be cleared back to the default
    changes = {k: v for k, v in changes.items() if v is not None or k == "passing_score"}
    try:
        exam = exam_service.update_exam(session, exam, changes)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _exam_out(exam)


@router.put("/{exam_id}/questions", response_model=ExamOut)
def update_exam_questions(
    exam_id: int,
    payload: QuestionsIn,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_role(["teacher"])),
):
    exam = _get_owned_exam(exam_id, session, current_user)
    try:
        exam = exam_service.replace_questions(session, exam, payload.questions)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _exam_out(exam)


@router.delete("/{exam_id}")
def delete_exam(
    exam_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_role(["teacher"])),
):
    exam = _get_owned_exam(exam_id, session, current_user)
    exam_service.delete_exam(session, exam)
    return {"message": "Exam deleted successfully"}


@router.post("/{exam_id}/submit", response_model=SubmitOut)
def submit_exam(
    exam_id: int,
    payload: SubmitIn,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
    recorder: SubmissionRecorder = Depends(get_submission_recorder),
    current_user: User = Depends(require_role(["student"])),
):
    """Submit answers for auto-grading."""
    exam = _get_exam(exam_id, session)

    now = datetime.utcnow()
    if settings.enforce_exam_window and not exam_service.is_open(exam, now):
        raise HTTPException(status_code=400, detail="Exam is not active")

    answers = [SubmittedAnswer(question_id=a.question_id, answer=a.answer) for a in payload.answers]
    try:
        record = recorder.submit(session, exam, current_user.id, answers, now=now)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return SubmitOut(
        submission_id=record.submission_id,
        total_score=record.total_score,
        max_possible_score=record.submission.max_possible_score,
        is_passed=record.is_passed,
        manual_grading_pending=record.submission.manual_grading_pending,
        warnings=record.warnings,
    )


@router.get("/{exam_id}/results")
def exam_results(
    exam_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_login),
):
    """Teachers get statistics for their exam; students get their own submission."""
    exam = _get_exam(exam_id, session)

    if current_user.role == "teacher":
        if exam.teacher_id != current_user.id:
            raise HTTPException(status_code=403, detail="You can only view results for your own exams")
        submissions = list_submissions(session, exam_id)
        student_ids = {s.student_id for s in submissions}
        students = {}
        if student_ids:
            students = {u.id: u for u in session.exec(select(User).where(User.id.in_(student_ids))).all()}
        results: ExamResultsOut = build_exam_results(exam, submissions, students)
        return results.model_dump(mode="json", by_alias=True)

    submission = latest_submission(session, exam_id, current_user.id)
    if not submission:
        raise HTTPException(status_code=404, detail="Submission not found")
    out = SubmissionOut.model_validate(submission, from_attributes=True)
    out.exam_title = exam.title
    return out.model_dump(mode="json", by_alias=True)
