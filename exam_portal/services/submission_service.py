import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from sqlmodel import Session, select

from exam_portal.config import Settings
from exam_portal.models import Exam, Submission
from exam_portal.services.grading import (
    SubmittedAnswer,
    grade,
    is_passing,
    max_possible_score,
)

logger = logging.getLogger(__name__)


@dataclass
class SubmissionRecord:
    """A stored submission plus the grading warnings raised while scoring it."""

    submission: Submission
    warnings: List[str] = field(default_factory=list)

    @property
    def submission_id(self) -> Optional[int]:
        return self.submission.id

    @property
    def total_score(self) -> int:
        return self.submission.total_score

    @property
    def is_passed(self) -> bool:
        return self.submission.is_passed


class SubmissionRecorder:
    """Grades a student's answers and stores the resulting Submission.

    Every recorded submission is marked submitted and graded straight away.
    Written answers stay at zero points; ``manual_grading_pending`` on the
    stored row tells whether any of them still need a human grader.
    """

    def __init__(self, settings: Settings):
        self.settings = settings

    def passing_score_for(self, exam: Exam) -> float:
        return exam.passing_score or self.settings.default_passing_score

    def _has_submission(self, session: Session, exam_id: int, student_id: int) -> bool:
        stmt = select(Submission).where(
            (Submission.exam_id == exam_id)
            & (Submission.student_id == student_id)
            & (Submission.is_submitted == True)  # noqa: E712
        )
        return session.exec(stmt).first() is not None

    def submit(
        self,
        session: Session,
        exam: Optional[Exam],
        student_id: int,
        raw_answers: Sequence[SubmittedAnswer],
        now: Optional[datetime] = None,
    ) -> SubmissionRecord:
        """Grade and persist one attempt.

        Raises:
            LookupError: If the exam does not exist
            ValueError: If no answers were given, or the student already
                submitted and resubmission is disabled
        """
        if exam is None:
            raise LookupError("Exam not found")
        if not raw_answers:
            raise ValueError("At least one answer is required")
        if not self.settings.allow_resubmission and self._has_submission(session, exam.id, student_id):
            raise ValueError("Exam already submitted")

        now = now or datetime.utcnow()
        questions = exam.question_list()
        result = grade(questions, raw_answers)
        max_score = max_possible_score(questions)

        submission = Submission(
            exam_id=exam.id,
            student_id=student_id,
            answers=[a.model_dump(mode="json", by_alias=True) for a in result.graded_answers],
            # No per-student start tracking: assume the full duration was used
            start_time=now - timedelta(minutes=exam.duration_minutes),
            end_time=now,
            total_score=result.total_score,
            max_possible_score=max_score,
            is_passed=is_passing(result.total_score, max_score, self.passing_score_for(exam)),
            is_submitted=True,
            is_graded=True,
            manual_grading_pending=result.manual_grading_pending,
            submitted_at=now,
        )
        session.add(submission)
        session.commit()
        session.refresh(submission)

        for warning in result.warnings:
            logger.warning("Submission %s for exam %s: %s", submission.id, exam.id, warning)
        logger.info(
            "Submission for exam %s, student %s: score=%s/%s passed=%s",
            exam.id,
            student_id,
            submission.total_score,
            max_score,
            submission.is_passed,
        )
        return SubmissionRecord(submission=submission, warnings=list(result.warnings))


def list_submissions(session: Session, exam_id: int) -> List[Submission]:
    stmt = select(Submission).where(Submission.exam_id == exam_id)
    return list(session.exec(stmt).all())


def latest_submission(session: Session, exam_id: int, student_id: int) -> Optional[Submission]:
    stmt = (
        select(Submission)
        .where((Submission.exam_id == exam_id) & (Submission.student_id == student_id))
        .order_by(Submission.submitted_at.desc(), Submission.id.desc())
    )
    return session.exec(stmt).first()
