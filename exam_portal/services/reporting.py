"""Summary statistics over the submissions of one exam."""

from typing import Dict, Iterable, List, Optional, Sequence

from exam_portal.models import Exam, Submission, User
from exam_portal.schemas import ExamResultsOut, Statistics, SubmissionSummaryOut


def format_pass_rate(passed: int, total: int) -> str:
    if total == 0:
        return "0.00%"
    return f"{passed / total * 100:.2f}%"


def summarize(submissions: Iterable[Submission]) -> Statistics:
    """Count passed / failed / not submitted rows and compute the pass rate.

    An empty input yields all-zero statistics with a ``"0.00%"`` pass rate.
    """
    passed = failed = not_submitted = total = 0
    for submission in submissions:
        total += 1
        if submission.is_passed:
            passed += 1
        if submission.is_submitted and not submission.is_passed:
            failed += 1
        if not submission.is_submitted:
            not_submitted += 1

    return Statistics(
        passed=passed,
        failed=failed,
        not_submitted=not_submitted,
        pass_rate=format_pass_rate(passed, total),
    )


def build_exam_results(
    exam: Exam,
    submissions: Sequence[Submission],
    students: Optional[Dict[int, User]] = None,
) -> ExamResultsOut:
    """Assemble the teacher-facing results payload, best scores first."""
    students = students or {}
    rows: List[SubmissionSummaryOut] = []
    for submission in sorted(submissions, key=lambda s: s.total_score, reverse=True):
        student = students.get(submission.student_id)
        rows.append(
            SubmissionSummaryOut(
                id=submission.id,
                student_id=submission.student_id,
                student_name=student.full_name if student else None,
                student_email=student.email if student else None,
                total_score=submission.total_score,
                max_possible_score=submission.max_possible_score,
                is_passed=submission.is_passed,
                is_submitted=submission.is_submitted,
                is_graded=submission.is_graded,
                manual_grading_pending=submission.manual_grading_pending,
                submitted_at=submission.submitted_at,
            )
        )

    return ExamResultsOut(
        exam_title=exam.title,
        # Submission rows, not distinct students: resubmissions count again
        total_students=len(submissions),
        statistics=summarize(submissions),
        submissions=rows,
    )
