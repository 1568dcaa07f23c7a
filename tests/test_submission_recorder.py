"""Tests for SubmissionRecorder: grading, pass/fail, timestamps and persistence."""

from datetime import datetime, timedelta

import pytest
from sqlmodel import select

from exam_portal.config import Settings
from exam_portal.models import Submission
from exam_portal.services.grading import SubmittedAnswer
from exam_portal.services.submission_service import (
    SubmissionRecorder,
    latest_submission,
    list_submissions,
)

NOW = datetime(2026, 3, 14, 10, 30)


@pytest.fixture
def recorder(settings):
    return SubmissionRecorder(settings)


def test_one_correct_answer_fails_two_question_exam(recorder, session, mc_exam, student_user):
    record = recorder.submit(
        session,
        mc_exam,
        student_user.id,
        [SubmittedAnswer("q1", "1"), SubmittedAnswer("q2", "0")],
        now=NOW,
    )

    assert record.total_score == 5
    assert record.is_passed is False
    assert record.submission.max_possible_score == 15


def test_all_correct_answers_pass(recorder, session, mc_exam, student_user):
    record = recorder.submit(
        session,
        mc_exam,
        student_user.id,
        [SubmittedAnswer("q1", "1"), SubmittedAnswer("q2", "3")],
        now=NOW,
    )

    assert record.total_score == 15
    assert record.is_passed is True


def test_submission_is_persisted_with_flags_and_times(recorder, session, mc_exam, student_user):
    record = recorder.submit(session, mc_exam, student_user.id, [SubmittedAnswer("q1", "1")], now=NOW)

    stored = session.get(Submission, record.submission_id)
    assert stored is not None
    assert stored.exam_id == mc_exam.id
    assert stored.student_id == student_user.id
    assert stored.is_submitted is True
    assert stored.is_graded is True
    assert stored.submitted_at == NOW
    assert stored.end_time == NOW
    # Start is approximated from the exam duration
    assert stored.start_time == NOW - timedelta(minutes=mc_exam.duration_minutes)
    assert stored.answers == [
        {"questionId": "q1", "answer": "1", "isCorrect": True, "pointsEarned": 5},
    ]


def test_empty_answers_are_rejected_without_writing(recorder, session, mc_exam, student_user):
    with pytest.raises(ValueError):
        recorder.submit(session, mc_exam, student_user.id, [], now=NOW)

    assert session.exec(select(Submission)).all() == []


def test_missing_exam_is_rejected(recorder, session, student_user):
    with pytest.raises(LookupError):
        recorder.submit(session, None, student_user.id, [SubmittedAnswer("q1", "1")], now=NOW)


def test_unknown_question_produces_warning_not_error(recorder, session, mc_exam, student_user):
    record = recorder.submit(
        session,
        mc_exam,
        student_user.id,
        [SubmittedAnswer("q1", "1"), SubmittedAnswer("bogus", "1")],
        now=NOW,
    )

    assert record.total_score == 5
    assert len(record.submission.answers) == 1
    assert len(record.warnings) == 1


def test_written_questions_count_toward_maximum_and_stay_pending(recorder, session, mixed_exam, student_user):
    # mc (2) + tf (3) correct; essay (5) cannot be auto-graded -> 5 / 10
    record = recorder.submit(
        session,
        mixed_exam,
        student_user.id,
        [
            SubmittedAnswer("mc", "0"),
            SubmittedAnswer("tf", "true"),
            SubmittedAnswer("essay", "Recursion is..."),
        ],
        now=NOW,
    )

    assert record.total_score == 5
    assert record.submission.max_possible_score == 10
    assert record.is_passed is False
    # Still reported as graded; the pending flag is separate
    assert record.submission.is_graded is True
    assert record.submission.manual_grading_pending is True


def test_default_passing_score_applies_when_exam_has_none(session, mixed_exam, student_user):
    recorder = SubmissionRecorder(Settings(default_passing_score=0.5))
    record = recorder.submit(
        session,
        mixed_exam,
        student_user.id,
        [SubmittedAnswer("mc", "0"), SubmittedAnswer("tf", "true")],
        now=NOW,
    )

    assert mixed_exam.passing_score is None
    assert record.is_passed is True  # 5 >= 10 * 0.5


def test_resubmission_allowed_by_default(recorder, session, mc_exam, student_user):
    recorder.submit(session, mc_exam, student_user.id, [SubmittedAnswer("q1", "0")], now=NOW)
    recorder.submit(session, mc_exam, student_user.id, [SubmittedAnswer("q1", "1")], now=NOW + timedelta(minutes=5))

    assert len(list_submissions(session, mc_exam.id)) == 2
    latest = latest_submission(session, mc_exam.id, student_user.id)
    assert latest.total_score == 5


def test_resubmission_can_be_disabled(session, mc_exam, student_user):
    recorder = SubmissionRecorder(Settings(allow_resubmission=False))
    recorder.submit(session, mc_exam, student_user.id, [SubmittedAnswer("q1", "0")], now=NOW)

    with pytest.raises(ValueError, match="already submitted"):
        recorder.submit(session, mc_exam, student_user.id, [SubmittedAnswer("q1", "1")], now=NOW)

    assert len(list_submissions(session, mc_exam.id)) == 1


def test_other_students_are_not_blocked_by_resubmission_rule(session, mc_exam, student_user, second_student):
    recorder = SubmissionRecorder(Settings(allow_resubmission=False))
    recorder.submit(session, mc_exam, student_user.id, [SubmittedAnswer("q1", "1")], now=NOW)
    recorder.submit(session, mc_exam, second_student.id, [SubmittedAnswer("q1", "1")], now=NOW)

    assert len(list_submissions(session, mc_exam.id)) == 2
