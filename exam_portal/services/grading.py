"""Auto-grading of submitted answers.

Everything here is pure: no database access and no shared state. Malformed or
unmatched answers never raise; they score zero and leave a warning behind so
callers can surface the anomaly.
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

from exam_portal.models import (
    GradedAnswer,
    MultipleChoiceQuestion,
    QuestionBase,
    TrueFalseQuestion,
)

DEFAULT_PASSING_SCORE = 0.6


@dataclass
class SubmittedAnswer:
    question_id: str
    answer: Optional[str] = None


@dataclass
class GradingResult:
    graded_answers: List[GradedAnswer] = field(default_factory=list)
    total_score: int = 0
    warnings: List[str] = field(default_factory=list)
    # Written questions that were answered and still need a human grader
    pending_question_ids: List[str] = field(default_factory=list)

    @property
    def manual_grading_pending(self) -> bool:
        return bool(self.pending_question_ids)


def _grade_multiple_choice(question: MultipleChoiceQuestion, answer: Optional[str], warnings: List[str]) -> bool:
    try:
        index = int(str(answer).strip())
    except (TypeError, ValueError):
        warnings.append(f"Question {question.id}: answer {answer!r} is not an option index")
        return False

    # Negative indices would wrap around in Python; treat them as out of range
    if index < 0 or index >= len(question.options):
        warnings.append(f"Question {question.id}: option index {index} is out of range")
        return False
    return question.options[index].is_correct


def grade_answer(question: QuestionBase, answer: Optional[str], warnings: List[str]) -> GradedAnswer:
    """Score a single answer against its question."""
    if isinstance(question, MultipleChoiceQuestion):
        is_correct = _grade_multiple_choice(question, answer, warnings)
    elif isinstance(question, TrueFalseQuestion):
        is_correct = answer is not None and answer == question.correct_answer
    else:
        # Written answers are kept for a human grader
        is_correct = False

    return GradedAnswer(
        question_id=question.id,
        answer=answer,
        is_correct=is_correct,
        points_earned=question.points if is_correct else 0,
    )


def grade(questions: Sequence[QuestionBase], submitted_answers: Iterable[SubmittedAnswer]) -> GradingResult:
    """Grade submitted answers against an exam's questions.

    Answers whose ``question_id`` does not belong to the exam are skipped: they
    produce no graded entry and add nothing to the total. Repeated answers
    to the same question are each graded and flagged with a warning.
    """
    by_id = {q.id: q for q in questions}
    result = GradingResult()
    seen = set()

    for submitted in submitted_answers:
        question = by_id.get(submitted.question_id)
        if question is None:
            result.warnings.append(f"Unknown question id {submitted.question_id!r} was ignored")
            continue

        if question.id in seen:
            result.warnings.append(f"Question {question.id} was answered more than once")
        seen.add(question.id)

        graded = grade_answer(question, submitted.answer, result.warnings)
        result.graded_answers.append(graded)
        result.total_score += graded.points_earned
        if not question.auto_gradable:
            result.pending_question_ids.append(question.id)

    return result


def max_possible_score(questions: Sequence[QuestionBase]) -> int:
    """Sum of every question's points, written questions included."""
    return sum(q.points for q in questions)


def is_passing(total_score: float, max_score: float, passing_score: Optional[float] = None) -> bool:
    threshold = passing_score or DEFAULT_PASSING_SCORE
    return total_score >= max_score * threshold
