"""Utility functions for sanitization and validation."""

from typing import List

import bleach

from exam_portal.models import MultipleChoiceQuestion, QuestionBase


def sanitize_text(text: str) -> str:
    """Strip all HTML from user-supplied text to prevent XSS."""
    sanitized = bleach.clean(text, tags=[], attributes={}, strip=True)
    return sanitized.strip()


def sanitize_questions(questions: List[QuestionBase]) -> List[QuestionBase]:
    """Return copies of the questions with their text sanitized.

    Raises:
        ValueError: If a question or option is left empty after sanitization
    """
    cleaned: List[QuestionBase] = []
    for position, question in enumerate(questions, start=1):
        text = sanitize_text(question.text)
        if not text:
            raise ValueError(f"Question {position} text cannot be empty after sanitization")
        update = {"text": text}

        if isinstance(question, MultipleChoiceQuestion):
            options = []
            for option in question.options:
                option_text = sanitize_text(option.text)
                if not option_text:
                    raise ValueError(f"Question {position} has an empty option")
                options.append(option.model_copy(update={"text": option_text}))
            update["options"] = options

        cleaned.append(question.model_copy(update=update))
    return cleaned


def validate_unique_question_ids(questions: List[QuestionBase]) -> bool:
    """Question ids must be unique within an exam.

    Raises:
        ValueError: If two questions share an id
    """
    seen = set()
    for question in questions:
        if question.id in seen:
            raise ValueError(f"Duplicate question id {question.id!r}")
        seen.add(question.id)
    return True
