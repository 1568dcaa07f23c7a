import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlmodel import Session, select

from exam_portal.models import Course
from exam_portal.utils import sanitize_text

logger = logging.getLogger(__name__)

COURSE_CODE_MAX_LENGTH = 20
COURSE_NAME_MAX_LENGTH = 120
COURSE_DESCRIPTION_MAX_LENGTH = 500
COURSE_CODE_PATTERN = re.compile(r"^[A-Z0-9\-]+$")

EDITABLE_FIELDS = ("course_code", "course_name", "description", "department", "level", "is_active")


class CourseValidationError(ValueError):
    """Raised with a field -> message map when course details are invalid."""

    def __init__(self, errors: Dict[str, str]):
        super().__init__("Invalid course details")
        self.errors = errors


def clean_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Trim text fields and uppercase the course code."""
    cleaned = dict(fields)
    for key in ("course_name", "description", "department"):
        if isinstance(cleaned.get(key), str):
            cleaned[key] = sanitize_text(cleaned[key])
    if isinstance(cleaned.get("course_code"), str):
        cleaned["course_code"] = cleaned["course_code"].strip().upper()
    return cleaned


def validate_course(session: Session, fields: Dict[str, Any], course_id: Optional[int] = None) -> Dict[str, str]:
    """Validate a full set of course fields and return an error dictionary."""
    errors: Dict[str, str] = {}

    code = fields.get("course_code") or ""
    if not code:
        errors["courseCode"] = "Course code is required."
    elif len(code) > COURSE_CODE_MAX_LENGTH:
        errors["courseCode"] = f"Course code must be at most {COURSE_CODE_MAX_LENGTH} characters."
    elif not COURSE_CODE_PATTERN.match(code):
        errors["courseCode"] = "Course code can only contain letters, numbers, or hyphens."
    else:
        existing = session.exec(select(Course).where(Course.course_code == code)).first()
        if existing and existing.id != course_id:
            errors["courseCode"] = "Course code already exists."

    name = fields.get("course_name") or ""
    if not name:
        errors["courseName"] = "Course name is required."
    elif len(name) > COURSE_NAME_MAX_LENGTH:
        errors["courseName"] = f"Course name must be at most {COURSE_NAME_MAX_LENGTH} characters."

    description = fields.get("description") or ""
    if not description:
        errors["description"] = "Description is required."
    elif len(description) > COURSE_DESCRIPTION_MAX_LENGTH:
        errors["description"] = f"Course description must be at most {COURSE_DESCRIPTION_MAX_LENGTH} characters."

    if not fields.get("department"):
        errors["department"] = "Department is required."

    level = fields.get("level")
    if level is None:
        errors["level"] = "Level is required."
    elif not 1 <= level <= 5:
        errors["level"] = "Level must be between 1 and 5."

    return errors


def create_course(session: Session, teacher_id: int, fields: Dict[str, Any]) -> Course:
    """Create a course owned by ``teacher_id``.

    Raises:
        CourseValidationError: If any field is missing or invalid
    """
    fields = clean_fields(fields)
    errors = validate_course(session, fields)
    if errors:
        raise CourseValidationError(errors)

    course = Course(
        course_code=fields["course_code"],
        course_name=fields["course_name"],
        description=fields["description"],
        department=fields["department"],
        level=fields["level"],
        teacher_id=teacher_id,
    )
    session.add(course)
    session.commit()
    session.refresh(course)
    logger.info("Teacher %s created course %s (%s)", teacher_id, course.id, course.course_code)
    return course


def get_course(session: Session, course_id: int) -> Optional[Course]:
    return session.get(Course, course_id)


def list_courses(session: Session) -> List[Course]:
    stmt = select(Course).order_by(Course.course_code)
    return list(session.exec(stmt).all())


def list_teacher_courses(session: Session, teacher_id: int) -> List[Course]:
    stmt = select(Course).where(Course.teacher_id == teacher_id).order_by(Course.created_at.desc(), Course.id.desc())
    return list(session.exec(stmt).all())


def update_course(session: Session, course: Course, changes: Dict[str, Any]) -> Course:
    """Apply field changes to a course, revalidating the merged result."""
    for key in changes:
        if key not in EDITABLE_FIELDS:
            raise ValueError(f"Field {key!r} cannot be updated")

    changes = clean_fields(changes)
    merged = {key: getattr(course, key) for key in EDITABLE_FIELDS}
    merged.update(changes)
    errors = validate_course(session, merged, course_id=course.id)
    if errors:
        raise CourseValidationError(errors)

    for key, value in changes.items():
        setattr(course, key, value)
    course.updated_at = datetime.utcnow()
    session.add(course)
    session.commit()
    session.refresh(course)
    logger.info("Course %s updated (%s)", course.id, ", ".join(sorted(changes)) or "no changes")
    return course


def delete_course(session: Session, course: Course) -> None:
    course_id = course.id
    session.delete(course)
    session.commit()
    logger.info("Course %s deleted", course_id)
