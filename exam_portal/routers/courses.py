"""Course management routes."""

from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session, select

from exam_portal.database import get_session
from exam_portal.deps import require_role
from exam_portal.models import Course, User
from exam_portal.schemas import CourseIn, CourseOut, CourseUpdateIn
from exam_portal.services import course_service
from exam_portal.services.course_service import CourseValidationError

router = APIRouter()


def _get_course(course_id: int, session: Session) -> Course:
    course = course_service.get_course(session, course_id)
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")
    return course


def _get_owned_course(course_id: int, session: Session, teacher: User) -> Course:
    course = _get_course(course_id, session)
    if course.teacher_id != teacher.id:
        raise HTTPException(status_code=403, detail="You can only manage your own courses")
    return course


def _course_out(course: Course, teacher: Optional[User]) -> CourseOut:
    out = CourseOut.model_validate(course)
    if teacher:
        out.teacher_name = teacher.full_name
        out.teacher_email = teacher.email
    return out


def _courses_out(courses: List[Course], session: Session) -> List[CourseOut]:
    teacher_ids = {c.teacher_id for c in courses}
    teachers: Dict[int, User] = {}
    if teacher_ids:
        teachers = {u.id: u for u in session.exec(select(User).where(User.id.in_(teacher_ids))).all()}
    return [_course_out(c, teachers.get(c.teacher_id)) for c in courses]


def _invalid(e: CourseValidationError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"message": "Invalid course details", "errors": e.errors},
    )


@router.get("/", response_model=List[CourseOut])
def list_courses(session: Session = Depends(get_session)):
    """All courses with their teacher; no login needed."""
    return _courses_out(course_service.list_courses(session), session)


@router.post("/", response_model=CourseOut, status_code=status.HTTP_201_CREATED)
def create_course(
    payload: CourseIn,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_role(["teacher"])),
):
    try:
        course = course_service.create_course(session, current_user.id, payload.model_dump())
    except CourseValidationError as e:
        raise _invalid(e)
    return _course_out(course, current_user)


@router.get("/my-courses", response_model=List[CourseOut])
def my_courses(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_role(["teacher"])),
):
    courses = course_service.list_teacher_courses(session, current_user.id)
    return [_course_out(c, current_user) for c in courses]


@router.get("/{course_id}", response_model=CourseOut)
def course_details(course_id: int, session: Session = Depends(get_session)):
    course = _get_course(course_id, session)
    return _course_out(course, session.get(User, course.teacher_id))


@router.put("/{course_id}", response_model=CourseOut)
def update_course(
    course_id: int,
    payload: CourseUpdateIn,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_role(["teacher"])),
):
    course = _get_owned_course(course_id, session, current_user)
    changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    try:
        course = course_service.update_course(session, course, changes)
    except CourseValidationError as e:
        raise _invalid(e)
    return _course_out(course, current_user)


@router.delete("/{course_id}")
def delete_course(
    course_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_role(["teacher"])),
):
    course = _get_owned_course(course_id, session, current_user)
    course_service.delete_course(session, course)
    return {"message": "Course deleted successfully"}
