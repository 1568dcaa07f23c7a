"""Account registration, login and profile routes."""

import logging
from typing import Union

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session, select

from exam_portal.auth_utils import create_access_token, hash_password, verify_password
from exam_portal.config import Settings, get_settings
from exam_portal.database import get_session
from exam_portal.deps import require_login
from exam_portal.email_validator import validate_email_format
from exam_portal.models import User
from exam_portal.schemas import (
    LoginIn,
    StudentRegisterIn,
    TeacherRegisterIn,
    TokenOut,
    UserOut,
)

logger = logging.getLogger(__name__)

router = APIRouter()

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 128


def _validate_registration(
    payload: Union[TeacherRegisterIn, StudentRegisterIn], session: Session
) -> dict[str, str]:
    """Validate common registration fields and return error dictionary."""
    errors: dict[str, str] = {}

    if not payload.first_name.strip():
        errors["firstName"] = "First name is required."
    if not payload.last_name.strip():
        errors["lastName"] = "Last name is required."
    if not payload.department.strip():
        errors["department"] = "Department is required."

    email_clean = payload.email.strip().lower()
    email_error = validate_email_format(email_clean)
    if email_error:
        errors["email"] = email_error
    elif session.exec(select(User).where(User.email == email_clean)).first():
        errors["email"] = "This email is already registered. Please login instead."

    if len(payload.password) < PASSWORD_MIN_LENGTH:
        errors["password"] = f"Password must be at least {PASSWORD_MIN_LENGTH} characters long."
    elif len(payload.password) > PASSWORD_MAX_LENGTH:
        errors["password"] = f"Password must not exceed {PASSWORD_MAX_LENGTH} characters."

    if payload.phone_number:
        phone_digits = "".join(filter(str.isdigit, payload.phone_number))
        if len(phone_digits) < 7 or len(phone_digits) > 15:
            errors["phoneNumber"] = "Please enter a valid phone number (7-15 digits)."

    return errors


def _token_response(user: User, message: str, settings: Settings) -> TokenOut:
    token = create_access_token(user.id, user.role, settings)
    return TokenOut(message=message, token=token, user=UserOut.model_validate(user))


@router.post("/register/teacher", response_model=TokenOut, status_code=status.HTTP_201_CREATED)
def register_teacher(
    payload: TeacherRegisterIn,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
):
    errors = _validate_registration(payload, session)
    if errors:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": "Invalid registration details", "errors": errors},
        )

    user = User(
        first_name=payload.first_name.strip(),
        last_name=payload.last_name.strip(),
        email=payload.email.strip().lower(),
        password_hash=hash_password(payload.password),
        role="teacher",
        department=payload.department.strip(),
        phone_number=payload.phone_number,
        subjects=[s.strip() for s in payload.subjects if s.strip()],
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    logger.info("Registered teacher %s (%s)", user.id, user.email)
    return _token_response(user, "Teacher registered successfully", settings)


@router.post("/register/student", response_model=TokenOut, status_code=status.HTTP_201_CREATED)
def register_student(
    payload: StudentRegisterIn,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
):
    errors = _validate_registration(payload, session)

    student_number = payload.student_id.strip()
    if not student_number:
        errors["studentId"] = "Student ID is required."
    elif session.exec(select(User).where(User.student_number == student_number)).first():
        errors["studentId"] = "This Student ID is already registered."

    if errors:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": "Invalid registration details", "errors": errors},
        )

    user = User(
        first_name=payload.first_name.strip(),
        last_name=payload.last_name.strip(),
        email=payload.email.strip().lower(),
        password_hash=hash_password(payload.password),
        role="student",
        department=payload.department.strip(),
        phone_number=payload.phone_number,
        student_number=student_number,
        level=payload.level,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    logger.info("Registered student %s (%s)", user.id, user.email)
    return _token_response(user, "Student registered successfully", settings)


@router.post("/login", response_model=TokenOut)
def login(
    payload: LoginIn,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
):
    email_clean = payload.email.strip().lower()
    if not email_clean or not payload.password:
        raise HTTPException(status_code=400, detail="Email and password are required")

    user = session.exec(select(User).where(User.email == email_clean)).first()
    if not user or not verify_password(payload.password, user.password_hash):
        logger.info("Failed login for %s", email_clean)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is disabled")

    logger.info("User %s logged in as %s", user.id, user.role)
    return _token_response(user, "Login successful", settings)


@router.get("/me", response_model=UserOut)
def profile(current_user: User = Depends(require_login)):
    return current_user
