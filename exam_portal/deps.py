"""Shared FastAPI dependencies for database access, settings and authentication."""

import logging
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, Request, status
from sqlmodel import Session

from exam_portal.auth_utils import decode_access_token
from exam_portal.config import Settings, get_settings
from exam_portal.database import get_session
from exam_portal.models import User
from exam_portal.services.submission_service import SubmissionRecorder

logger = logging.getLogger(__name__)


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization")
    if not header:
        return None
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return token.strip()


def get_current_user(
    request: Request,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> Optional[User]:
    """Return the user identified by the bearer token, if any."""
    token = _bearer_token(request)
    if not token:
        return None

    try:
        payload = decode_access_token(token, settings)
    except jwt.InvalidTokenError as exc:
        logger.info("Rejected access token: %s", exc)
        return None

    user_id = payload.get("userId")
    if not isinstance(user_id, int):
        return None

    user = session.get(User, user_id)
    if not user or not user.is_active:
        return None
    return user


def require_login(current_user: Optional[User] = Depends(get_current_user)) -> User:
    """Ensure that a valid token was presented."""
    if current_user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token is not valid",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return current_user


def require_role(required_roles: list[str]):
    """Dependency factory that enforces one of the given roles."""

    def wrapper(current_user: User = Depends(require_login)) -> User:
        if current_user.role not in required_roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
        return current_user

    return wrapper


def get_submission_recorder(settings: Settings = Depends(get_settings)) -> SubmissionRecorder:
    return SubmissionRecorder(settings)
