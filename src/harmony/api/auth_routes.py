from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, Query, Response, status
from sqlalchemy.orm import Session

from harmony.api.deps import get_current_user, get_db
from harmony.api.schemas import AvailabilityResponse, ForgotPasswordRequest, LoginRequest, MessageResponse
from harmony.config import get_settings
from harmony.core.security import create_session_token
from harmony.db.models import User
from harmony.db.repositories import Repository
from harmony.errors import ForbiddenError, UnauthorizedError
from harmony.types import UserView
from harmony.validation import validate_insert

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["auth"])


def _set_session_cookie(response: Response, user: User, *, is_admin: bool = False) -> None:
    settings = get_settings()
    response.set_cookie(
        key=settings.session_cookie_name,
        value=create_session_token(user.id, is_admin=is_admin, settings=settings),
        max_age=settings.session_ttl_min * 60,
        httponly=True,
        samesite="lax",
        secure=settings.session_cookie_secure,
    )


def _clear_session_cookie(response: Response) -> None:
    response.delete_cookie(get_settings().session_cookie_name)


@router.post("/register", response_model=UserView, status_code=status.HTTP_201_CREATED)
def register(
    response: Response,
    payload: dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
) -> UserView:
    repo = Repository(db)
    user = repo.create_user(validate_insert("user", payload))
    _set_session_cookie(response, user)
    return UserView.model_validate(user)


@router.post("/login", response_model=UserView)
def login(payload: LoginRequest, response: Response, db: Session = Depends(get_db)) -> UserView:
    user = Repository(db).authenticate(payload.username, payload.password)
    if user is None:
        logger.warning("Failed login for %s", payload.username)
        raise UnauthorizedError("Invalid username or password")
    _set_session_cookie(response, user)
    return UserView.model_validate(user)


@router.post("/logout", response_model=MessageResponse)
def logout(response: Response) -> MessageResponse:
    _clear_session_cookie(response)
    return MessageResponse(message="Logged out")


@router.get("/user", response_model=UserView)
def current_user(user: User = Depends(get_current_user)) -> UserView:
    return UserView.model_validate(user)


@router.post("/admin/login", response_model=UserView)
def admin_login(payload: LoginRequest, response: Response, db: Session = Depends(get_db)) -> UserView:
    user = Repository(db).authenticate(payload.username, payload.password)
    if user is None:
        logger.warning("Failed admin login for %s", payload.username)
        raise UnauthorizedError("Invalid username or password")
    if not user.is_recruiter:
        raise ForbiddenError("Admin access required")
    _set_session_cookie(response, user, is_admin=True)
    logger.info("Admin session opened for user %s", user.id)
    return UserView.model_validate(user)


@router.post("/admin/logout", response_model=MessageResponse)
def admin_logout(response: Response) -> MessageResponse:
    _clear_session_cookie(response)
    return MessageResponse(message="Logged out")


@router.get("/users/check-username", response_model=AvailabilityResponse)
def check_username(username: str = Query(..., min_length=1), db: Session = Depends(get_db)) -> AvailabilityResponse:
    return AvailabilityResponse(available=Repository(db).username_available(username))


@router.get("/users/check-email", response_model=AvailabilityResponse)
def check_email(email: str = Query(..., min_length=1), db: Session = Depends(get_db)) -> AvailabilityResponse:
    return AvailabilityResponse(available=Repository(db).email_available(email))


@router.get("/users/check-mobile", response_model=AvailabilityResponse)
def check_mobile(
    mobile_number: str = Query(..., alias="mobileNumber", min_length=1),
    db: Session = Depends(get_db),
) -> AvailabilityResponse:
    return AvailabilityResponse(available=Repository(db).mobile_number_available(mobile_number))


@router.post("/users/forgot-password", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
def forgot_password(payload: ForgotPasswordRequest, db: Session = Depends(get_db)) -> MessageResponse:
    Repository(db).create_password_reset_request(payload.email)
    return MessageResponse(message="Password reset request submitted. An administrator will review it.")
