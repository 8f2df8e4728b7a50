from __future__ import annotations

from collections.abc import Generator

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from harmony.config import get_settings
from harmony.core.security import decode_session_token
from harmony.db.models import User
from harmony.db.session import get_db_session
from harmony.errors import ForbiddenError, UnauthorizedError
from harmony.types import Actor


def get_db() -> Generator[Session, None, None]:
    yield from get_db_session()


def _session_user(request: Request, db: Session) -> tuple[User, bool] | None:
    token = request.cookies.get(get_settings().session_cookie_name)
    if not token:
        return None
    claims = decode_session_token(token)
    if claims is None:
        return None
    user = db.get(User, claims["user_id"])
    if user is None:
        return None
    # admin rights lapse as soon as the account stops being a recruiter
    return user, bool(claims["is_admin"] and user.is_recruiter)


def get_optional_actor(request: Request, db: Session = Depends(get_db)) -> Actor | None:
    resolved = _session_user(request, db)
    if resolved is None:
        return None
    user, is_admin = resolved
    return Actor(user_id=user.id, is_recruiter=user.is_recruiter, is_admin=is_admin)


def get_actor(actor: Actor | None = Depends(get_optional_actor)) -> Actor:
    if actor is None:
        raise UnauthorizedError()
    return actor


def get_current_user(actor: Actor = Depends(get_actor), db: Session = Depends(get_db)) -> User:
    user = db.get(User, actor.user_id)
    if user is None:
        raise UnauthorizedError()
    return user


def require_admin(actor: Actor = Depends(get_actor)) -> Actor:
    if not actor.is_admin:
        raise ForbiddenError("Admin access required")
    return actor


def require_recruiter(actor: Actor = Depends(get_actor)) -> Actor:
    if not (actor.is_recruiter or actor.is_admin):
        raise ForbiddenError("Recruiter access required")
    return actor
