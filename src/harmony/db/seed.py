from __future__ import annotations

import logging

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from harmony.config import Settings
from harmony.core.security import hash_password
from harmony.db.models import User

logger = logging.getLogger(__name__)


def seed_admin_user(session: Session, settings: Settings) -> int:
    """Create the bootstrap admin account once; returns the number of rows inserted."""
    if not settings.bootstrap_admin_enabled:
        return 0

    existing = session.scalar(
        select(User).where(
            or_(
                User.username == settings.bootstrap_admin_username,
                User.email == settings.bootstrap_admin_email,
            )
        )
    )
    if existing is not None:
        return 0

    # Admin sessions are granted to recruiter accounts.
    session.add(
        User(
            username=settings.bootstrap_admin_username,
            email=settings.bootstrap_admin_email,
            password=hash_password(settings.bootstrap_admin_password),
            name="Administrator",
            is_recruiter=True,
        )
    )
    session.commit()
    logger.info("Seeded bootstrap admin %s", settings.bootstrap_admin_username)
    return 1
