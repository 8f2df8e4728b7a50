from __future__ import annotations

from pathlib import Path

from harmony.config import get_settings
from harmony.db.base import Base
from harmony.db.session import SessionLocal, engine
from harmony.db import models  # noqa: F401
from harmony.db.seed import seed_admin_user


def ensure_data_directories() -> None:
    settings = get_settings()
    paths: list[Path] = [settings.data_dir]
    if settings.database_url.startswith("sqlite:///"):
        database_path = settings.database_url.removeprefix("sqlite:///")
        if database_path and database_path != ":memory:":
            paths.append(Path(database_path).parent)
    for path in paths:
        path.mkdir(parents=True, exist_ok=True)


def init_database() -> dict[str, int]:
    ensure_data_directories()
    Base.metadata.create_all(bind=engine)

    with SessionLocal() as session:
        inserted = seed_admin_user(session, get_settings())
    return {"seeded_admins": inserted}
