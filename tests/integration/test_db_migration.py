from __future__ import annotations

import os
import sqlite3
import subprocess
import sys
from pathlib import Path

EXPECTED_TABLES = {
    "users",
    "communities",
    "posts",
    "likes",
    "comments",
    "reposts",
    "jobs",
    "job_applications",
    "saved_jobs",
    "community_members",
    "connections",
    "messages",
    "companies",
    "password_reset_requests",
}


def _tables(conn: sqlite3.Connection) -> set[str]:
    cur = conn.cursor()
    cur.execute("SELECT name FROM sqlite_master WHERE type='table' AND name != 'alembic_version'")
    return {row[0] for row in cur.fetchall()}


def test_alembic_upgrade_and_downgrade_initial_schema(tmp_path: Path) -> None:
    repo_root = Path(__file__).resolve().parents[2]
    db_path = tmp_path / "migration_test.db"
    env = os.environ.copy()
    env["DATABASE_URL"] = f"sqlite:///{db_path}"

    subprocess.run(
        [sys.executable, "-m", "alembic", "-c", "alembic.ini", "upgrade", "head"],
        cwd=repo_root,
        env=env,
        check=True,
    )

    conn = sqlite3.connect(db_path)
    assert _tables(conn) == EXPECTED_TABLES

    cur = conn.cursor()
    cur.execute("PRAGMA table_info(communities)")
    community_cols = {row[1] for row in cur.fetchall()}
    assert {"member_count", "invite_only", "is_private"} <= community_cols

    cur.execute("PRAGMA index_list(likes)")
    assert any(row[2] for row in cur.fetchall()), "likes must carry a unique (user_id, post_id) index"

    # index_list rows are (seq, name, unique, origin, partial)
    for table, index_name in (
        ("connections", "uq_connections_open_pair"),
        ("password_reset_requests", "uq_password_reset_requests_pending_user"),
    ):
        cur.execute(f"PRAGMA index_list({table})")
        partial_unique = {row[1] for row in cur.fetchall() if row[2] and row[4]}
        assert index_name in partial_unique

    subprocess.run(
        [sys.executable, "-m", "alembic", "-c", "alembic.ini", "downgrade", "base"],
        cwd=repo_root,
        env=env,
        check=True,
    )

    assert _tables(conn) == set()
    conn.close()
