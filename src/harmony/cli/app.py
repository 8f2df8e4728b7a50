from __future__ import annotations

import json

import typer
import uvicorn

from harmony.api.app import create_app
from harmony.config import get_settings
from harmony.db.init import init_database
from harmony.db.repositories import Repository
from harmony.db.session import SessionLocal
from harmony.errors import HarmonyError
from harmony.logging_config import configure_logging
from harmony.types import Actor, JobView, PasswordResetRequestView
from harmony.validation import validate_insert

app = typer.Typer(help="Harmony CLI")
admin_app = typer.Typer(help="Admin accounts")
users_app = typer.Typer(help="User inspection")
jobs_app = typer.Typer(help="Job board inspection")
resets_app = typer.Typer(help="Password reset review")

app.add_typer(admin_app, name="admin")
app.add_typer(users_app, name="users")
app.add_typer(jobs_app, name="jobs")
app.add_typer(resets_app, name="resets")

_INITIALIZED = False


def ensure_initialized() -> None:
    global _INITIALIZED
    if _INITIALIZED:
        return
    init_database()
    _INITIALIZED = True


def _fail(exc: HarmonyError) -> None:
    typer.echo(json.dumps({"ok": False, "error": exc.message}, indent=2), err=True)
    raise typer.Exit(code=1)


@app.command("init")
def init_cmd() -> None:
    """Initialize directories and tables, and seed the bootstrap admin if configured."""
    configure_logging()
    result = init_database()
    typer.echo(json.dumps({"ok": True, **result}, indent=2))


@admin_app.command("create")
def admin_create(
    username: str = typer.Option(..., "--username"),
    email: str = typer.Option(..., "--email"),
    password: str = typer.Option(..., "--password", prompt=True, hide_input=True),
    name: str = typer.Option("Administrator", "--name"),
) -> None:
    """Create a recruiter account, which may open admin sessions."""
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        repo = Repository(db)
        try:
            payload = validate_insert(
                "user",
                {"username": username, "email": email, "password": password, "name": name, "isRecruiter": True},
            )
            user = repo.create_user(payload)
        except HarmonyError as exc:
            _fail(exc)
        typer.echo(json.dumps({"id": user.id, "username": user.username, "isRecruiter": user.is_recruiter}, indent=2))


@users_app.command("list")
def users_list() -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        rows = Repository(db).list_users()
        data = [
            {"id": row.id, "username": row.username, "email": row.email, "isRecruiter": row.is_recruiter}
            for row in rows
        ]
        typer.echo(json.dumps(data, indent=2))


@jobs_app.command("list")
def jobs_list(active: bool = typer.Option(False, "--active", help="Only jobs that are not archived")) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        repo = Repository(db)
        rows = repo.list_active_jobs() if active else repo.list_jobs()
        data = [JobView.model_validate(row).model_dump(mode="json", by_alias=True) for row in rows]
        typer.echo(json.dumps(data, indent=2))


@resets_app.command("list")
def resets_list(pending: bool = typer.Option(False, "--pending")) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        repo = Repository(db)
        rows = repo.list_pending_password_reset_requests() if pending else repo.list_password_reset_requests()
        data = [
            PasswordResetRequestView.model_validate(row).model_dump(
                mode="json", by_alias=True, exclude={"temporary_password"}
            )
            for row in rows
        ]
        typer.echo(json.dumps(data, indent=2))


@resets_app.command("process")
def resets_process(
    request_id: int = typer.Option(..., "--request-id"),
    decision: str = typer.Option(..., "--decision", help="approve or reject"),
    admin_username: str = typer.Option(..., "--admin-username"),
    temporary_password: str | None = typer.Option(None, "--temporary-password"),
    notes: str | None = typer.Option(None, "--notes"),
) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        repo = Repository(db)
        admin = repo.get_user_by_username(admin_username)
        if admin is None or not admin.is_recruiter:
            raise typer.BadParameter(f"{admin_username} is not an admin account", param_hint="--admin-username")

        actor = Actor(user_id=admin.id, is_recruiter=True, is_admin=True)
        try:
            request = repo.process_password_reset(
                request_id,
                decision,
                actor,
                admin_notes=notes,
                temporary_password=temporary_password,
            )
        except HarmonyError as exc:
            _fail(exc)
        typer.echo(json.dumps({"id": request.id, "status": request.status, "userId": request.user_id}, indent=2))


@app.command("serve")
def serve(
    host: str | None = typer.Option(None, "--host"),
    port: int | None = typer.Option(None, "--port"),
) -> None:
    configure_logging()
    ensure_initialized()
    settings = get_settings()
    app_instance = create_app()
    uvicorn.run(app_instance, host=host or settings.app_host, port=port or settings.app_port)
