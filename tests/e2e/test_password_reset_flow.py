import json

from typer.testing import CliRunner

from harmony.cli.app import app as cli_app
from harmony.config import Settings
from harmony.db.repositories import Repository
from harmony.db.seed import seed_admin_user
from harmony.db.session import SessionLocal


def test_admin_approves_a_reset_over_http(signup, new_client) -> None:
    signup("boss", is_recruiter=True)
    signup("ada", password="forgotten")
    anonymous = new_client()
    anonymous.post("/api/users/forgot-password", json={"email": "ada@example.com"})

    admin = new_client()
    admin.post("/api/admin/login", json={"username": "boss", "password": "secret123"})
    pending = admin.get("/api/admin/password-resets", params={"pending": "true"}).json()
    assert [row["email"] for row in pending] == ["ada@example.com"]

    missing_password = admin.post(f"/api/admin/password-resets/{pending[0]['id']}/process", json={"action": "approve"})
    assert missing_password.status_code == 400
    processed = admin.post(
        f"/api/admin/password-resets/{pending[0]['id']}/process",
        json={"action": "approve", "temporaryPassword": "temp-pass-1", "adminNotes": "called ada"},
    ).json()
    assert processed["status"] == "approved"
    assert processed["adminNotes"] == "called ada"
    assert admin.get("/api/admin/password-resets", params={"pending": "true"}).json() == []

    again = admin.post(f"/api/admin/password-resets/{pending[0]['id']}/process", json={"action": "reject"})
    assert again.status_code == 409

    ada = new_client()
    assert ada.post("/api/login", json={"username": "ada", "password": "forgotten"}).status_code == 401
    assert ada.post("/api/login", json={"username": "ada", "password": "temp-pass-1"}).status_code == 200


def test_reset_processed_from_the_cli(signup, new_client) -> None:
    signup("boss", is_recruiter=True)
    signup("ada", password="forgotten")
    new_client().post("/api/users/forgot-password", json={"email": "ada@example.com"})
    runner = CliRunner()

    listed = runner.invoke(cli_app, ["resets", "list", "--pending"])
    assert listed.exit_code == 0, listed.output
    requests = json.loads(listed.stdout)
    assert len(requests) == 1
    assert "temporaryPassword" not in requests[0]

    not_admin = runner.invoke(
        cli_app,
        ["resets", "process", "--request-id", str(requests[0]["id"]), "--decision", "approve", "--admin-username", "ada"],
    )
    assert not_admin.exit_code != 0

    approved = runner.invoke(
        cli_app,
        [
            "resets",
            "process",
            "--request-id",
            str(requests[0]["id"]),
            "--decision",
            "approve",
            "--admin-username",
            "boss",
            "--temporary-password",
            "from-the-cli",
        ],
    )
    assert approved.exit_code == 0, approved.output
    assert json.loads(approved.stdout)["status"] == "approved"

    rejected_twice = runner.invoke(
        cli_app,
        ["resets", "process", "--request-id", str(requests[0]["id"]), "--decision", "reject", "--admin-username", "boss"],
    )
    assert rejected_twice.exit_code == 1

    assert new_client().post("/api/login", json={"username": "ada", "password": "from-the-cli"}).status_code == 200


def test_bootstrap_admin_is_seeded_once() -> None:
    settings = Settings(
        bootstrap_admin_username="root",
        bootstrap_admin_email="root@example.com",
        bootstrap_admin_password="rootpass1",
    )
    with SessionLocal() as db:
        assert seed_admin_user(db, settings) == 1
        assert seed_admin_user(db, settings) == 0
        user = Repository(db).authenticate("root", "rootpass1")
        assert user is not None
        assert user.is_recruiter


def test_cli_creates_recruiter_accounts() -> None:
    result = CliRunner().invoke(
        cli_app,
        ["admin", "create", "--username", "ops", "--email", "ops@example.com", "--password", "opspass1"],
    )
    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout)["isRecruiter"] is True

    listed = CliRunner().invoke(cli_app, ["users", "list"])
    assert [row["username"] for row in json.loads(listed.stdout)] == ["ops"]
