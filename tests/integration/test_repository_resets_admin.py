import pytest

from harmony.db.repositories import Repository
from harmony.db.session import SessionLocal
from harmony.errors import ConflictError, ForbiddenError, InvalidTransitionError, NotFoundError, ValidationError
from harmony.validation import validate_insert


def test_reset_request_needs_a_known_email_and_one_pending_at_a_time(repo, make_user) -> None:
    ada = make_user("ada")
    with pytest.raises(NotFoundError):
        repo.create_password_reset_request("ghost@example.com")

    request = repo.create_password_reset_request("ADA@example.com")
    assert request.user_id == ada.id
    assert request.email == "ada@example.com"
    assert request.status == "pending"
    with pytest.raises(ConflictError):
        repo.create_password_reset_request("ada@example.com")
    assert [row.id for row in repo.list_pending_password_reset_requests()] == [request.id]


def test_racing_reset_requests_leave_one_pending(repo, make_user, monkeypatch) -> None:
    make_user("ada")
    lookup = repo._pending_reset_for

    def lookup_then_race(user_id: int):
        found = lookup(user_id)
        with SessionLocal() as other_session:
            Repository(other_session).create_password_reset_request("ada@example.com")
        return found

    monkeypatch.setattr(repo, "_pending_reset_for", lookup_then_race)
    with pytest.raises(ConflictError):
        repo.create_password_reset_request("ada@example.com")
    assert len(repo.list_pending_password_reset_requests()) == 1


def test_approving_a_reset_sets_the_temporary_password(repo, make_user, as_actor) -> None:
    boss = make_user("boss", is_recruiter=True)
    ada = make_user("ada", password="forgotten")
    request = repo.create_password_reset_request(ada.email)

    with pytest.raises(ForbiddenError):
        repo.process_password_reset(request.id, "approve", as_actor(ada), temporary_password="temp1234")
    with pytest.raises(ValidationError) as exc_info:
        repo.process_password_reset(request.id, "approve", as_actor(boss, admin=True))
    assert exc_info.value.field == "temporaryPassword"

    processed = repo.process_password_reset(
        request.id,
        "approve",
        as_actor(boss, admin=True),
        temporary_password="temp1234",
        admin_notes="verified by phone",
    )
    assert processed.status == "approved"
    assert processed.processed_by == boss.id
    assert processed.processed_at is not None
    assert repo.authenticate("ada", "temp1234").id == ada.id
    assert repo.authenticate("ada", "forgotten") is None
    assert repo.list_pending_password_reset_requests() == []

    with pytest.raises(InvalidTransitionError):
        repo.process_password_reset(request.id, "reject", as_actor(boss, admin=True))


def test_rejecting_a_reset_keeps_the_old_password(repo, make_user, as_actor) -> None:
    boss = make_user("boss", is_recruiter=True)
    ada = make_user("ada", password="remembered")
    request = repo.create_password_reset_request(ada.email)

    with pytest.raises(ValidationError):
        repo.process_password_reset(request.id, "maybe", as_actor(boss, admin=True))
    processed = repo.process_password_reset(request.id, "reject", as_actor(boss, admin=True))
    assert processed.status == "rejected"
    assert processed.temporary_password is None
    assert repo.authenticate("ada", "remembered") is not None

    # a fresh request is allowed once the earlier one is closed
    assert repo.create_password_reset_request(ada.email).status == "pending"


def test_admin_projections_and_analytics(repo, make_user, as_actor) -> None:
    boss = make_user("boss", is_recruiter=True)
    ada = make_user("ada")
    admin = as_actor(boss, admin=True)

    post = repo.create_post(validate_insert("post", {"userId": ada.id, "content": "hello"}))
    repo.add_like(post.id, as_actor(boss))
    job = repo.create_job(
        validate_insert(
            "job",
            {"title": "Eng", "company": "Acme", "location": "Remote", "description": "Code", "userId": boss.id},
        ),
        as_actor(boss),
    )
    repo.apply_to_job(validate_insert("job_application", {"jobId": job.id, "applicantId": ada.id}), as_actor(ada))
    repo.create_community(
        validate_insert("community", {"name": "Acme fans", "description": "Fans", "createdBy": ada.id}),
        as_actor(ada),
    )
    repo.create_password_reset_request(ada.email)

    users = {row.username: row for row in repo.admin_list_users(admin)}
    assert users["ada"].post_count == 1
    assert users["boss"].job_count == 1
    assert [row.username for row in repo.admin_list_recruiters(admin)] == ["boss"]
    assert repo.admin_list_posts(admin)[0].like_count == 1
    assert repo.admin_list_jobs(admin)[0].applicant_count == 1
    assert repo.admin_list_communities(admin)[0].creator_username == "ada"

    analytics = repo.admin_analytics(admin)
    assert analytics.user_total == 2
    assert analytics.recruiter_total == 1
    assert analytics.active_job_total == 1
    assert analytics.application_total == 1
    assert analytics.community_total == 1
    assert analytics.pending_password_resets == 1

    with pytest.raises(ForbiddenError):
        repo.admin_analytics(as_actor(boss))
