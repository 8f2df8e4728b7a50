import pytest

from harmony.errors import ConflictError, ForbiddenError, NotFoundError
from harmony.validation import validate_insert, validate_update


def test_usernames_and_emails_are_unique(make_user) -> None:
    make_user("ada")
    with pytest.raises(ConflictError, match="Username already exists"):
        make_user("ada")
    with pytest.raises(ConflictError, match="Email already exists"):
        make_user("grace", email="ADA@example.com")


def test_password_is_stored_hashed_and_authenticates_by_username_or_email(repo, make_user) -> None:
    user = make_user("ada", password="difference-engine")
    assert user.password != "difference-engine"

    assert repo.authenticate("ada", "difference-engine").id == user.id
    assert repo.authenticate("Ada@Example.com", "difference-engine").id == user.id
    assert repo.authenticate("ada", "wrong-password") is None
    assert repo.authenticate("nobody", "difference-engine") is None


def test_availability_checks(repo, make_user) -> None:
    make_user("ada", mobileNumber="+15550100")
    assert not repo.username_available("ada")
    assert repo.username_available("grace")
    assert not repo.email_available("ada@example.com")
    assert not repo.mobile_number_available("+15550100")
    assert repo.mobile_number_available("+15550199")


def test_users_edit_only_their_own_profile(repo, make_user, as_actor) -> None:
    ada = make_user("ada")
    grace = make_user("grace")
    values = validate_update("user", {"title": "Engineer", "skills": ["python"]})

    updated = repo.update_user(ada.id, values, as_actor(ada))
    assert updated.title == "Engineer"
    assert updated.skills == ["python"]

    with pytest.raises(ForbiddenError):
        repo.update_user(ada.id, values, as_actor(grace))
    assert repo.update_user(ada.id, {"bio": "hi"}, as_actor(grace, admin=True)).bio == "hi"


def test_role_changes_need_an_admin(repo, make_user, as_actor) -> None:
    ada = make_user("ada")
    values = validate_update("admin_user", {"isRecruiter": True})
    with pytest.raises(ForbiddenError):
        repo.update_user(ada.id, values, as_actor(ada))

    boss = make_user("boss", is_recruiter=True)
    assert repo.admin_update_user(ada.id, values, as_actor(boss, admin=True)).is_recruiter


def test_profile_rename_cannot_take_an_existing_username(repo, make_user, as_actor) -> None:
    ada = make_user("ada")
    make_user("grace")
    with pytest.raises(ConflictError):
        repo.update_user(ada.id, {"username": "grace"}, as_actor(ada))


def test_profile_strength_counts_filled_sections(repo, make_user, as_actor) -> None:
    ada = make_user("ada")
    assert repo.user_stats(ada.id).profile_strength == 20

    repo.update_user(ada.id, {"title": "Engineer", "bio": "Notes", "skills": ["math"]}, as_actor(ada))
    stats = repo.user_stats(ada.id)
    assert stats.profile_strength == 80
    assert stats.posts_count == 0
    assert stats.connections_count == 0


def test_delete_user_removes_everything_they_own(repo, make_user, as_actor) -> None:
    boss = make_user("boss", is_recruiter=True)
    ada = make_user("ada")
    grace = make_user("grace")

    post = repo.create_post(validate_insert("post", {"userId": ada.id, "content": "hello"}))
    repo.add_like(post.id, as_actor(grace))
    repo.add_comment(validate_insert("comment", {"userId": grace.id, "postId": post.id, "content": "hi"}))
    grace_post = repo.create_post(validate_insert("post", {"userId": grace.id, "content": "mine"}))
    repo.repost(grace_post.id, as_actor(ada))
    community = repo.create_community(
        validate_insert("community", {"name": "Math", "description": "Numbers", "createdBy": grace.id}),
        as_actor(grace),
    )
    repo.join_community(community.id, as_actor(ada))
    repo.request_connection(validate_insert("connection", {"requesterId": ada.id, "receiverId": grace.id}))
    repo.send_message(validate_insert("message", {"senderId": grace.id, "receiverId": ada.id, "content": "yo"}))

    ada_id, post_id = ada.id, post.id
    repo.delete_user(ada_id, as_actor(boss, admin=True))

    with pytest.raises(NotFoundError):
        repo.get_user(ada_id)
    with pytest.raises(NotFoundError):
        repo.get_post(post_id)
    assert repo.get_post_detail(grace_post.id).repost_count == 0
    assert repo.get_community(community.id).member_count == 1
    assert repo.list_pending_connections(grace.id) == []
    assert repo.list_conversation(grace.id, ada_id) == []


def test_only_admins_delete_users(repo, make_user, as_actor) -> None:
    ada = make_user("ada")
    grace = make_user("grace")
    with pytest.raises(ForbiddenError):
        repo.delete_user(grace.id, as_actor(ada))
