from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from harmony.client.cache import OnUnauthorized, QueryCache
from harmony.client.http import ApiClient
from harmony.client.keys import (
    ADMIN,
    API_PREFIX,
    APPLICATIONS,
    COMMUNITIES,
    COMPANIES,
    CONNECTIONS,
    CURRENT_USER,
    JOBS,
    MESSAGES,
    POSTS,
    RECRUITER,
    USERS,
    affected_keys,
    entity_segment,
)
from harmony.config import Settings, get_settings

logger = logging.getLogger(__name__)


class HarmonyClient:
    """Typed reads and mutations over a `QueryCache`.

    Reads go through the cache. Every mutation is sent straight to the
    server and, once it succeeds, invalidates the keys listed by
    `affected_keys` for the mutated entity, so the next read refetches.
    """

    def __init__(self, cache: QueryCache, viewer_id: int | None = None):
        self.cache = cache
        self.viewer_id = viewer_id

    @property
    def api(self) -> ApiClient:
        return self.cache.client

    def read(self, key: str, on_unauthorized: OnUnauthorized = "throw") -> Any:
        return self.cache.read(key, on_unauthorized=on_unauthorized)

    def _mutate(
        self,
        method: str,
        resource: str,
        body: Any | None = None,
        *,
        kind: str,
        owner_id: int | None = None,
        parent_id: int | None = None,
    ) -> Any:
        result = self.api.send(method, resource, body)
        for key in affected_keys(kind, viewer_id=self.viewer_id, owner_id=owner_id, parent_id=parent_id):
            self.cache.invalidate(key)
        return result

    def _require_viewer(self) -> int:
        if self.viewer_id is None:
            raise RuntimeError("Sign in before reading per-user resources")
        return self.viewer_id

    # -- session ----------------------------------------------------------

    def _start_session(self, user: dict[str, Any]) -> dict[str, Any]:
        self.cache.invalidate(API_PREFIX)
        self.viewer_id = user["id"]
        self.cache.set(CURRENT_USER, user)
        return user

    def register(self, payload: dict[str, Any]) -> dict[str, Any]:
        return self._start_session(self.api.send("POST", f"{API_PREFIX}/register", payload))

    def login(self, username: str, password: str) -> dict[str, Any]:
        user = self.api.send("POST", f"{API_PREFIX}/login", {"username": username, "password": password})
        return self._start_session(user)

    def admin_login(self, username: str, password: str) -> dict[str, Any]:
        user = self.api.send("POST", f"{API_PREFIX}/admin/login", {"username": username, "password": password})
        return self._start_session(user)

    def logout(self) -> None:
        self.api.send("POST", f"{API_PREFIX}/logout")
        self.viewer_id = None
        self.cache.invalidate(API_PREFIX)

    def current_user(self) -> dict[str, Any] | None:
        user = self.read(CURRENT_USER, on_unauthorized="return_null")
        if user is not None:
            self.viewer_id = user["id"]
        return user

    def username_available(self, username: str) -> bool:
        result = self.api.send("GET", USERS.section("check-username", username=username))
        return bool(result["available"])

    def forgot_password(self, email: str) -> dict[str, Any]:
        return self._mutate("POST", USERS.section("forgot-password"), {"email": email}, kind="password_reset")

    # -- users ------------------------------------------------------------

    def directory(self) -> list[dict[str, Any]]:
        return self.read(USERS.list())

    def user(self, user_id: int) -> dict[str, Any]:
        return self.read(USERS.item(user_id))

    def user_stats(self, user_id: int) -> dict[str, Any]:
        return self.read(USERS.related(user_id, "stats"))

    def user_posts(self, user_id: int) -> list[dict[str, Any]]:
        return self.read(USERS.related(user_id, "posts"))

    def user_jobs(self, user_id: int) -> list[dict[str, Any]]:
        return self.read(USERS.related(user_id, "jobs"))

    def update_profile(self, values: dict[str, Any]) -> dict[str, Any]:
        viewer_id = self._require_viewer()
        user = self._mutate("PATCH", USERS.item(viewer_id), values, kind="user")
        self.cache.set(CURRENT_USER, user)
        return user

    # -- posts ------------------------------------------------------------

    def feed(self) -> list[dict[str, Any]]:
        return self.read(POSTS.list())

    def post(self, post_id: int) -> dict[str, Any]:
        return self.read(POSTS.item(post_id))

    def create_post(self, payload: dict[str, Any]) -> dict[str, Any]:
        return self._mutate("POST", POSTS.list(), payload, kind="post")

    def update_post(self, post_id: int, values: dict[str, Any]) -> dict[str, Any]:
        return self._mutate("PATCH", POSTS.item(post_id), values, kind="post")

    def delete_post(self, post_id: int) -> None:
        self._mutate("DELETE", POSTS.item(post_id), kind="post")

    def like_post(self, post_id: int) -> dict[str, Any]:
        return self._mutate("POST", POSTS.related(post_id, "like"), kind="like")

    def unlike_post(self, post_id: int) -> None:
        self._mutate("DELETE", POSTS.related(post_id, "like"), kind="like")

    def comments(self, post_id: int) -> list[dict[str, Any]]:
        return self.read(POSTS.related(post_id, "comments"))

    def add_comment(self, post_id: int, content: str) -> dict[str, Any]:
        return self._mutate("POST", POSTS.related(post_id, "comments"), {"content": content}, kind="comment")

    def repost(self, post_id: int) -> dict[str, Any]:
        return self._mutate("POST", POSTS.related(post_id, "repost"), kind="repost")

    def remove_repost(self, post_id: int) -> None:
        self._mutate("DELETE", POSTS.related(post_id, "repost"), kind="repost")

    # -- jobs -------------------------------------------------------------

    def jobs(self, include_archived: bool = False) -> list[dict[str, Any]]:
        if include_archived:
            return self.read(JOBS.list(includeArchived=True))
        return self.read(JOBS.list())

    def job(self, job_id: int) -> dict[str, Any]:
        return self.read(JOBS.item(job_id))

    def create_job(self, payload: dict[str, Any]) -> dict[str, Any]:
        return self._mutate("POST", JOBS.list(), payload, kind="job")

    def update_job(self, job_id: int, values: dict[str, Any]) -> dict[str, Any]:
        return self._mutate("PATCH", JOBS.item(job_id), values, kind="job")

    def archive_job(self, job_id: int) -> dict[str, Any]:
        return self._mutate("POST", JOBS.related(job_id, "archive"), kind="job")

    def unarchive_job(self, job_id: int) -> dict[str, Any]:
        return self._mutate("POST", JOBS.related(job_id, "unarchive"), kind="job")

    def delete_job(self, job_id: int) -> None:
        self._mutate("DELETE", JOBS.item(job_id), kind="job")

    def job_applications(self, job_id: int) -> list[dict[str, Any]]:
        return self.read(JOBS.related(job_id, "applications"))

    def apply_to_job(self, job_id: int, note: str | None = None) -> dict[str, Any]:
        return self._mutate("POST", JOBS.related(job_id, "apply"), {"note": note}, kind="application", parent_id=job_id)

    def my_applications(self) -> list[dict[str, Any]]:
        return self.read(APPLICATIONS.list())

    def set_application_status(self, application_id: int, status: str, job_id: int | None = None) -> dict[str, Any]:
        return self._mutate(
            "PATCH",
            APPLICATIONS.item(application_id),
            {"status": status},
            kind="application",
            parent_id=job_id,
        )

    def recruiter_jobs(self) -> list[dict[str, Any]]:
        return self.read(RECRUITER.section("jobs"))

    def saved_jobs(self) -> list[dict[str, Any]]:
        return self.read(USERS.related(self._require_viewer(), "saved-jobs"))

    def is_job_saved(self, job_id: int) -> bool:
        return bool(self.read(JOBS.related(job_id, "saved"))["saved"])

    def save_job(self, job_id: int) -> dict[str, Any]:
        return self._mutate("POST", JOBS.related(job_id, "save"), kind="saved_job", parent_id=job_id)

    def unsave_job(self, job_id: int) -> None:
        self._mutate("DELETE", JOBS.related(job_id, "save"), kind="saved_job", parent_id=job_id)

    # -- communities ------------------------------------------------------

    def communities(self) -> list[dict[str, Any]]:
        return self.read(COMMUNITIES.list())

    def community(self, community_id: int) -> dict[str, Any]:
        return self.read(COMMUNITIES.item(community_id))

    def community_members(self, community_id: int) -> list[dict[str, Any]]:
        return self.read(COMMUNITIES.related(community_id, "members"))

    def community_posts(self, community_id: int) -> list[dict[str, Any]]:
        return self.read(COMMUNITIES.related(community_id, "posts"))

    def create_community(self, payload: dict[str, Any]) -> dict[str, Any]:
        return self._mutate("POST", COMMUNITIES.list(), payload, kind="community")

    def delete_community(self, community_id: int) -> None:
        self._mutate("DELETE", COMMUNITIES.item(community_id), kind="community")

    def join_community(self, community_id: int) -> None:
        self._mutate("POST", COMMUNITIES.related(community_id, "join"), kind="membership")

    def leave_community(self, community_id: int) -> None:
        self._mutate("DELETE", COMMUNITIES.related(community_id, "leave"), kind="membership")

    # -- connections and messages -----------------------------------------

    def connections(self) -> list[dict[str, Any]]:
        return self.read(CONNECTIONS.list())

    def pending_connections(self) -> list[dict[str, Any]]:
        return self.read(CONNECTIONS.section("pending"))

    def request_connection(self, receiver_id: int) -> dict[str, Any]:
        entity_segment(receiver_id, "receiver_id")
        return self._mutate(
            "POST", CONNECTIONS.list(), {"receiverId": receiver_id}, kind="connection", owner_id=receiver_id
        )

    def accept_connection(self, connection_id: int) -> dict[str, Any]:
        return self._mutate("POST", CONNECTIONS.related(connection_id, "accept"), kind="connection")

    def reject_connection(self, connection_id: int) -> dict[str, Any]:
        return self._mutate("POST", CONNECTIONS.related(connection_id, "reject"), kind="connection")

    def delete_connection(self, connection_id: int) -> None:
        self._mutate("DELETE", CONNECTIONS.item(connection_id), kind="connection")

    def inbox(self) -> list[dict[str, Any]]:
        return self.read(MESSAGES.list())

    def conversation(self, user_id: int) -> list[dict[str, Any]]:
        return self.read(MESSAGES.item(user_id))

    def send_message(self, receiver_id: int, content: str) -> dict[str, Any]:
        entity_segment(receiver_id, "receiver_id")
        return self._mutate("POST", MESSAGES.list(), {"receiverId": receiver_id, "content": content}, kind="message")

    def mark_conversation_read(self, user_id: int) -> int:
        result = self._mutate("POST", MESSAGES.related(user_id, "read"), kind="message")
        return int(result["updated"])

    # -- companies --------------------------------------------------------

    def companies(self) -> list[dict[str, Any]]:
        return self.read(COMPANIES.list())

    def company(self, company_id: int) -> dict[str, Any]:
        return self.read(COMPANIES.item(company_id))

    def create_company(self, payload: dict[str, Any]) -> dict[str, Any]:
        return self._mutate("POST", COMPANIES.list(), payload, kind="company")

    def update_company(self, company_id: int, values: dict[str, Any]) -> dict[str, Any]:
        return self._mutate("PATCH", COMPANIES.item(company_id), values, kind="company")

    def delete_company(self, company_id: int) -> None:
        self._mutate("DELETE", COMPANIES.item(company_id), kind="company")

    # -- admin ------------------------------------------------------------

    def admin_analytics(self) -> dict[str, Any]:
        return self.read(ADMIN.section("analytics"))

    def admin_users(self) -> list[dict[str, Any]]:
        return self.read(ADMIN.section("users"))

    def admin_password_resets(self, pending: bool = False) -> list[dict[str, Any]]:
        if pending:
            return self.read(ADMIN.section("password-resets", pending=True))
        return self.read(ADMIN.section("password-resets"))

    def admin_process_password_reset(
        self,
        request_id: int,
        action: str,
        *,
        admin_notes: str | None = None,
        temporary_password: str | None = None,
    ) -> dict[str, Any]:
        body = {"action": action, "adminNotes": admin_notes, "temporaryPassword": temporary_password}
        resource = f"{ADMIN.section('password-resets')}/{entity_segment(request_id)}/process"
        return self._mutate("POST", resource, body, kind="password_reset")

    def admin_delete_user(self, user_id: int) -> None:
        self._mutate("DELETE", f"{ADMIN.section('users')}/{entity_segment(user_id)}", kind="admin")


@contextmanager
def open_client(
    base_url: str | None = None,
    *,
    session: Any | None = None,
    settings: Settings | None = None,
) -> Iterator[HarmonyClient]:
    """Build the client stack for one application run and tear it down on exit."""
    settings = settings or get_settings()
    api = ApiClient(base_url or settings.api_base_url, session=session, timeout_sec=settings.api_timeout_sec)
    cache = QueryCache(api)
    logger.debug("Opened client for %s", api.base_url)
    try:
        yield HarmonyClient(cache)
    finally:
        cache.close()
