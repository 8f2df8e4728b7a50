"""Cache keys for every resource, and the keys each mutation must invalidate.

A key is the resource path the cache reads from. Item, list and related keys
for an entity all come from one `ResourceKeys` builder, so invalidating the
builder's root (a segment-aware prefix) covers every key derived from it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from urllib.parse import urlencode

API_PREFIX = "/api"
CURRENT_USER = f"{API_PREFIX}/user"


def entity_segment(value: Any, name: str = "id") -> str:
    # bool is an int subclass; True must not become /1
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValueError(f"{name} must be a positive integer, got {value!r}")
    return str(value)


def _query(params: dict[str, Any]) -> str:
    pairs = []
    for name in sorted(params):
        value = params[name]
        if value is None:
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        pairs.append((name, value))
    return f"?{urlencode(pairs)}" if pairs else ""


@dataclass(slots=True, frozen=True)
class ResourceKeys:
    collection: str

    @property
    def root(self) -> str:
        return f"{API_PREFIX}/{self.collection}"

    def list(self, **params: Any) -> str:
        return f"{self.root}{_query(params)}"

    def item(self, entity_id: int) -> str:
        return f"{self.root}/{entity_segment(entity_id)}"

    def related(self, entity_id: int, relation: str, **params: Any) -> str:
        return f"{self.item(entity_id)}/{relation}{_query(params)}"

    def section(self, name: str, **params: Any) -> str:
        return f"{self.root}/{name}{_query(params)}"


USERS = ResourceKeys("users")
POSTS = ResourceKeys("posts")
JOBS = ResourceKeys("jobs")
APPLICATIONS = ResourceKeys("applications")
RECRUITER = ResourceKeys("recruiter")
COMMUNITIES = ResourceKeys("communities")
CONNECTIONS = ResourceKeys("connections")
MESSAGES = ResourceKeys("messages")
COMPANIES = ResourceKeys("companies")
ADMIN = ResourceKeys("admin")

MUTATION_KINDS = frozenset(
    {
        "user",
        "post",
        "like",
        "comment",
        "repost",
        "job",
        "application",
        "saved_job",
        "community",
        "membership",
        "connection",
        "message",
        "company",
        "password_reset",
        "admin",
    }
)


def affected_keys(
    kind: str,
    *,
    viewer_id: int | None = None,
    owner_id: int | None = None,
    parent_id: int | None = None,
) -> list[str]:
    """Every key (or key prefix) whose cached value a mutation of `kind` may change.

    `viewer_id` is the signed-in user whose personal views sit in the cache,
    `owner_id` the owner of the mutated row when it differs from the viewer,
    and `parent_id` the row the mutated one hangs off (the job of an
    application or saved job).
    """
    if kind not in MUTATION_KINDS:
        raise ValueError(f"unknown mutation kind '{kind}'")

    people = [user_id for user_id in (viewer_id, owner_id) if user_id is not None]
    keys: list[str] = []

    if kind == "admin":
        # admin deletes cascade across every entity
        return [API_PREFIX]

    if kind == "user":
        keys += [CURRENT_USER, USERS.root, POSTS.root, CONNECTIONS.root, MESSAGES.root, COMMUNITIES.root]
        keys += [ADMIN.section("users"), ADMIN.section("recruiters")]
    elif kind in {"post", "like", "comment", "repost"}:
        keys += [POSTS.root, ADMIN.section("posts")]
        for user_id in people:
            keys += [USERS.related(user_id, "posts"), USERS.related(user_id, "stats")]
        # any post may sit in a community list, reposts included
        keys.append(COMMUNITIES.root)
        if kind == "post":
            keys.append(ADMIN.section("analytics"))
    elif kind == "job":
        keys += [JOBS.root, RECRUITER.root, COMPANIES.root, APPLICATIONS.root]
        keys += [ADMIN.section("jobs"), ADMIN.section("analytics")]
        for user_id in people:
            keys += [
                USERS.related(user_id, "jobs"),
                USERS.related(user_id, "saved-jobs"),
                USERS.related(user_id, "applications"),
            ]
    elif kind == "application":
        keys += [APPLICATIONS.root, RECRUITER.root, ADMIN.section("jobs"), ADMIN.section("analytics")]
        if parent_id is not None:
            keys.append(JOBS.related(parent_id, "applications"))
        for user_id in people:
            keys.append(USERS.related(user_id, "applications"))
    elif kind == "saved_job":
        if parent_id is not None:
            keys.append(JOBS.related(parent_id, "saved"))
        for user_id in people:
            keys.append(USERS.related(user_id, "saved-jobs"))
    elif kind in {"community", "membership"}:
        keys += [COMMUNITIES.root, ADMIN.section("communities")]
        for user_id in people:
            keys += [USERS.related(user_id, "communities"), USERS.related(user_id, "stats")]
        if kind == "community":
            # deleting a community detaches its posts
            keys += [POSTS.root, ADMIN.section("analytics")]
    elif kind == "connection":
        keys.append(CONNECTIONS.root)
        for user_id in people:
            keys.append(USERS.related(user_id, "stats"))
    elif kind == "message":
        keys.append(MESSAGES.root)
    elif kind == "company":
        keys.append(COMPANIES.root)
    elif kind == "password_reset":
        keys += [ADMIN.section("password-resets"), ADMIN.section("analytics")]

    return list(dict.fromkeys(keys))
