from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Response, status
from pydantic.alias_generators import to_camel
from sqlalchemy.orm import Session

from harmony.api.deps import get_actor, get_db
from harmony.api.schemas import (
    ConnectionCreateRequest,
    ConnectionStatusRequest,
    MessageCreateRequest,
    MessageResponse,
    UpdatedCountResponse,
)
from harmony.db.repositories import Repository
from harmony.errors import ForbiddenError
from harmony.types import (
    Actor,
    ApplicationWithJob,
    CommentView,
    CommentWithAuthor,
    CommunityView,
    ConnectionView,
    ConnectionWithUser,
    JobView,
    LikeView,
    MemberWithUser,
    MessageView,
    MessageWithSender,
    PostDetail,
    PostView,
    RepostRecordView,
    UserStats,
    UserSummary,
    UserView,
)
from harmony.validation import validate_insert, validate_update

router = APIRouter(prefix="/api", tags=["api"])


def with_server_fields(payload: dict[str, Any], **fields: Any) -> dict[str, Any]:
    """Overwrite client-supplied ownership fields with values taken from the session."""
    data = dict(payload)
    for name, value in fields.items():
        data.pop(name, None)
        data[to_camel(name)] = value
    return data


def no_content() -> Response:
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# -- users ---------------------------------------------------------------


@router.get("/users", response_model=list[UserSummary])
def list_users(actor: Actor = Depends(get_actor), db: Session = Depends(get_db)) -> list[UserSummary]:
    return Repository(db).list_directory(actor)


@router.get("/users/{user_id}", response_model=UserView)
def get_user(user_id: int, _: Actor = Depends(get_actor), db: Session = Depends(get_db)) -> UserView:
    return UserView.model_validate(Repository(db).get_user(user_id))


@router.patch("/users/{user_id}", response_model=UserView)
def update_user(
    user_id: int,
    payload: dict[str, Any] = Body(...),
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> UserView:
    values = validate_update("user", payload)
    return UserView.model_validate(Repository(db).update_user(user_id, values, actor))


@router.get("/users/{user_id}/stats", response_model=UserStats)
def user_stats(user_id: int, _: Actor = Depends(get_actor), db: Session = Depends(get_db)) -> UserStats:
    return Repository(db).user_stats(user_id)


@router.get("/users/{user_id}/posts", response_model=list[PostView])
def user_posts(user_id: int, _: Actor = Depends(get_actor), db: Session = Depends(get_db)) -> list[Any]:
    repo = Repository(db)
    return [repo.to_post_view(post) for post in repo.list_posts_by_user(user_id)]


@router.get("/users/{user_id}/communities", response_model=list[CommunityView])
def user_communities(
    user_id: int, _: Actor = Depends(get_actor), db: Session = Depends(get_db)
) -> list[CommunityView]:
    return [CommunityView.model_validate(row) for row in Repository(db).list_user_communities(user_id)]


@router.get("/users/{user_id}/jobs", response_model=list[JobView])
def user_jobs(user_id: int, _: Actor = Depends(get_actor), db: Session = Depends(get_db)) -> list[JobView]:
    return [JobView.model_validate(row) for row in Repository(db).list_jobs_by_owner(user_id)]


@router.get("/users/{user_id}/applications", response_model=list[ApplicationWithJob])
def user_applications(
    user_id: int, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)
) -> list[ApplicationWithJob]:
    if not actor.can_modify(user_id):
        raise ForbiddenError("You can only view your own applications")
    return Repository(db).list_applications_for_user(user_id)


@router.get("/users/{user_id}/saved-jobs", response_model=list[JobView])
def user_saved_jobs(user_id: int, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)) -> list[JobView]:
    if not actor.can_modify(user_id):
        raise ForbiddenError("You can only view your own saved jobs")
    return [JobView.model_validate(row) for row in Repository(db).list_saved_jobs(user_id)]


# -- posts ---------------------------------------------------------------


@router.get("/posts", response_model=list[PostDetail])
def feed(_: Actor = Depends(get_actor), db: Session = Depends(get_db)) -> list[PostDetail]:
    return Repository(db).list_feed()


@router.post("/posts", response_model=PostView, status_code=status.HTTP_201_CREATED)
def create_post(
    payload: dict[str, Any] = Body(...),
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> Any:
    # reposts are created through /posts/{id}/repost only
    data = with_server_fields(payload, user_id=actor.user_id, original_post_id=None, reposted_by=None)
    repo = Repository(db)
    return repo.to_post_view(repo.create_post(validate_insert("post", data)))


@router.get("/posts/{post_id}", response_model=PostDetail)
def get_post(post_id: int, _: Actor = Depends(get_actor), db: Session = Depends(get_db)) -> PostDetail:
    return Repository(db).get_post_detail(post_id)


@router.patch("/posts/{post_id}", response_model=PostView)
def update_post(
    post_id: int,
    payload: dict[str, Any] = Body(...),
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> Any:
    repo = Repository(db)
    return repo.to_post_view(repo.update_post(post_id, validate_update("post", payload), actor))


@router.delete("/posts/{post_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
def delete_post(post_id: int, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)) -> Response:
    Repository(db).delete_post(post_id, actor)
    return no_content()


@router.get("/posts/{post_id}/likes", response_model=list[LikeView])
def list_likes(post_id: int, _: Actor = Depends(get_actor), db: Session = Depends(get_db)) -> list[LikeView]:
    return [LikeView.model_validate(row) for row in Repository(db).list_likes(post_id)]


@router.post("/posts/{post_id}/like", response_model=LikeView, status_code=status.HTTP_201_CREATED)
def like_post(post_id: int, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)) -> LikeView:
    return LikeView.model_validate(Repository(db).add_like(post_id, actor))


@router.delete("/posts/{post_id}/like", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
def unlike_post(post_id: int, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)) -> Response:
    Repository(db).remove_like(post_id, actor)
    return no_content()


@router.get("/posts/{post_id}/comments", response_model=list[CommentWithAuthor])
def list_comments(
    post_id: int, _: Actor = Depends(get_actor), db: Session = Depends(get_db)
) -> list[CommentWithAuthor]:
    return Repository(db).list_comments(post_id)


@router.post("/posts/{post_id}/comments", response_model=CommentView, status_code=status.HTTP_201_CREATED)
def add_comment(
    post_id: int,
    payload: dict[str, Any] = Body(...),
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> CommentView:
    data = with_server_fields(payload, user_id=actor.user_id, post_id=post_id)
    comment = Repository(db).add_comment(validate_insert("comment", data))
    return CommentView.model_validate(comment)


@router.get("/posts/{post_id}/reposts", response_model=list[RepostRecordView])
def list_reposts(
    post_id: int, _: Actor = Depends(get_actor), db: Session = Depends(get_db)
) -> list[RepostRecordView]:
    return [RepostRecordView.model_validate(row) for row in Repository(db).list_reposts(post_id)]


@router.post("/posts/{post_id}/repost", response_model=PostView, status_code=status.HTTP_201_CREATED)
def repost(post_id: int, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)) -> Any:
    repo = Repository(db)
    return repo.to_post_view(repo.repost(post_id, actor))


@router.delete("/posts/{post_id}/repost", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
def remove_repost(post_id: int, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)) -> Response:
    Repository(db).remove_repost(post_id, actor)
    return no_content()


# -- communities ---------------------------------------------------------


@router.get("/communities", response_model=list[CommunityView])
def list_communities(_: Actor = Depends(get_actor), db: Session = Depends(get_db)) -> list[CommunityView]:
    return [CommunityView.model_validate(row) for row in Repository(db).list_communities()]


@router.post("/communities", response_model=CommunityView, status_code=status.HTTP_201_CREATED)
def create_community(
    payload: dict[str, Any] = Body(...),
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> CommunityView:
    data = with_server_fields(payload, created_by=actor.user_id)
    community = Repository(db).create_community(validate_insert("community", data), actor)
    return CommunityView.model_validate(community)


@router.get("/communities/{community_id}", response_model=CommunityView)
def get_community(community_id: int, _: Actor = Depends(get_actor), db: Session = Depends(get_db)) -> CommunityView:
    return CommunityView.model_validate(Repository(db).get_community(community_id))


@router.patch("/communities/{community_id}", response_model=CommunityView)
def update_community(
    community_id: int,
    payload: dict[str, Any] = Body(...),
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> CommunityView:
    values = validate_update("community", payload)
    return CommunityView.model_validate(Repository(db).update_community(community_id, values, actor))


@router.delete("/communities/{community_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
def delete_community(
    community_id: int, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)
) -> Response:
    Repository(db).delete_community(community_id, actor)
    return no_content()


@router.post("/communities/{community_id}/join", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
def join_community(
    community_id: int, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)
) -> Response:
    Repository(db).join_community(community_id, actor)
    return no_content()


@router.delete("/communities/{community_id}/leave", response_model=MessageResponse)
def leave_community(
    community_id: int, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)
) -> MessageResponse:
    Repository(db).leave_community(community_id, actor)
    return MessageResponse(message="Successfully left community")


@router.get("/communities/{community_id}/members", response_model=list[MemberWithUser])
def community_members(
    community_id: int, _: Actor = Depends(get_actor), db: Session = Depends(get_db)
) -> list[MemberWithUser]:
    return Repository(db).list_community_members(community_id)


@router.get("/communities/{community_id}/posts", response_model=list[PostView])
def community_posts(community_id: int, _: Actor = Depends(get_actor), db: Session = Depends(get_db)) -> list[Any]:
    repo = Repository(db)
    repo.get_community(community_id)
    return [repo.to_post_view(post) for post in repo.list_posts_by_community(community_id)]


# -- connections ---------------------------------------------------------


@router.get("/connections", response_model=list[ConnectionWithUser])
def list_connections(actor: Actor = Depends(get_actor), db: Session = Depends(get_db)) -> list[ConnectionWithUser]:
    return Repository(db).list_connections(actor.user_id)


@router.get("/connections/pending", response_model=list[ConnectionWithUser])
def pending_connections(
    actor: Actor = Depends(get_actor), db: Session = Depends(get_db)
) -> list[ConnectionWithUser]:
    return Repository(db).list_pending_connections(actor.user_id)


@router.get("/connections/sent", response_model=list[ConnectionWithUser])
def sent_connections(actor: Actor = Depends(get_actor), db: Session = Depends(get_db)) -> list[ConnectionWithUser]:
    return Repository(db).list_sent_pending_connections(actor.user_id)


@router.post("/connections", response_model=ConnectionView, status_code=status.HTTP_201_CREATED)
def request_connection(
    payload: ConnectionCreateRequest,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> ConnectionView:
    data = {"requesterId": actor.user_id, "receiverId": payload.receiver_id}
    connection = Repository(db).request_connection(validate_insert("connection", data))
    return ConnectionView.model_validate(connection)


@router.patch("/connections/{connection_id}", response_model=ConnectionView)
def update_connection(
    connection_id: int,
    payload: ConnectionStatusRequest,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> ConnectionView:
    connection = Repository(db).update_connection_status(connection_id, payload.status, actor)
    return ConnectionView.model_validate(connection)


@router.post("/connections/{connection_id}/accept", response_model=ConnectionView)
def accept_connection(
    connection_id: int, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)
) -> ConnectionView:
    return ConnectionView.model_validate(Repository(db).accept_connection(connection_id, actor))


@router.post("/connections/{connection_id}/reject", response_model=ConnectionView)
def reject_connection(
    connection_id: int, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)
) -> ConnectionView:
    return ConnectionView.model_validate(Repository(db).reject_connection(connection_id, actor))


@router.delete("/connections/{connection_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
def delete_connection(
    connection_id: int, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)
) -> Response:
    Repository(db).delete_connection(connection_id, actor)
    return no_content()


# -- messages ------------------------------------------------------------


@router.get("/messages", response_model=list[MessageWithSender])
def inbox(actor: Actor = Depends(get_actor), db: Session = Depends(get_db)) -> list[MessageWithSender]:
    return Repository(db).list_inbox(actor.user_id)


@router.get("/messages/{user_id}", response_model=list[MessageView])
def conversation(user_id: int, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)) -> list[MessageView]:
    return [MessageView.model_validate(row) for row in Repository(db).list_conversation(actor.user_id, user_id)]


@router.post("/messages", response_model=MessageView, status_code=status.HTTP_201_CREATED)
def send_message(
    payload: MessageCreateRequest,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> MessageView:
    data = {"senderId": actor.user_id, "receiverId": payload.receiver_id, "content": payload.content}
    message = Repository(db).send_message(validate_insert("message", data))
    return MessageView.model_validate(message)


@router.post("/messages/{user_id}/read", response_model=UpdatedCountResponse)
def mark_read(user_id: int, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)) -> UpdatedCountResponse:
    return UpdatedCountResponse(updated=Repository(db).mark_conversation_read(actor, user_id))
